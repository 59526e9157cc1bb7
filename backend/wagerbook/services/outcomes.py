from __future__ import annotations

from enum import Enum
from typing import Any

from wagerbook.services.odds_normalizer import normalize_str, parse_point

MARKET_SELECTIONS = {
    "moneyline": frozenset({"home", "away"}),
    "spread": frozenset({"home", "away"}),
    "total": frozenset({"over", "under"}),
}


class PickOutcome(str, Enum):
    WIN = "win"
    LOSS = "loss"
    PUSH = "push"
    UNKNOWN = "unknown"


def _compare(lhs: float, rhs: float) -> PickOutcome:
    if lhs > rhs:
        return PickOutcome.WIN
    if lhs < rhs:
        return PickOutcome.LOSS
    return PickOutcome.PUSH


def _settle_moneyline(selection: str, home: int, away: int) -> PickOutcome:
    picked, other = (home, away) if selection == "home" else (away, home)
    # Ties grade as a loss for both sides.
    return PickOutcome.WIN if picked > other else PickOutcome.LOSS


def _settle_spread(selection: str, line: float, home: int, away: int) -> PickOutcome:
    picked, other = (home, away) if selection == "home" else (away, home)
    return _compare(picked + line, other)


def _settle_total(selection: str, line: float, home: int, away: int) -> PickOutcome:
    total = home + away
    outcome = _compare(total, line)
    if selection == "under" and outcome != PickOutcome.PUSH:
        return PickOutcome.LOSS if outcome == PickOutcome.WIN else PickOutcome.WIN
    return outcome


def evaluate_pick(pick: Any, game: Any) -> PickOutcome:
    """Grade one pick against a final game. Anything not gradable is UNKNOWN, never guessed."""
    if game is None or not game.is_final or game.home_score is None or game.away_score is None:
        return PickOutcome.UNKNOWN

    market = normalize_str(pick.market)
    selection = normalize_str(pick.selection)
    if selection not in MARKET_SELECTIONS.get(market, ()):
        return PickOutcome.UNKNOWN

    home, away = int(game.home_score), int(game.away_score)
    if market == "moneyline":
        return _settle_moneyline(selection, home, away)

    line = parse_point(pick.line_snapshot)
    if line is None:
        return PickOutcome.UNKNOWN
    if market == "spread":
        return _settle_spread(selection, line, home, away)
    return _settle_total(selection, line, home, away)
