from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import partial
from typing import Any, TypeVar

from wagerbook.config import settings
from wagerbook.schemas.feeds import Market, Provider, RawOutcome, RawQuote
from wagerbook.services.game_key import provider_game_key
from wagerbook.services.identity_resolver import IdentityResolver, Team
from wagerbook.services.odds_normalizer import (
    format_american_odds,
    format_spread_line,
    format_total_line,
    fuzzy_team_match,
    normalize_str,
    parse_american_price,
    parse_point,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROVIDER_PRIORITY: tuple[Provider, ...] = ("jsonodds", "the_odds_api", "espn")
MARKETS: tuple[Market, ...] = ("moneyline", "spread", "total")
PROVIDER_MARKETS: Mapping[str, frozenset[str]] = {
    "jsonodds": frozenset(MARKETS),
    "the_odds_api": frozenset(MARKETS),
    "espn": frozenset({"moneyline"}),
}
OVER_NAMES = frozenset({"over", "o"})
UNDER_NAMES = frozenset({"under", "u"})


@dataclass(frozen=True, slots=True)
class QuoteValue:
    side: str
    price: str
    line: str | None = None


@dataclass(frozen=True, slots=True)
class MergedMarket:
    market: Market
    provider: Provider
    bookmaker: str
    quotes: tuple[QuoteValue, ...]

    def side(self, side: str) -> QuoteValue | None:
        return next((q for q in self.quotes if q.side == side), None)


def first_success(resolvers: Iterable[Callable[[], T | None]]) -> T | None:
    """Call each resolver in order and return the first non-None result."""
    for resolver in resolvers:
        result = resolver()
        if result is not None:
            return result
    return None


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


def order_bookmakers(books: Iterable[str], priority: Sequence[str]) -> list[str]:
    """Priority books first in configured order, then everything else in first-seen order."""
    seen: list[str] = []
    for book in books:
        if book not in seen:
            seen.append(book)
    ranked = [b for b in priority if b in seen]
    return ranked + [b for b in seen if b not in ranked]


class OddsMerger:
    def __init__(self, resolver: IdentityResolver, bookmaker_priority: Sequence[str] | None = None) -> None:
        self.resolver = resolver
        self.bookmaker_priority = [b.lower() for b in (bookmaker_priority or settings.bookmaker_order)]

    def merge_odds(self, game: Any, raw_batches_by_provider: Mapping[str, Sequence[RawQuote]]) -> dict[str, MergedMarket]:
        """Canonical markets for one game. Records belonging to other games are ignored."""
        matching = {
            provider: [
                quote
                for quote in quotes
                if provider_game_key(self.resolver, game.league, quote.away_team, quote.home_team) == game.game_key
            ]
            for provider, quotes in raw_batches_by_provider.items()
        }
        return self._merge_records(game, matching)

    def merge_slate(
        self, games: Sequence[Any], raw_batches_by_provider: Mapping[str, Sequence[RawQuote]]
    ) -> dict[int, dict[str, MergedMarket]]:
        """Merge every game in one pass; records are keyed once and routed to the closest scheduled game."""
        by_key: dict[tuple[str, str], list[Any]] = {}
        for game in games:
            by_key.setdefault((normalize_str(game.league), game.game_key), []).append(game)

        routed: dict[int, dict[str, list[RawQuote]]] = {game.id: {} for game in games}
        key_cache: dict[tuple[str, str, str], str | None] = {}
        skipped = 0
        for provider, quotes in raw_batches_by_provider.items():
            for quote in quotes:
                cache_key = (quote.league, quote.away_team, quote.home_team)
                if cache_key not in key_cache:
                    key_cache[cache_key] = provider_game_key(self.resolver, quote.league, quote.away_team, quote.home_team)
                key = key_cache[cache_key]
                candidates = by_key.get((normalize_str(quote.league), key)) if key else None
                if not candidates:
                    skipped += 1
                    continue
                target = self._closest_game(candidates, quote.commence_time)
                routed[target.id].setdefault(provider, []).append(quote)

        if skipped:
            logger.info("odds merge skipped %s records with no matching game", skipped)
        return {game.id: self._merge_records(game, routed[game.id]) for game in games}

    @staticmethod
    def _closest_game(candidates: list[Any], commence_time: datetime | None) -> Any:
        if len(candidates) == 1 or commence_time is None:
            return candidates[0]
        target = _as_utc(commence_time)
        return min(candidates, key=lambda g: abs((_as_utc(g.scheduled_time) - target).total_seconds()))

    def _merge_records(self, game: Any, records: Mapping[str, Sequence[RawQuote]]) -> dict[str, MergedMarket]:
        home = self.resolver.get(game.home_team_id)
        away = self.resolver.get(game.away_team_id)
        if home is None or away is None:
            logger.warning("game %s references unknown teams home=%s away=%s", game.id, game.home_team_id, game.away_team_id)
            return {}

        merged: dict[str, MergedMarket] = {}
        for market in MARKETS:
            chain = [
                partial(self._from_provider, provider, market, records.get(provider, ()), home, away)
                for provider in PROVIDER_PRIORITY
                if market in PROVIDER_MARKETS[provider]
            ]
            result = first_success(chain)
            if result is None:
                logger.debug("no usable %s for game %s", market, game.id)
                continue
            merged[market] = result
        return merged

    def _from_provider(
        self, provider: Provider, market: Market, quotes: Sequence[RawQuote], home: Team, away: Team
    ) -> MergedMarket | None:
        candidates = [q for q in quotes if q.market == market]
        if not candidates:
            return None
        by_book: dict[str, list[RawQuote]] = {}
        for quote in candidates:
            by_book.setdefault(quote.bookmaker.lower(), []).append(quote)

        for book in order_bookmakers(by_book, self.bookmaker_priority):
            for quote in by_book[book]:
                values = self.validate_market(quote, home, away)
                if values is not None:
                    return MergedMarket(market=market, provider=provider, bookmaker=book, quotes=values)
        logger.debug("%s has no validated %s for %s|%s", provider, market, away.id, home.id)
        return None

    def validate_market(self, quote: RawQuote, home: Team, away: Team) -> tuple[QuoteValue, ...] | None:
        if quote.market == "total":
            return self._validate_total(quote.outcomes)
        assigned = self.match_sides(quote.outcomes, home, away, quote.league)
        if "home" not in assigned or "away" not in assigned:
            return None

        values = []
        for side in ("home", "away"):
            outcome = assigned[side]
            price = parse_american_price(outcome.price)
            if price is None:
                return None
            line = None
            if quote.market == "spread":
                point = parse_point(outcome.point)
                if point is None:
                    return None
                line = format_spread_line(point)
            values.append(QuoteValue(side=side, price=format_american_odds(price), line=line))
        return tuple(values)

    @staticmethod
    def _validate_total(outcomes: Sequence[RawOutcome]) -> tuple[QuoteValue, ...] | None:
        over = next((o for o in outcomes if normalize_str(o.name) in OVER_NAMES), None)
        under = next((o for o in outcomes if normalize_str(o.name) in UNDER_NAMES), None)
        if over is None or under is None:
            return None

        values = []
        for side, outcome in (("over", over), ("under", under)):
            price = parse_american_price(outcome.price)
            point = _total_point(outcome.point)
            if price is None or point is None:
                return None
            values.append(QuoteValue(side=side, price=format_american_odds(price), line=format_total_line(point)))
        return tuple(values)

    def match_sides(
        self, outcomes: Sequence[RawOutcome], home: Team, away: Team, league: str
    ) -> dict[str, RawOutcome]:
        """Assign outcomes to home/away. Exact passes run before fuzzy and consume what they match."""
        team_sides = {home.id: "home", away.id: "away"}
        assigned: dict[str, RawOutcome] = {}
        used: set[int] = set()

        for attr in ("sid", "name"):
            for index, outcome in enumerate(outcomes):
                if index in used:
                    continue
                team = self.resolver.resolve(getattr(outcome, attr), league)
                side = team_sides.get(team.id) if team is not None else None
                if side is not None and side not in assigned:
                    assigned[side] = outcome
                    used.add(index)

        for index, outcome in enumerate(outcomes):
            if index in used or len(assigned) == 2:
                continue
            hits_home = any(fuzzy_team_match(outcome.name, n) for n in home.names())
            hits_away = any(fuzzy_team_match(outcome.name, n) for n in away.names())
            if hits_home and hits_away:
                logger.debug("ambiguous outcome '%s' matches both %s and %s", outcome.name, home.id, away.id)
                continue
            side = "home" if hits_home else "away" if hits_away else None
            if side is not None and side not in assigned:
                assigned[side] = outcome
                used.add(index)
        return assigned


def _total_point(value: Any) -> float | None:
    point = parse_point(value)
    if point is None or point <= 0:
        return None
    return point
