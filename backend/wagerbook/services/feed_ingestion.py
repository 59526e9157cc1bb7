from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from wagerbook.schemas.feeds import (
    EspnEvent,
    JsonOddsEvent,
    OddsApiEvent,
    RawOutcome,
    RawQuote,
    ScheduleEvent,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

ODDS_API_MARKETS = {"h2h": "moneyline", "spreads": "spread", "totals": "total"}
FULL_GAME_ODD_TYPES = {"game", ""}


def parse_events(model: type[ModelT], payload: list[dict[str, Any]], provider: str) -> list[ModelT]:
    """Validate each event independently; malformed events are dropped at the boundary."""
    events: list[ModelT] = []
    for item in payload:
        try:
            events.append(model.model_validate(item))
        except ValidationError as exc:
            logger.warning(
                "rejected malformed %s event: id=%s errors=%s",
                provider,
                item.get("id") or item.get("ID") if isinstance(item, dict) else None,
                exc.error_count(),
            )
    return events


def odds_api_quotes(event: OddsApiEvent, league: str) -> list[RawQuote]:
    quotes: list[RawQuote] = []
    for bookmaker in event.bookmakers:
        for market in bookmaker.markets:
            market_key = ODDS_API_MARKETS.get(market.key)
            if market_key is None:
                continue
            quotes.append(
                RawQuote(
                    provider="the_odds_api",
                    league=league,
                    bookmaker=bookmaker.key.lower(),
                    market=market_key,
                    home_team=event.home_team,
                    away_team=event.away_team,
                    outcomes=tuple(RawOutcome(o.name, o.price, o.point, o.sid) for o in market.outcomes),
                    commence_time=event.commence_time,
                    event_id=event.id,
                )
            )
    return quotes


def jsonodds_quotes(event: JsonOddsEvent, league: str) -> list[RawQuote]:
    quotes: list[RawQuote] = []
    for index, line in enumerate(event.odds):
        if (line.odd_type or "").strip().lower() not in FULL_GAME_ODD_TYPES:
            continue
        book = (line.sportsbook or f"jsonodds-{index}").strip().lower()
        common = {
            "provider": "jsonodds",
            "league": league,
            "bookmaker": book,
            "home_team": event.home_team,
            "away_team": event.away_team,
            "commence_time": event.match_time,
            "event_id": event.id,
        }
        quotes.append(
            RawQuote(
                market="moneyline",
                outcomes=(
                    RawOutcome(event.home_team, line.money_line_home),
                    RawOutcome(event.away_team, line.money_line_away),
                ),
                **common,
            )
        )
        quotes.append(
            RawQuote(
                market="spread",
                outcomes=(
                    RawOutcome(event.home_team, line.point_spread_home_line, line.point_spread_home),
                    RawOutcome(event.away_team, line.point_spread_away_line, line.point_spread_away),
                ),
                **common,
            )
        )
        quotes.append(
            RawQuote(
                market="total",
                outcomes=(
                    RawOutcome("Over", line.over_line, line.total_number),
                    RawOutcome("Under", line.under_line, line.total_number),
                ),
                **common,
            )
        )
    return quotes


def _competitors(event: EspnEvent):
    if not event.competitions:
        return None, None
    competitors = event.competitions[0].competitors
    home = next((c for c in competitors if c.home_away == "home"), None)
    away = next((c for c in competitors if c.home_away == "away"), None)
    return home, away


def _score(raw: str | None) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        return int(float(raw))
    except ValueError:
        return None


def espn_schedule_event(event: EspnEvent, league: str) -> ScheduleEvent | None:
    home, away = _competitors(event)
    if home is None or away is None:
        logger.warning("espn event %s missing home/away competitors", event.id)
        return None
    return ScheduleEvent(
        league=league,
        event_id=event.id,
        home_name=home.team.display_name,
        away_name=away.team.display_name,
        home_ref=home.team.id,
        away_ref=away.team.id,
        start_time=event.date,
        state=event.status.type.state,
        home_score=_score(home.score),
        away_score=_score(away.score),
    )


def espn_quotes(event: EspnEvent, league: str) -> list[RawQuote]:
    """ESPN only contributes a moneyline fallback."""
    home, away = _competitors(event)
    if home is None or away is None or not event.competitions[0].odds:
        return []
    odds = event.competitions[0].odds[0]
    if odds.home_team_odds is None or odds.away_team_odds is None:
        return []
    return [
        RawQuote(
            provider="espn",
            league=league,
            bookmaker="espn",
            market="moneyline",
            home_team=home.team.id,
            away_team=away.team.id,
            outcomes=(
                RawOutcome(home.team.display_name, odds.home_team_odds.money_line, sid=home.team.id),
                RawOutcome(away.team.display_name, odds.away_team_odds.money_line, sid=away.team.id),
            ),
            commence_time=event.date,
            event_id=event.id,
        )
    ]
