from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wagerbook.data_providers.espn import ESPNClient
from wagerbook.exceptions import SourceUnavailable
from wagerbook.models.game import Game
from wagerbook.schemas.feeds import ScheduleEvent
from wagerbook.services.game_key import game_key
from wagerbook.services.identity_resolver import IdentityResolver, Team

logger = logging.getLogger(__name__)

ESPN_STATES = {"pre": "scheduled", "in": "in_progress", "post": "final"}
SAME_GAME_WINDOW = timedelta(hours=18)


def _resolve(resolver: IdentityResolver, league: str, ref: str | None, name: str) -> Team | None:
    return resolver.resolve(ref, league) or resolver.resolve(name, league)


async def _find_game(session: AsyncSession, event: ScheduleEvent, key: str) -> Game | None:
    game = await session.scalar(select(Game).where(Game.espn_event_id == event.event_id))
    if game is not None:
        return game
    start = event.start_time if event.start_time.tzinfo else event.start_time.replace(tzinfo=UTC)
    return await session.scalar(
        select(Game).where(
            Game.game_key == key,
            Game.league == event.league,
            Game.scheduled_time >= start - SAME_GAME_WINDOW,
            Game.scheduled_time <= start + SAME_GAME_WINDOW,
        )
    )


async def apply_schedule(session: AsyncSession, resolver: IdentityResolver, events: Iterable[ScheduleEvent]) -> dict:
    """Create games from schedule events and move scores/status forward. Final games never revert."""
    created = updated = finalized = skipped = 0
    for event in events:
        home = _resolve(resolver, event.league, event.home_ref, event.home_name)
        away = _resolve(resolver, event.league, event.away_ref, event.away_name)
        if home is None or away is None or home.id == away.id:
            logger.info(
                "schedule event skipped: league=%s event=%s home='%s' away='%s'",
                event.league,
                event.event_id,
                event.home_name,
                event.away_name,
            )
            skipped += 1
            continue

        key = game_key(away, home)
        game = await _find_game(session, event, key)
        if game is None:
            game = Game(
                league=event.league,
                home_team_id=home.id,
                away_team_id=away.id,
                home_team=home.canonical_name,
                away_team=away.canonical_name,
                game_key=key,
                scheduled_time=event.start_time,
                status="scheduled",
                is_final=False,
                espn_event_id=event.event_id,
            )
            session.add(game)
            created += 1

        if game.is_final:
            continue

        game.espn_event_id = game.espn_event_id or event.event_id
        game.scheduled_time = event.start_time
        if event.home_score is not None and event.away_score is not None:
            game.home_score = event.home_score
            game.away_score = event.away_score
        status = ESPN_STATES.get(event.state, "scheduled")
        if status == "final" and (game.home_score is None or game.away_score is None):
            logger.warning("espn event %s is final without scores; leaving open", event.event_id)
            status = "in_progress"
        game.status = status
        if status == "final":
            game.is_final = True
            finalized += 1
        updated += 1

    await session.flush()
    return {"created": created, "updated": updated, "finalized": finalized, "skipped": skipped}


async def sync_schedule(
    client: ESPNClient,
    session_factory: async_sessionmaker[AsyncSession],
    resolver: IdentityResolver,
    leagues: Sequence[str],
) -> dict:
    totals = {"created": 0, "updated": 0, "finalized": 0, "skipped": 0}
    for league in leagues:
        try:
            events = await client.fetch_schedule(league)
        except SourceUnavailable as exc:
            logger.warning("schedule sync skipped for %s: %s", league, exc)
            continue
        except Exception:
            logger.exception("Failed to fetch schedule for league %s", league)
            continue

        async with session_factory() as session:
            async with session.begin():
                counts = await apply_schedule(session, resolver, events)
        logger.info("schedule synced: league=%s %s", league, counts)
        for name, value in counts.items():
            totals[name] += value
    return totals
