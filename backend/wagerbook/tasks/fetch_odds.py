from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wagerbook.config import settings
from wagerbook.exceptions import SourceUnavailable
from wagerbook.models.game import Game
from wagerbook.models.odds_quote import OddsQuote
from wagerbook.schemas.feeds import RawQuote
from wagerbook.services.odds_merge import MergedMarket, OddsMerger

logger = logging.getLogger(__name__)

STARTED_GRACE = timedelta(hours=6)


class QuoteSource(Protocol):
    async def fetch_quotes(self, league: str) -> list[RawQuote]: ...


async def _fetch_one(provider: str, source: QuoteSource, league: str, timeout: float) -> list[RawQuote]:
    try:
        return await asyncio.wait_for(source.fetch_quotes(league), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("provider timed out: provider=%s league=%s timeout=%s", provider, league, timeout)
    except SourceUnavailable as exc:
        logger.warning("provider unavailable: provider=%s league=%s error=%s", provider, league, exc.message)
    except Exception:
        logger.exception("provider fetch failed: provider=%s league=%s", provider, league)
    return []


async def collect_quotes(
    sources: Mapping[str, QuoteSource], league: str, timeout: float | None = None
) -> dict[str, list[RawQuote]]:
    """Fetch every provider concurrently. A failing provider contributes an empty batch."""
    timeout = settings.provider_timeout_seconds if timeout is None else timeout
    providers = list(sources)
    batches = await asyncio.gather(*(_fetch_one(p, sources[p], league, timeout) for p in providers))
    return dict(zip(providers, batches))


async def store_merged(session: AsyncSession, game_id: int, merged: Mapping[str, MergedMarket]) -> int:
    """Write new current quotes, superseding changed ones. Unchanged quotes are left alone."""
    now = datetime.now(UTC)
    inserted = 0
    for market, result in merged.items():
        for quote in result.quotes:
            current = await session.scalar(
                select(OddsQuote).where(
                    OddsQuote.game_id == game_id,
                    OddsQuote.market == market,
                    OddsQuote.side == quote.side,
                    OddsQuote.is_current.is_(True),
                )
            )
            if (
                current is not None
                and current.price == quote.price
                and current.line_value == quote.line
                and current.source_provider == result.provider
                and current.bookmaker == result.bookmaker
            ):
                continue
            if current is not None:
                current.is_current = False
            session.add(
                OddsQuote(
                    game_id=game_id,
                    market=market,
                    side=quote.side,
                    line_value=quote.line,
                    price=quote.price,
                    source_provider=result.provider,
                    bookmaker=result.bookmaker,
                    observed_at=now,
                    is_current=True,
                )
            )
            inserted += 1
    return inserted


async def open_games(session: AsyncSession, league: str) -> list[Game]:
    cutoff = datetime.now(UTC) - STARTED_GRACE
    rows = await session.scalars(
        select(Game).where(Game.league == league, Game.is_final.is_(False), Game.scheduled_time >= cutoff)
    )
    return list(rows.all())


async def refresh_odds(
    session_factory: async_sessionmaker[AsyncSession],
    merger: OddsMerger,
    sources: Mapping[str, QuoteSource],
    leagues: Sequence[str],
) -> dict[str, Any]:
    games_merged = quotes_inserted = 0
    for league in leagues:
        async with session_factory() as session:
            games = await open_games(session, league)
        if not games:
            logger.info("odds refresh skipped: league=%s open_games=0", league)
            continue

        batches = await collect_quotes(sources, league)
        merged_by_game = merger.merge_slate(games, batches)
        async with session_factory() as session:
            async with session.begin():
                for game_id, merged in merged_by_game.items():
                    if merged:
                        games_merged += 1
                    quotes_inserted += await store_merged(session, game_id, merged)
        logger.info(
            "odds refreshed: league=%s games=%s raw=%s",
            league,
            len(games),
            {provider: len(batch) for provider, batch in batches.items()},
        )
    return {"games_merged": games_merged, "quotes_inserted": quotes_inserted}
