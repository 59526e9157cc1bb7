from __future__ import annotations

import asyncio
import logging
from datetime import UTC, date, datetime, timedelta
from typing import Any

import httpx

from wagerbook.config import settings
from wagerbook.exceptions import SourceUnavailable
from wagerbook.leagues import get_league
from wagerbook.schemas.feeds import EspnEvent, RawQuote, ScheduleEvent
from wagerbook.services.feed_ingestion import espn_quotes, espn_schedule_event, parse_events

logger = logging.getLogger(__name__)

PROVIDER = "espn"


class ESPNClient:
    """Scoreboard client. One request per date, issued concurrently."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.base_url = settings.espn_base_url.rstrip("/")
        self.timeout = settings.provider_timeout_seconds
        self._transport = transport

    async def _scoreboard(self, client: httpx.AsyncClient, path: str, day: date) -> list[dict[str, Any]]:
        response = await client.get(f"{self.base_url}/{path}/scoreboard", params={"dates": day.strftime("%Y%m%d")})
        response.raise_for_status()
        return response.json().get("events") or []

    async def get_events(self, league: str, days: list[date]) -> list[EspnEvent]:
        path = get_league(league).espn_path
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            results = await asyncio.gather(
                *(self._scoreboard(client, path, day) for day in days), return_exceptions=True
            )

        payload: list[dict[str, Any]] = []
        failures = 0
        for day, result in zip(days, results):
            if isinstance(result, BaseException):
                failures += 1
                logger.warning("espn scoreboard failed: league=%s date=%s error=%s", league, day, result)
                continue
            payload.extend(result)
        if days and failures == len(days):
            raise SourceUnavailable(PROVIDER, f"all {failures} scoreboard requests failed for {league}")

        seen: set[str] = set()
        events: list[EspnEvent] = []
        for event in parse_events(EspnEvent, payload, PROVIDER):
            if event.id not in seen:
                seen.add(event.id)
                events.append(event)
        return events

    async def fetch_schedule(self, league: str, lookback_days: int | None = None, ahead_days: int = 1) -> list[ScheduleEvent]:
        lookback = settings.score_lookback_days if lookback_days is None else lookback_days
        today = datetime.now(UTC).date()
        days = [today + timedelta(days=offset) for offset in range(-lookback, ahead_days + 1)]
        events = await self.get_events(league, days)
        schedule = [s for s in (espn_schedule_event(e, league) for e in events) if s is not None]
        logger.info("espn schedule fetched: league=%s dates=%s events=%s", league, len(days), len(schedule))
        return schedule

    async def fetch_quotes(self, league: str) -> list[RawQuote]:
        today = datetime.now(UTC).date()
        events = await self.get_events(league, [today, today + timedelta(days=1)])
        return [quote for event in events for quote in espn_quotes(event, league)]
