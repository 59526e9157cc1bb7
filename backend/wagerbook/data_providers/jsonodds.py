from __future__ import annotations

import logging
from typing import Any

import httpx

from wagerbook.config import settings
from wagerbook.exceptions import SourceUnavailable
from wagerbook.leagues import get_league
from wagerbook.schemas.feeds import JsonOddsEvent, RawQuote
from wagerbook.services.feed_ingestion import jsonodds_quotes, parse_events

logger = logging.getLogger(__name__)

PROVIDER = "jsonodds"


class JsonOddsClient:
    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.base_url = settings.jsonodds_base_url.rstrip("/")
        self.api_key = settings.jsonodds_api_key
        self.timeout = settings.provider_timeout_seconds
        self._transport = transport

    async def get_odds(self, sport: str) -> list[dict[str, Any]]:
        if not self.api_key:
            logger.info("jsonodds key not configured; skipping sport=%s", sport)
            return []
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    f"{self.base_url}/odds/{sport}",
                    params={"oddType": "Game"},
                    headers={"x-api-key": self.api_key},
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SourceUnavailable(PROVIDER, str(exc)) from exc
        return data if isinstance(data, list) else [data]

    async def fetch_quotes(self, league: str) -> list[RawQuote]:
        payload = await self.get_odds(get_league(league).jsonodds_sport)
        events = parse_events(JsonOddsEvent, payload, PROVIDER)
        quotes = [quote for event in events for quote in jsonodds_quotes(event, league)]
        logger.info("jsonodds fetched: league=%s events=%s quotes=%s", league, len(events), len(quotes))
        return quotes
