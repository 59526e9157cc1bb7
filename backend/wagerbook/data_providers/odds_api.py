from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from wagerbook.config import settings
from wagerbook.exceptions import SourceUnavailable
from wagerbook.leagues import get_league
from wagerbook.schemas.feeds import OddsApiEvent, RawQuote
from wagerbook.services.feed_ingestion import odds_api_quotes, parse_events

logger = logging.getLogger(__name__)

PROVIDER = "the_odds_api"


@dataclass
class OddsAPIResult:
    data: list[dict[str, Any]]
    requests_remaining: int | None


class OddsAPIClient:
    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.base_url = settings.odds_api_base_url.rstrip("/")
        self.api_key = settings.odds_api_key
        self.timeout = settings.provider_timeout_seconds
        self.requests_remaining: int | None = None
        self._transport = transport

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> OddsAPIResult:
        if not self.api_key:
            logger.info("odds api key not configured; skipping %s", path)
            return OddsAPIResult(data=[], requests_remaining=self.requests_remaining)
        params = dict(params or {})
        params["apiKey"] = self.api_key
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(f"{self.base_url}/{path.lstrip('/')}", params=params)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SourceUnavailable(PROVIDER, str(exc)) from exc
        remaining = response.headers.get("x-requests-remaining")
        self.requests_remaining = int(remaining) if remaining and remaining.isdigit() else self.requests_remaining
        if isinstance(data, list):
            return OddsAPIResult(data=data, requests_remaining=self.requests_remaining)
        return OddsAPIResult(data=[data], requests_remaining=self.requests_remaining)

    async def get_odds(
        self,
        sport: str,
        regions: str | None = None,
        markets: str | None = None,
        bookmakers: str | None = None,
    ) -> OddsAPIResult:
        params: dict[str, Any] = {
            "regions": regions or settings.odds_api_regions,
            "markets": markets or settings.odds_api_markets,
            "oddsFormat": "american",
            "includeSids": "true",
        }
        if bookmakers:
            params["bookmakers"] = bookmakers
        return await self._get(f"sports/{sport}/odds", params=params)

    async def fetch_quotes(self, league: str) -> list[RawQuote]:
        result = await self.get_odds(get_league(league).odds_api_sport)
        events = parse_events(OddsApiEvent, result.data, PROVIDER)
        quotes = [quote for event in events for quote in odds_api_quotes(event, league)]
        logger.info(
            "odds api fetched: league=%s events=%s quotes=%s remaining=%s",
            league,
            len(events),
            len(quotes),
            self.requests_remaining,
        )
        return quotes
