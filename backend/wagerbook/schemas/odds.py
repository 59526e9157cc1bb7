from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class OddsQuoteResponse(BaseModel):
    market: str
    side: str
    line_value: str | None
    price: str
    source_provider: str
    bookmaker: str
    observed_at: datetime | None


class GameResponse(BaseModel):
    id: int
    league: str
    home_team_id: str
    away_team_id: str
    home_team: str
    away_team: str
    game_key: str
    scheduled_time: datetime
    status: str
    home_score: int | None
    away_score: int | None
    is_final: bool


class GameOddsResponse(GameResponse):
    odds: list[OddsQuoteResponse]
