from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class PickIn(BaseModel):
    game_id: int
    market: Literal["moneyline", "spread", "total"]
    selection: Literal["home", "away", "over", "under"]


class WagerCreate(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    wager_type: Literal["straight", "parlay"]
    stake_amount: float = Field(gt=0)
    picks: list[PickIn] = Field(min_length=1)


class WagerCancel(BaseModel):
    canceled_by: str = Field(min_length=1, max_length=64)


class WagerPickResponse(BaseModel):
    id: int
    game_id: int
    leg_order: int
    market: str
    selection: str
    line_snapshot: str | None
    price_snapshot: str
    result: str | None


class WagerResponse(BaseModel):
    id: int
    user_id: str
    wager_type: str
    stake_amount: float
    status: str
    payout: float
    created_at: datetime | None
    settled_at: datetime | None = None
    canceled_at: datetime | None = None
    canceled_by: str | None = None
    picks: list[WagerPickResponse]


class SubmitRejection(BaseModel):
    reason: str
    requested: float
    remaining: float | None = None
    shortfall: float | None = None
