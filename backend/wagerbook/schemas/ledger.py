from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class LedgerResponse(BaseModel):
    user_id: str
    credit_limit: float
    base_credit_limit: float
    total_wagered: float
    remaining_credit: float
    payout_balance: float
    previous_total_wagered: float | None
    last_reset_at: datetime | None
    status: str


class LedgerOpen(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    credit_limit: float | None = Field(default=None, ge=0)


class CreditLimitUpdate(BaseModel):
    credit_limit: float = Field(ge=0)


class LedgerTransactionResponse(BaseModel):
    id: int
    wager_id: int | None
    entry_type: str
    amount: float
    total_wagered_before: float
    total_wagered_after: float
    description: str | None
    created_at: datetime | None


class ResetResponse(BaseModel):
    audit_id: int
    users_total: int
    users_reset: int
    users_skipped: int
    invariant_violations: list[str]
