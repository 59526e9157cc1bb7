from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from wagerbook.api.v1.deps import get_ledger
from wagerbook.exceptions import ValidationFailure
from wagerbook.models.user_ledger import UserLedger
from wagerbook.schemas.ledger import (
    CreditLimitUpdate,
    LedgerOpen,
    LedgerResponse,
    LedgerTransactionResponse,
    ResetResponse,
)
from wagerbook.services.credit_ledger import CreditLedger
from wagerbook.tasks.weekly_reset import run_weekly_reset

router = APIRouter(prefix="/ledger", tags=["ledger"])


def _ledger_response(ledger: UserLedger) -> LedgerResponse:
    return LedgerResponse(
        user_id=ledger.user_id,
        credit_limit=ledger.credit_limit,
        base_credit_limit=ledger.base_credit_limit,
        total_wagered=ledger.total_wagered,
        remaining_credit=round(max(ledger.credit_limit - ledger.total_wagered, 0.0), 2),
        payout_balance=ledger.payout_balance,
        previous_total_wagered=ledger.previous_total_wagered,
        last_reset_at=ledger.last_reset_at,
        status=ledger.status,
    )


@router.post("", response_model=LedgerResponse, status_code=201)
async def open_account(body: LedgerOpen, ledger: CreditLedger = Depends(get_ledger)) -> LedgerResponse:
    return _ledger_response(await ledger.open_account(body.user_id, body.credit_limit))


@router.post("/reset", response_model=ResetResponse)
async def reset_all(ledger: CreditLedger = Depends(get_ledger)) -> dict:
    return await run_weekly_reset(ledger)


@router.get("/{user_id}", response_model=LedgerResponse)
async def get_ledger_state(user_id: str, ledger: CreditLedger = Depends(get_ledger)) -> LedgerResponse:
    row = await ledger.get_ledger(user_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Ledger not found")
    return _ledger_response(row)


@router.get("/{user_id}/transactions", response_model=list[LedgerTransactionResponse])
async def transactions(
    user_id: str, limit: int = Query(default=50, ge=1, le=500), ledger: CreditLedger = Depends(get_ledger)
) -> list[LedgerTransactionResponse]:
    return [
        LedgerTransactionResponse(
            id=t.id,
            wager_id=t.wager_id,
            entry_type=t.entry_type,
            amount=t.amount,
            total_wagered_before=t.total_wagered_before,
            total_wagered_after=t.total_wagered_after,
            description=t.description,
            created_at=t.created_at,
        )
        for t in await ledger.list_transactions(user_id, limit=limit)
    ]


@router.put("/{user_id}/credit-limit", response_model=LedgerResponse)
async def set_credit_limit(
    user_id: str, body: CreditLimitUpdate, ledger: CreditLedger = Depends(get_ledger)
) -> LedgerResponse:
    try:
        return _ledger_response(await ledger.set_credit_limit(user_id, body.credit_limit))
    except ValidationFailure as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.post("/{user_id}/revoke", response_model=LedgerResponse)
async def revoke(user_id: str, ledger: CreditLedger = Depends(get_ledger)) -> LedgerResponse:
    try:
        return _ledger_response(await ledger.revoke(user_id))
    except ValidationFailure as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("/{user_id}/reinstate", response_model=LedgerResponse)
async def reinstate(user_id: str, ledger: CreditLedger = Depends(get_ledger)) -> LedgerResponse:
    try:
        return _ledger_response(await ledger.reinstate(user_id))
    except ValidationFailure as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("/{user_id}/reset", response_model=LedgerResponse)
async def reset_user(user_id: str, ledger: CreditLedger = Depends(get_ledger)) -> LedgerResponse:
    try:
        await ledger.reset(user_id)
    except ValidationFailure as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _ledger_response(await ledger.get_ledger(user_id))


@router.post("/{user_id}/check-reset", response_model=LedgerResponse)
async def check_reset(user_id: str, ledger: CreditLedger = Depends(get_ledger)) -> LedgerResponse:
    """Apply the weekly reset if this account missed the most recent boundary."""
    await ledger.check_reset(user_id)
    row = await ledger.get_ledger(user_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Ledger not found")
    return _ledger_response(row)
