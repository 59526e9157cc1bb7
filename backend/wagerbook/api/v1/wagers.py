from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from wagerbook.api.v1.deps import get_wager_service
from wagerbook.exceptions import ValidationFailure, WagerStateError
from wagerbook.models.wager import Wager
from wagerbook.schemas.wagers import SubmitRejection, WagerCancel, WagerCreate, WagerPickResponse, WagerResponse
from wagerbook.services.wager_service import PickRequest, WagerService

router = APIRouter(prefix="/wagers", tags=["wagers"])


def _wager_response(wager: Wager) -> WagerResponse:
    return WagerResponse(
        id=wager.id,
        user_id=wager.user_id,
        wager_type=wager.wager_type,
        stake_amount=wager.stake_amount,
        status=wager.status,
        payout=wager.payout,
        created_at=wager.created_at,
        settled_at=wager.settled_at,
        canceled_at=wager.canceled_at,
        canceled_by=wager.canceled_by,
        picks=[
            WagerPickResponse(
                id=pick.id,
                game_id=pick.game_id,
                leg_order=pick.leg_order,
                market=pick.market,
                selection=pick.selection,
                line_snapshot=pick.line_snapshot,
                price_snapshot=pick.price_snapshot,
                result=pick.result,
            )
            for pick in wager.picks
        ],
    )


@router.post("", response_model=WagerResponse, status_code=201, responses={409: {"model": SubmitRejection}, 422: {"model": SubmitRejection}})
async def submit_wager(body: WagerCreate, service: WagerService = Depends(get_wager_service)):
    result = await service.submit(
        body.user_id,
        body.wager_type,
        body.stake_amount,
        [PickRequest(p.game_id, p.market, p.selection) for p in body.picks],
    )
    if not result.accepted:
        # credit rejections carry a shortfall; everything else is a malformed request
        status_code = 409 if result.shortfall is not None else 422
        rejection = SubmitRejection(
            reason=result.reason or "rejected",
            requested=result.requested,
            remaining=result.remaining,
            shortfall=result.shortfall,
        )
        return JSONResponse(status_code=status_code, content=rejection.model_dump())
    return _wager_response(result.wager)


@router.get("", response_model=list[WagerResponse])
async def list_wagers(
    user_id: str,
    status: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    service: WagerService = Depends(get_wager_service),
) -> list[WagerResponse]:
    return [_wager_response(w) for w in await service.list_for_user(user_id, status=status, limit=limit)]


@router.get("/{wager_id}", response_model=WagerResponse)
async def get_wager(wager_id: int, service: WagerService = Depends(get_wager_service)) -> WagerResponse:
    wager = await service.get(wager_id)
    if wager is None:
        raise HTTPException(status_code=404, detail="Wager not found")
    return _wager_response(wager)


@router.post("/{wager_id}/cancel", response_model=WagerResponse)
async def cancel_wager(
    wager_id: int, body: WagerCancel, service: WagerService = Depends(get_wager_service)
) -> WagerResponse:
    try:
        wager = await service.cancel(wager_id, body.canceled_by)
    except ValidationFailure as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except WagerStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _wager_response(wager)
