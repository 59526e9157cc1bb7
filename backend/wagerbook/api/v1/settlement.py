from __future__ import annotations

from fastapi import APIRouter, Request

from wagerbook.database import AsyncSessionLocal
from wagerbook.tasks.settle import run_settlement_pipeline

router = APIRouter(prefix="/settlement", tags=["settlement"])


@router.post("/run")
async def run_settlement(request: Request) -> dict:
    state = request.app.state
    return await run_settlement_pipeline(AsyncSessionLocal, state.ledger, state.resolver, state.espn_client, state.leagues)
