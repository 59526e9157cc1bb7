from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wagerbook.api.v1.games import game_response
from wagerbook.database import AsyncSessionLocal, get_session
from wagerbook.leagues import LEAGUES
from wagerbook.models.game import Game
from wagerbook.models.odds_quote import OddsQuote
from wagerbook.schemas.odds import GameOddsResponse, OddsQuoteResponse
from wagerbook.tasks.fetch_odds import refresh_odds

router = APIRouter(prefix="/odds", tags=["odds"])


def _quote_response(quote: OddsQuote) -> OddsQuoteResponse:
    return OddsQuoteResponse(
        market=quote.market,
        side=quote.side,
        line_value=quote.line_value,
        price=quote.price,
        source_provider=quote.source_provider,
        bookmaker=quote.bookmaker,
        observed_at=quote.observed_at,
    )


@router.get("/games/{game_id}", response_model=GameOddsResponse)
async def game_odds(game_id: int, session: AsyncSession = Depends(get_session)) -> GameOddsResponse:
    game = await session.get(Game, game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found")
    quotes = (
        await session.scalars(
            select(OddsQuote)
            .where(OddsQuote.game_id == game_id, OddsQuote.is_current.is_(True))
            .order_by(OddsQuote.market, OddsQuote.side)
        )
    ).all()
    return GameOddsResponse(**game_response(game).model_dump(), odds=[_quote_response(q) for q in quotes])


@router.post("/refresh")
async def refresh(request: Request, league: str | None = None) -> dict:
    if league is not None and league.lower() not in LEAGUES:
        raise HTTPException(status_code=404, detail=f"Unsupported league: {league}")
    leagues = [league.lower()] if league else list(request.app.state.leagues)
    state = request.app.state
    return await refresh_odds(AsyncSessionLocal, state.merger, state.quote_sources, leagues)
