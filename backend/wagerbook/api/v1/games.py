from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wagerbook.database import get_session
from wagerbook.models.game import Game
from wagerbook.schemas.odds import GameResponse

router = APIRouter(prefix="/games", tags=["games"])


def game_response(game: Game) -> GameResponse:
    return GameResponse(
        id=game.id,
        league=game.league,
        home_team_id=game.home_team_id,
        away_team_id=game.away_team_id,
        home_team=game.home_team,
        away_team=game.away_team,
        game_key=game.game_key,
        scheduled_time=game.scheduled_time,
        status=game.status,
        home_score=game.home_score,
        away_score=game.away_score,
        is_final=game.is_final,
    )


@router.get("", response_model=list[GameResponse])
async def list_games(
    league: str | None = None,
    include_final: bool = False,
    limit: int = Query(default=100, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
) -> list[GameResponse]:
    stmt = select(Game)
    if league:
        stmt = stmt.where(Game.league == league.lower())
    if not include_final:
        stmt = stmt.where(Game.is_final.is_(False))
    games = (await session.scalars(stmt.order_by(Game.scheduled_time).limit(limit))).all()
    return [game_response(g) for g in games]


@router.get("/{game_id}", response_model=GameResponse)
async def get_game(game_id: int, session: AsyncSession = Depends(get_session)) -> GameResponse:
    game = await session.get(Game, game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return game_response(game)
