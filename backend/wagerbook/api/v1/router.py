from fastapi import APIRouter

from wagerbook.api.v1.games import router as games_router
from wagerbook.api.v1.ledger import router as ledger_router
from wagerbook.api.v1.odds import router as odds_router
from wagerbook.api.v1.settlement import router as settlement_router
from wagerbook.api.v1.wagers import router as wagers_router

api_router = APIRouter()
api_router.include_router(games_router)
api_router.include_router(odds_router)
api_router.include_router(wagers_router)
api_router.include_router(ledger_router)
api_router.include_router(settlement_router)
