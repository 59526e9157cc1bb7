from contextlib import asynccontextmanager

from fastapi import FastAPI

from wagerbook.api.v1.router import api_router
from wagerbook.config import settings
from wagerbook.data_providers.espn import ESPNClient
from wagerbook.data_providers.jsonodds import JsonOddsClient
from wagerbook.data_providers.odds_api import OddsAPIClient
from wagerbook.database import AsyncSessionLocal
from wagerbook.services.credit_ledger import CreditLedger
from wagerbook.services.identity_resolver import build_resolver
from wagerbook.services.odds_merge import OddsMerger
from wagerbook.services.wager_service import WagerService


@asynccontextmanager
async def lifespan(app: FastAPI):
    resolver = build_resolver(settings.teams_file)
    ledger = CreditLedger(AsyncSessionLocal)
    espn_client = ESPNClient()
    app.state.resolver = resolver
    app.state.leagues = resolver.leagues
    app.state.ledger = ledger
    app.state.wager_service = WagerService(AsyncSessionLocal, ledger)
    app.state.merger = OddsMerger(resolver)
    app.state.espn_client = espn_client
    app.state.quote_sources = {
        "jsonodds": JsonOddsClient(),
        "the_odds_api": OddsAPIClient(),
        "espn": espn_client,
    }
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.include_router(api_router, prefix="/api/v1")
