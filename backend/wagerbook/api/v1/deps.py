from fastapi import Request

from wagerbook.services.credit_ledger import CreditLedger
from wagerbook.services.wager_service import WagerService


def get_ledger(request: Request) -> CreditLedger:
    return request.app.state.ledger


def get_wager_service(request: Request) -> WagerService:
    return request.app.state.wager_service