from wagerbook.models.game import Game
from wagerbook.models.ledger_transaction import LedgerTransaction, ResetAudit
from wagerbook.models.odds_quote import OddsQuote
from wagerbook.models.user_ledger import UserLedger
from wagerbook.models.wager import Wager, WagerPick

__all__ = ["Game", "OddsQuote", "Wager", "WagerPick", "UserLedger", "LedgerTransaction", "ResetAudit"]
