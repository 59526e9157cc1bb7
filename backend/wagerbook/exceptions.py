from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wagerbook.services.credit_ledger import ReserveResult


class WagerbookError(Exception):
    """Base class for errors raised by the wager engine."""


class ValidationFailure(WagerbookError):
    """Malformed line, price, pick or provider payload."""


class CreditRejected(WagerbookError):
    """Ledger refused a reservation (limit exceeded or account revoked)."""

    def __init__(self, result: ReserveResult):
        self.result = result
        super().__init__(result.reason or "credit rejected")


class SourceUnavailable(WagerbookError):
    """An external provider fetch failed or timed out."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"{provider} unavailable: {message}")


class InvariantViolation(WagerbookError):
    """total_wagered exceeded credit_limit for an active user."""


class WagerStateError(WagerbookError):
    """Attempted transition out of a terminal wager state."""
