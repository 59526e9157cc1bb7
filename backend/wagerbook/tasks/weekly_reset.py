from __future__ import annotations

import logging
from datetime import datetime

from wagerbook.services.credit_ledger import CreditLedger

logger = logging.getLogger(__name__)


async def run_weekly_reset(ledger: CreditLedger, now: datetime | None = None) -> dict:
    audit = await ledger.reset_all(now)
    violations = await ledger.audit_invariants()
    return {
        "audit_id": audit.id,
        "users_total": audit.users_total,
        "users_reset": audit.users_reset,
        "users_skipped": audit.users_skipped,
        "invariant_violations": violations,
    }
