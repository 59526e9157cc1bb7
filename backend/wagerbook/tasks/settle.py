from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wagerbook.data_providers.espn import ESPNClient
from wagerbook.services.credit_ledger import CreditLedger
from wagerbook.services.identity_resolver import IdentityResolver
from wagerbook.services.settlement_service import settle_pending_wagers
from wagerbook.tasks.fetch_results import sync_schedule

logger = logging.getLogger(__name__)

ADVISORY_LOCK_KEY = 927412


async def _try_lock(session: AsyncSession) -> bool:
    if session.bind.dialect.name != "postgresql":
        return True
    return bool(await session.scalar(text("SELECT pg_try_advisory_lock(:key)"), {"key": ADVISORY_LOCK_KEY}))


async def _unlock(session: AsyncSession) -> None:
    if session.bind.dialect.name == "postgresql":
        await session.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": ADVISORY_LOCK_KEY})
        await session.commit()


async def run_settlement_pipeline(
    session_factory: async_sessionmaker[AsyncSession],
    ledger: CreditLedger,
    resolver: IdentityResolver,
    espn_client: ESPNClient | None,
    leagues: Sequence[str],
) -> dict:
    """Score sync, then settlement, then an invariant audit. Overlapping runs are skipped."""
    async with session_factory() as lock_session:
        if not await _try_lock(lock_session):
            logger.info("settlement pipeline already running; skipping")
            return {"skipped": True}
        try:
            schedule = {}
            if espn_client is not None:
                schedule = await sync_schedule(espn_client, session_factory, resolver, leagues)
            report = await settle_pending_wagers(session_factory, ledger)
            violations = await ledger.audit_invariants()
        finally:
            await _unlock(lock_session)

    return {"skipped": False, "schedule": schedule, "settlement": report.as_dict(), "invariant_violations": violations}
