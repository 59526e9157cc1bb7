from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wagerbook.config import settings
from wagerbook.exceptions import InvariantViolation, ValidationFailure
from wagerbook.models.ledger_transaction import LedgerTransaction, ResetAudit
from wagerbook.models.user_ledger import UserLedger

logger = logging.getLogger(__name__)

ACTIVE = "active"
REVOKED = "revoked"


@dataclass(frozen=True)
class ReserveResult:
    ok: bool
    requested: float
    remaining: float
    shortfall: float = 0.0
    reason: str | None = None
    total_wagered: float = 0.0


@dataclass(frozen=True)
class ResetSchedule:
    weekday: int = 2
    hour: int = 0
    minute: int = 1
    timezone: str = "America/New_York"

    @classmethod
    def from_settings(cls) -> ResetSchedule:
        return cls(settings.reset_weekday, settings.reset_hour, settings.reset_minute, settings.reset_timezone)

    def most_recent_boundary(self, now: datetime) -> datetime:
        local = _as_utc(now).astimezone(ZoneInfo(self.timezone))
        days_back = (local.weekday() - self.weekday) % 7
        boundary = (local - timedelta(days=days_back)).replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if boundary > local:
            boundary -= timedelta(days=7)
        return boundary.astimezone(UTC)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


def _cents(value: float) -> float:
    return round(float(value), 2)


class CreditLedger:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        default_credit_limit: float | None = None,
        schedule: ResetSchedule | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.default_credit_limit = _cents(
            settings.default_credit_limit if default_credit_limit is None else default_credit_limit
        )
        self.schedule = schedule or ResetSchedule.from_settings()
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def user_transaction(self, user_id: str) -> AsyncIterator[AsyncSession]:
        """Serialized read-modify-write scope for one user's ledger. Commits on clean exit."""
        async with self._lock_for(user_id):
            async with self._session_factory() as session:
                async with session.begin():
                    yield session

    async def _load(self, session: AsyncSession, user_id: str, create: bool = False) -> UserLedger | None:
        ledger = await session.scalar(select(UserLedger).where(UserLedger.user_id == user_id).with_for_update())
        if ledger is None and create:
            ledger = UserLedger(
                user_id=user_id,
                credit_limit=self.default_credit_limit,
                base_credit_limit=self.default_credit_limit,
                total_wagered=0.0,
                payout_balance=0.0,
                status=ACTIVE,
                last_reset_at=datetime.now(UTC),
                created_at=datetime.now(UTC),
            )
            session.add(ledger)
            await session.flush()
            logger.info("ledger opened: user=%s credit_limit=%.2f", user_id, ledger.credit_limit)
        return ledger

    async def _require(self, session: AsyncSession, user_id: str) -> UserLedger:
        ledger = await self._load(session, user_id)
        if ledger is None:
            raise ValidationFailure(f"no ledger for user {user_id}")
        return ledger

    def _record(
        self,
        session: AsyncSession,
        ledger: UserLedger,
        entry_type: str,
        amount: float,
        before: float,
        wager_id: int | None = None,
        description: str | None = None,
    ) -> None:
        session.add(
            LedgerTransaction(
                user_id=ledger.user_id,
                wager_id=wager_id,
                entry_type=entry_type,
                amount=_cents(amount),
                total_wagered_before=_cents(before),
                total_wagered_after=_cents(ledger.total_wagered),
                description=description,
                created_at=datetime.now(UTC),
            )
        )

    def _check_invariant(self, ledger: UserLedger) -> None:
        if ledger.status == ACTIVE and ledger.total_wagered > ledger.credit_limit + 1e-9:
            logger.critical(
                "ledger invariant violated: user=%s total_wagered=%.2f credit_limit=%.2f",
                ledger.user_id,
                ledger.total_wagered,
                ledger.credit_limit,
            )
            raise InvariantViolation(
                f"user {ledger.user_id} total_wagered {ledger.total_wagered:.2f} exceeds limit {ledger.credit_limit:.2f}"
            )

    def _reset_due(self, ledger: UserLedger, now: datetime) -> bool:
        if ledger.last_reset_at is None:
            return True
        return _as_utc(ledger.last_reset_at) < self.schedule.most_recent_boundary(now)

    def _apply_reset(self, session: AsyncSession, ledger: UserLedger, now: datetime) -> None:
        before = ledger.total_wagered
        ledger.previous_total_wagered = _cents(before)
        ledger.total_wagered = 0.0
        ledger.credit_limit = ledger.base_credit_limit
        ledger.last_reset_at = now
        self._record(session, ledger, "reset", before, before, description="weekly reset")
        logger.info("ledger reset: user=%s previous_total_wagered=%.2f", ledger.user_id, before)

    # account management

    async def open_account(self, user_id: str, credit_limit: float | None = None) -> UserLedger:
        async with self.user_transaction(user_id) as session:
            ledger = await self._load(session, user_id)
            if ledger is None:
                ledger = await self._load(session, user_id, create=True)
                if credit_limit is not None:
                    ledger.credit_limit = ledger.base_credit_limit = _cents(credit_limit)
        return ledger

    async def get_ledger(self, user_id: str) -> UserLedger | None:
        async with self._session_factory() as session:
            return await session.scalar(select(UserLedger).where(UserLedger.user_id == user_id))

    async def list_transactions(self, user_id: str, limit: int = 50) -> list[LedgerTransaction]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(LedgerTransaction)
                .where(LedgerTransaction.user_id == user_id)
                .order_by(LedgerTransaction.id.desc())
                .limit(limit)
            )
            return list(rows.all())

    async def set_credit_limit(self, user_id: str, credit_limit: float) -> UserLedger:
        new_limit = _cents(credit_limit)
        if new_limit < 0:
            raise ValidationFailure("credit limit must be non-negative")
        async with self.user_transaction(user_id) as session:
            ledger = await self._load(session, user_id, create=True)
            if new_limit < ledger.total_wagered:
                raise ValidationFailure(
                    f"credit limit {new_limit:.2f} is below current exposure {ledger.total_wagered:.2f}"
                )
            old_limit = ledger.credit_limit
            ledger.credit_limit = ledger.base_credit_limit = new_limit
            self._record(
                session,
                ledger,
                "limit_change",
                new_limit - old_limit,
                ledger.total_wagered,
                description=f"limit {old_limit:.2f} -> {new_limit:.2f}",
            )
        return ledger

    async def revoke(self, user_id: str) -> UserLedger:
        return await self._set_status(user_id, REVOKED, "revoke")

    async def reinstate(self, user_id: str) -> UserLedger:
        return await self._set_status(user_id, ACTIVE, "reinstate")

    async def _set_status(self, user_id: str, status: str, entry_type: str) -> UserLedger:
        async with self.user_transaction(user_id) as session:
            ledger = await self._require(session, user_id)
            if ledger.status != status:
                ledger.status = status
                self._record(session, ledger, entry_type, 0.0, ledger.total_wagered)
                logger.info("ledger status changed: user=%s status=%s", user_id, status)
            self._check_invariant(ledger)
        return ledger

    # exposure

    async def reserve(
        self, session: AsyncSession, user_id: str, amount: float, wager_id: int | None = None
    ) -> ReserveResult:
        """Increment exposure if the account can cover ``amount``; otherwise return a rejection."""
        amount = _cents(amount)
        if amount <= 0:
            raise ValidationFailure("reserve amount must be positive")
        ledger = await self._load(session, user_id, create=True)
        now = datetime.now(UTC)
        if ledger.status == ACTIVE and self._reset_due(ledger, now):
            self._apply_reset(session, ledger, now)

        remaining = _cents(max(ledger.credit_limit - ledger.total_wagered, 0.0))
        if ledger.status == REVOKED:
            logger.info("reserve rejected: user=%s reason=revoked", user_id)
            return ReserveResult(
                ok=False, requested=amount, remaining=0.0, shortfall=amount,
                reason="account revoked", total_wagered=ledger.total_wagered,
            )
        if ledger.total_wagered + amount > ledger.credit_limit + 1e-9:
            shortfall = _cents(amount - remaining)
            logger.info(
                "reserve rejected: user=%s requested=%.2f remaining=%.2f shortfall=%.2f",
                user_id,
                amount,
                remaining,
                shortfall,
            )
            return ReserveResult(
                ok=False, requested=amount, remaining=remaining, shortfall=shortfall,
                reason="insufficient credit", total_wagered=ledger.total_wagered,
            )

        before = ledger.total_wagered
        ledger.total_wagered = _cents(before + amount)
        self._record(session, ledger, "wager", amount, before, wager_id=wager_id)
        self._check_invariant(ledger)
        return ReserveResult(
            ok=True,
            requested=amount,
            remaining=_cents(ledger.credit_limit - ledger.total_wagered),
            total_wagered=ledger.total_wagered,
        )

    async def release(
        self, session: AsyncSession, user_id: str, amount: float, wager_id: int | None = None
    ) -> UserLedger:
        ledger = await self._require(session, user_id)
        before = ledger.total_wagered
        ledger.total_wagered = _cents(max(before - _cents(amount), 0.0))
        if before < amount:
            logger.warning("release floored at zero: user=%s total_wagered=%.2f amount=%.2f", user_id, before, amount)
        self._record(session, ledger, "cancel", -amount, before, wager_id=wager_id)
        return ledger

    async def credit_payout(
        self, session: AsyncSession, user_id: str, amount: float, wager_id: int | None = None
    ) -> UserLedger:
        ledger = await self._require(session, user_id)
        ledger.payout_balance = _cents((ledger.payout_balance or 0.0) + amount)
        self._record(session, ledger, "payout", amount, ledger.total_wagered, wager_id=wager_id)
        return ledger

    # resets

    async def reset(self, user_id: str, now: datetime | None = None) -> bool:
        """Zero exposure and restore the base limit. Revoked accounts are left untouched."""
        now = now or datetime.now(UTC)
        async with self.user_transaction(user_id) as session:
            ledger = await self._require(session, user_id)
            if ledger.status == REVOKED:
                logger.info("reset skipped for revoked user=%s", user_id)
                return False
            self._apply_reset(session, ledger, now)
        return True

    async def check_reset(self, user_id: str, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        async with self.user_transaction(user_id) as session:
            ledger = await self._load(session, user_id)
            if ledger is None or ledger.status == REVOKED or not self._reset_due(ledger, now):
                return False
            self._apply_reset(session, ledger, now)
        return True

    async def reset_all(self, now: datetime | None = None) -> ResetAudit:
        now = now or datetime.now(UTC)
        async with self._session_factory() as session:
            user_ids = list((await session.scalars(select(UserLedger.user_id).order_by(UserLedger.user_id))).all())

        reset = skipped = 0
        for user_id in user_ids:
            try:
                if await self.reset(user_id, now):
                    reset += 1
                else:
                    skipped += 1
            except Exception:
                logger.exception("reset failed for user=%s", user_id)
                skipped += 1

        audit = ResetAudit(users_total=len(user_ids), users_reset=reset, users_skipped=skipped, created_at=now)
        async with self._session_factory() as session:
            async with session.begin():
                session.add(audit)
        logger.info("weekly reset complete: users=%s reset=%s skipped=%s", len(user_ids), reset, skipped)
        return audit

    async def audit_invariants(self) -> list[str]:
        """Report active users whose exposure exceeds their limit. Nothing is corrected."""
        async with self._session_factory() as session:
            rows = (
                await session.scalars(
                    select(UserLedger).where(
                        UserLedger.status == ACTIVE,
                        UserLedger.total_wagered > UserLedger.credit_limit,
                    )
                )
            ).all()
        for ledger in rows:
            logger.critical(
                "ledger invariant violated: user=%s total_wagered=%.2f credit_limit=%.2f",
                ledger.user_id,
                ledger.total_wagered,
                ledger.credit_limit,
            )
        return [ledger.user_id for ledger in rows]
