from __future__ import annotations

import asyncio
import importlib.util
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from wagerbook.database import Base
from wagerbook.exceptions import ValidationFailure
from wagerbook.models.ledger_transaction import LedgerTransaction, ResetAudit
from wagerbook.models.user_ledger import UserLedger
from wagerbook.services.credit_ledger import CreditLedger, ResetSchedule
from wagerbook.tasks.weekly_reset import run_weekly_reset

SCHEDULE = ResetSchedule(weekday=2, hour=0, minute=1, timezone="America/New_York")


def test_reset_boundary_is_most_recent_wednesday_in_eastern_time() -> None:
    saturday = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)
    assert SCHEDULE.most_recent_boundary(saturday) == datetime(2026, 10, 14, 4, 1, tzinfo=UTC)


def test_reset_boundary_before_cutover_uses_previous_week() -> None:
    tuesday_night_local = datetime(2026, 10, 14, 3, 0, tzinfo=UTC)
    assert SCHEDULE.most_recent_boundary(tuesday_night_local) == datetime(2026, 10, 7, 4, 1, tzinfo=UTC)


def test_reset_boundary_at_cutover_is_inclusive() -> None:
    at = datetime(2026, 10, 14, 4, 1, tzinfo=UTC)
    assert SCHEDULE.most_recent_boundary(at) == at


def _require_aiosqlite() -> None:
    if importlib.util.find_spec("aiosqlite") is None:
        pytest.skip("aiosqlite not available in this environment")


async def _setup(db_path) -> tuple:
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, session_factory, CreditLedger(session_factory, default_credit_limit=100.0, schedule=SCHEDULE)


async def _reserve(ledger: CreditLedger, user_id: str, amount: float):
    async with ledger.user_transaction(user_id) as session:
        return await ledger.reserve(session, user_id, amount)


def test_concurrent_reservations_never_overdraw(tmp_path) -> None:
    _require_aiosqlite()

    async def run() -> None:
        engine, _, ledger = await _setup(tmp_path / "ledger.db")
        await ledger.open_account("u1")
        assert (await _reserve(ledger, "u1", 50)).ok

        first, second = await asyncio.gather(_reserve(ledger, "u1", 30), _reserve(ledger, "u1", 30))
        assert sorted([first.ok, second.ok]) == [False, True]
        rejected = first if not first.ok else second
        assert rejected.reason == "insufficient credit"
        assert rejected.remaining == 20.0
        assert rejected.shortfall == 10.0

        account = await ledger.get_ledger("u1")
        assert account.total_wagered == 80.0
        assert account.total_wagered <= account.credit_limit
        await engine.dispose()

    asyncio.run(run())


def test_reserve_reports_shortfall_and_creates_account(tmp_path) -> None:
    _require_aiosqlite()

    async def run() -> None:
        engine, _, ledger = await _setup(tmp_path / "ledger.db")
        result = await _reserve(ledger, "new-user", 130)
        assert not result.ok
        assert (result.requested, result.remaining, result.shortfall) == (130.0, 100.0, 30.0)

        ok = await _reserve(ledger, "new-user", 100)
        assert ok.ok
        assert ok.remaining == 0.0
        await engine.dispose()

    asyncio.run(run())


def test_revoked_account_cannot_reserve(tmp_path) -> None:
    _require_aiosqlite()

    async def run() -> None:
        engine, _, ledger = await _setup(tmp_path / "ledger.db")
        await ledger.open_account("u1")
        await ledger.revoke("u1")
        result = await _reserve(ledger, "u1", 10)
        assert not result.ok
        assert result.reason == "account revoked"

        await ledger.reinstate("u1")
        assert (await _reserve(ledger, "u1", 10)).ok
        await engine.dispose()

    asyncio.run(run())


def test_release_is_floored_at_zero(tmp_path) -> None:
    _require_aiosqlite()

    async def run() -> None:
        engine, session_factory, ledger = await _setup(tmp_path / "ledger.db")
        await _reserve(ledger, "u1", 40)
        async with ledger.user_transaction("u1") as session:
            account = await ledger.release(session, "u1", 75)
        assert account.total_wagered == 0.0

        async with session_factory() as session:
            entries = (await session.scalars(select(LedgerTransaction.entry_type).order_by(LedgerTransaction.id))).all()
        assert entries == ["wager", "cancel"]
        await engine.dispose()

    asyncio.run(run())


def test_set_credit_limit_below_exposure_is_rejected(tmp_path) -> None:
    _require_aiosqlite()

    async def run() -> None:
        engine, _, ledger = await _setup(tmp_path / "ledger.db")
        await _reserve(ledger, "u1", 60)
        with pytest.raises(ValidationFailure):
            await ledger.set_credit_limit("u1", 50)

        account = await ledger.set_credit_limit("u1", 250)
        assert (account.credit_limit, account.base_credit_limit) == (250.0, 250.0)
        await engine.dispose()

    asyncio.run(run())


def test_reset_restores_base_limit_and_skips_revoked(tmp_path) -> None:
    _require_aiosqlite()

    async def run() -> None:
        engine, session_factory, ledger = await _setup(tmp_path / "ledger.db")
        await _reserve(ledger, "active", 70)
        await _reserve(ledger, "gone", 20)
        await ledger.revoke("gone")
        async with session_factory() as session:
            async with session.begin():
                await session.execute(update(UserLedger).where(UserLedger.user_id == "active").values(credit_limit=80.0))

        audit = await ledger.reset_all(datetime(2026, 10, 14, 4, 1, tzinfo=UTC))
        assert (audit.users_total, audit.users_reset, audit.users_skipped) == (2, 1, 1)

        active = await ledger.get_ledger("active")
        assert active.total_wagered == 0.0
        assert active.previous_total_wagered == 70.0
        assert active.credit_limit == 100.0
        gone = await ledger.get_ledger("gone")
        assert gone.total_wagered == 20.0

        async with session_factory() as session:
            assert len((await session.scalars(select(ResetAudit))).all()) == 1
        await engine.dispose()

    asyncio.run(run())


def test_lazy_reset_applies_when_boundary_was_missed(tmp_path) -> None:
    _require_aiosqlite()

    async def run() -> None:
        engine, session_factory, ledger = await _setup(tmp_path / "ledger.db")
        await _reserve(ledger, "u1", 90)
        stale = datetime.now(UTC) - timedelta(days=14)
        async with session_factory() as session:
            async with session.begin():
                await session.execute(update(UserLedger).where(UserLedger.user_id == "u1").values(last_reset_at=stale))

        result = await _reserve(ledger, "u1", 50)
        assert result.ok
        assert result.total_wagered == 50.0
        assert not await ledger.check_reset("u1")
        await engine.dispose()

    asyncio.run(run())


def test_check_reset_runs_only_when_due(tmp_path) -> None:
    _require_aiosqlite()

    async def run() -> None:
        engine, session_factory, ledger = await _setup(tmp_path / "ledger.db")
        await _reserve(ledger, "u1", 30)
        assert not await ledger.check_reset("u1")
        assert not await ledger.check_reset("nobody")

        next_week = datetime.now(UTC) + timedelta(days=8)
        assert await ledger.check_reset("u1", next_week)
        assert (await ledger.get_ledger("u1")).total_wagered == 0.0
        await engine.dispose()

    asyncio.run(run())


def test_audit_invariants_reports_without_correcting(tmp_path, caplog) -> None:
    _require_aiosqlite()

    async def run() -> list[str]:
        engine, session_factory, ledger = await _setup(tmp_path / "ledger.db")
        await ledger.open_account("ok")
        await ledger.open_account("over")
        async with session_factory() as session:
            async with session.begin():
                await session.execute(update(UserLedger).where(UserLedger.user_id == "over").values(total_wagered=150.0))

        violations = await ledger.audit_invariants()
        assert (await ledger.get_ledger("over")).total_wagered == 150.0
        await engine.dispose()
        return violations

    with caplog.at_level("CRITICAL"):
        assert asyncio.run(run()) == ["over"]
    assert "ledger invariant violated: user=over" in caplog.text


def test_weekly_reset_task_summarizes_run(tmp_path) -> None:
    _require_aiosqlite()

    async def run() -> dict:
        engine, _, ledger = await _setup(tmp_path / "ledger.db")
        await _reserve(ledger, "a", 10)
        await _reserve(ledger, "b", 20)
        summary = await run_weekly_reset(ledger)
        assert (await ledger.get_ledger("b")).total_wagered == 0.0
        await engine.dispose()
        return summary

    summary = asyncio.run(run())
    assert summary["audit_id"] is not None
    assert (summary["users_total"], summary["users_reset"], summary["users_skipped"]) == (2, 2, 0)
    assert summary["invariant_violations"] == []


def test_idle_user_locks_are_not_retained() -> None:
    ledger = CreditLedger(async_sessionmaker(), default_credit_limit=100.0, schedule=SCHEDULE)
    lock = ledger._lock_for("u1")
    assert ledger._lock_for("u1") is lock
    del lock
    assert "u1" not in ledger._locks
