from __future__ import annotations

import asyncio
import importlib.util
from datetime import UTC, datetime
from types import SimpleNamespace

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from wagerbook.database import Base
from wagerbook.exceptions import ValidationFailure
from wagerbook.models.game import Game
from wagerbook.models.ledger_transaction import LedgerTransaction
from wagerbook.models.user_ledger import UserLedger
from wagerbook.models.wager import Wager, WagerPick
from wagerbook.services.credit_ledger import CreditLedger
from wagerbook.services.outcomes import PickOutcome
from wagerbook.services.parlay_settlement import PARLAY_MULTIPLIERS, parlay_multiplier, settle_parlay
from wagerbook.services.settlement_service import settle_pending_wagers, settle_wager
from wagerbook.tasks.settle import run_settlement_pipeline


def _final(game_id: int, home: int, away: int, is_final: bool = True) -> SimpleNamespace:
    return SimpleNamespace(id=game_id, home_score=home, away_score=away, is_final=is_final)


def _leg(game_id: int, market: str, selection: str, line: str | None, price: str, order: int = 0) -> SimpleNamespace:
    return SimpleNamespace(
        id=100 + order,
        game_id=game_id,
        market=market,
        selection=selection,
        line_snapshot=line,
        price_snapshot=price,
        leg_order=order,
    )


def _wager(wager_type: str, stake: float, picks: list, status: str = "pending", payout: float = 0.0) -> SimpleNamespace:
    return SimpleNamespace(id=1, wager_type=wager_type, stake_amount=stake, picks=picks, status=status, payout=payout)


def test_straight_moneyline_win_pays_stake_plus_profit() -> None:
    wager = _wager("straight", 100, [_leg(1, "moneyline", "home", None, "+150")])
    decision = settle_wager(wager, {1: _final(1, 27, 20)})
    assert decision.status == "won"
    assert decision.payout == 250.0
    assert decision.changed
    assert decision.pick_results == ((100, "win"),)


def test_straight_push_returns_stake() -> None:
    wager = _wager("straight", 40, [_leg(1, "spread", "home", "-3", "-110")])
    decision = settle_wager(wager, {1: _final(1, 24, 21)})
    assert (decision.status, decision.payout) == ("push", 40.0)


def test_straight_loss_pays_nothing() -> None:
    wager = _wager("straight", 40, [_leg(1, "total", "under", "41.5", "-110")])
    decision = settle_wager(wager, {1: _final(1, 24, 21)})
    assert (decision.status, decision.payout) == ("lost", 0.0)


def test_parlay_push_leg_loses_the_parlay() -> None:
    picks = [
        _leg(1, "moneyline", "home", None, "-150", 0),
        _leg(2, "moneyline", "away", None, "+120", 1),
        _leg(3, "total", "over", "40.5", "-110", 2),
        _leg(4, "spread", "home", "-3", "-110", 3),
    ]
    games = {1: _final(1, 30, 10), 2: _final(2, 14, 17), 3: _final(3, 21, 21), 4: _final(4, 24, 21)}
    decision = settle_wager(_wager("parlay", 10, picks), games)
    assert (decision.status, decision.payout) == ("lost", 0.0)
    assert decision.pick_results[-1] == (103, "push")


def test_parlay_all_wins_pays_multiplier() -> None:
    picks = [_leg(g, "moneyline", "home", None, "-110", g) for g in (1, 2, 3)]
    games = {g: _final(g, 10, 3) for g in (1, 2, 3)}
    decision = settle_wager(_wager("parlay", 10, picks), games)
    assert (decision.status, decision.payout) == ("won", 80.0)


@pytest.mark.parametrize("legs", sorted(PARLAY_MULTIPLIERS))
def test_parlay_payout_table(legs: int) -> None:
    expected = {3: 8, 4: 15, 5: 25, 6: 50, 7: 100, 8: 150, 9: 200, 10: 250}[legs]
    assert settle_parlay(10.0, [PickOutcome.WIN] * legs) == ("won", 10.0 * expected)


@pytest.mark.parametrize("legs", [0, 1, 2, 11])
def test_parlay_leg_count_outside_table_is_invalid(legs: int) -> None:
    with pytest.raises(ValidationFailure):
        parlay_multiplier(legs)


def test_any_game_not_final_keeps_wager_pending() -> None:
    picks = [_leg(g, "moneyline", "home", None, "-110", g) for g in (1, 2, 3)]
    games = {1: _final(1, 10, 3), 2: _final(2, 10, 3, is_final=False)}
    decision = settle_wager(_wager("parlay", 10, picks), games)
    assert decision.status == "pending"
    assert not decision.changed


def test_terminal_wager_is_returned_unchanged() -> None:
    wager = _wager("straight", 100, [_leg(1, "moneyline", "home", None, "+150")], status="won", payout=250.0)
    decision = settle_wager(wager, {1: _final(1, 0, 50)})
    assert (decision.status, decision.payout, decision.changed) == ("won", 250.0, False)


def test_ungradable_leg_on_final_game_raises() -> None:
    wager = _wager("straight", 100, [_leg(1, "spread", "home", "N/A", "-110")])
    with pytest.raises(ValidationFailure):
        settle_wager(wager, {1: _final(1, 10, 3)})


def test_settle_pending_wagers_integration(tmp_path) -> None:
    if importlib.util.find_spec("aiosqlite") is None:
        pytest.skip("aiosqlite not available in this environment")
    asyncio.run(_run_settle_pending_wagers(tmp_path / "settle.db"))


async def _run_settle_pending_wagers(db_path) -> None:
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    now = datetime.now(UTC)
    async with session_factory() as session:
        final_game = Game(
            league="nfl", home_team_id="nfl-lar", away_team_id="nfl-dal", home_team="Los Angeles Rams",
            away_team="Dallas Cowboys", game_key="nfl-dal|nfl-lar", scheduled_time=now, status="final",
            home_score=27, away_score=20, is_final=True,
        )
        open_game = Game(
            league="nfl", home_team_id="nfl-nyg", away_team_id="nfl-nyj", home_team="New York Giants",
            away_team="New York Jets", game_key="nfl-nyj|nfl-nyg", scheduled_time=now, status="scheduled",
            is_final=False,
        )
        session.add_all([final_game, open_game])
        session.add(
            UserLedger(user_id="u1", credit_limit=500.0, base_credit_limit=500.0, total_wagered=250.0,
                       payout_balance=0.0, status="active", last_reset_at=now)
        )
        await session.flush()

        winner = Wager(user_id="u1", wager_type="straight", stake_amount=100.0, status="pending", payout=0.0)
        winner.picks = [WagerPick(game_id=final_game.id, leg_order=0, market="moneyline", selection="home", price_snapshot="+150")]
        waiting = Wager(user_id="u1", wager_type="straight", stake_amount=50.0, status="pending", payout=0.0)
        waiting.picks = [WagerPick(game_id=open_game.id, leg_order=0, market="moneyline", selection="home", price_snapshot="-110")]
        broken = Wager(user_id="u1", wager_type="straight", stake_amount=100.0, status="pending", payout=0.0)
        broken.picks = [WagerPick(game_id=final_game.id, leg_order=0, market="spread", selection="home", line_snapshot="OFF", price_snapshot="-110")]
        session.add_all([winner, waiting, broken])
        await session.commit()

    ledger = CreditLedger(session_factory, default_credit_limit=500.0)
    report = await settle_pending_wagers(session_factory, ledger)
    assert (report.total, report.settled, report.won, report.pending) == (3, 1, 1, 1)
    assert [f.wager_id for f in report.failures] == [broken.id]

    again = await settle_pending_wagers(session_factory, ledger)
    assert again.settled == 0

    async with session_factory() as session:
        settled = await session.get(Wager, winner.id)
        assert settled.status == "won"
        assert settled.payout == 250.0
        assert settled.settled_at is not None
        account = await session.get(UserLedger, "u1")
        assert account.payout_balance == 250.0
        assert account.total_wagered == 250.0
        payouts = (
            await session.scalars(select(LedgerTransaction).where(LedgerTransaction.entry_type == "payout"))
        ).all()
        assert len(payouts) == 1
        result = await session.scalar(select(WagerPick.result).where(WagerPick.wager_id == winner.id))
        assert result == "win"

    await engine.dispose()


def test_pipeline_without_schedule_client_still_settles_and_audits(tmp_path) -> None:
    if importlib.util.find_spec("aiosqlite") is None:
        pytest.skip("aiosqlite not available in this environment")

    async def run() -> dict:
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pipeline.db'}")
        session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        ledger = CreditLedger(session_factory, default_credit_limit=100.0)
        summary = await run_settlement_pipeline(session_factory, ledger, None, None, ["nfl"])
        await engine.dispose()
        return summary

    summary = asyncio.run(run())
    assert summary["skipped"] is False
    assert summary["schedule"] == {}
    assert summary["settlement"]["total"] == 0
    assert summary["invariant_violations"] == []


def test_one_bad_wager_does_not_stop_the_batch(tmp_path) -> None:
    if importlib.util.find_spec("aiosqlite") is None:
        pytest.skip("aiosqlite not available in this environment")

    async def run() -> None:
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'batch.db'}")
        session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with session_factory() as session:
            game = Game(
                league="nfl", home_team_id="nfl-lar", away_team_id="nfl-dal", home_team="Los Angeles Rams",
                away_team="Dallas Cowboys", game_key="nfl-dal|nfl-lar", scheduled_time=datetime.now(UTC),
                status="final", home_score=27, away_score=20, is_final=True,
            )
            session.add(game)
            session.add(
                UserLedger(user_id="u1", credit_limit=500.0, base_credit_limit=500.0, total_wagered=95.0,
                           payout_balance=0.0, status="active", last_reset_at=datetime.now(UTC))
            )
            await session.flush()
            corrupt = Wager(user_id="u1", wager_type="straight", stake_amount=-5.0, status="pending", payout=0.0)
            corrupt.picks = [WagerPick(game_id=game.id, leg_order=0, market="moneyline", selection="home", price_snapshot="+150")]
            good = Wager(user_id="u1", wager_type="straight", stake_amount=100.0, status="pending", payout=0.0)
            good.picks = [WagerPick(game_id=game.id, leg_order=0, market="moneyline", selection="home", price_snapshot="+150")]
            session.add_all([corrupt, good])
            await session.commit()

        report = await settle_pending_wagers(session_factory, CreditLedger(session_factory, default_credit_limit=500.0))
        assert (report.total, report.settled, report.won) == (2, 1, 1)
        assert [f.wager_id for f in report.failures] == [corrupt.id]
        assert report.failures[0].reason.startswith("ValueError")

        async with session_factory() as session:
            assert (await session.get(Wager, good.id)).payout == 250.0
            assert (await session.get(Wager, corrupt.id)).status == "pending"
        await engine.dispose()

    asyncio.run(run())
