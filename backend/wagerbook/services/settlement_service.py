from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from wagerbook.exceptions import ValidationFailure
from wagerbook.models.game import Game
from wagerbook.models.wager import Wager, WagerPick
from wagerbook.services.credit_ledger import CreditLedger
from wagerbook.services.odds_normalizer import parse_american_price
from wagerbook.services.outcomes import PickOutcome, evaluate_pick
from wagerbook.services.parlay_settlement import settle_parlay
from wagerbook.utils.odds_math import straight_payout

logger = logging.getLogger(__name__)

PENDING = "pending"
TERMINAL_STATUSES = frozenset({"won", "lost", "push", "canceled"})


@dataclass(frozen=True)
class SettlementDecision:
    status: str
    payout: float
    pick_results: tuple[tuple[int | None, str], ...] = ()
    changed: bool = False


@dataclass
class SettlementFailure:
    wager_id: int
    reason: str


@dataclass
class SettlementReport:
    total: int = 0
    settled: int = 0
    won: int = 0
    lost: int = 0
    push: int = 0
    pending: int = 0
    failures: list[SettlementFailure] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "total": self.total,
            "settled": self.settled,
            "won": self.won,
            "lost": self.lost,
            "push": self.push,
            "pending": self.pending,
            "failures": [{"wager_id": f.wager_id, "reason": f.reason} for f in self.failures],
        }


def _straight(wager: Any, pick: Any, outcome: PickOutcome) -> tuple[str, float]:
    stake = float(wager.stake_amount)
    if outcome == PickOutcome.PUSH:
        return "push", round(stake, 2)
    if outcome == PickOutcome.LOSS:
        return "lost", 0.0
    price = parse_american_price(pick.price_snapshot)
    if price is None:
        raise ValidationFailure(f"wager {wager.id} has unusable price snapshot {pick.price_snapshot!r}")
    return "won", straight_payout(stake, price)


def settle_wager(wager: Any, games_by_id: Mapping[int, Any]) -> SettlementDecision:
    """Pure settlement decision. Terminal wagers come back unchanged so a rerun never pays twice."""
    if wager.status in TERMINAL_STATUSES:
        return SettlementDecision(status=wager.status, payout=float(wager.payout or 0.0), changed=False)

    picks = sorted(wager.picks, key=lambda p: p.leg_order)
    if not picks:
        raise ValidationFailure(f"wager {wager.id} has no picks")

    for pick in picks:
        game = games_by_id.get(pick.game_id)
        if game is None or not game.is_final:
            return SettlementDecision(status=PENDING, payout=0.0, changed=False)

    outcomes = [evaluate_pick(pick, games_by_id[pick.game_id]) for pick in picks]
    unknown = [pick.leg_order for pick, outcome in zip(picks, outcomes) if outcome == PickOutcome.UNKNOWN]
    if unknown:
        raise ValidationFailure(f"wager {wager.id} has ungradable legs {unknown}")

    if wager.wager_type == "straight":
        if len(picks) != 1:
            raise ValidationFailure(f"straight wager {wager.id} has {len(picks)} picks")
        status, payout = _straight(wager, picks[0], outcomes[0])
    elif wager.wager_type == "parlay":
        status, payout = settle_parlay(float(wager.stake_amount), outcomes)
    else:
        raise ValidationFailure(f"wager {wager.id} has unknown type {wager.wager_type!r}")

    return SettlementDecision(
        status=status,
        payout=payout,
        pick_results=tuple((pick.id, outcome.value) for pick, outcome in zip(picks, outcomes)),
        changed=True,
    )


async def _apply_decision(ledger: CreditLedger, wager: Wager, decision: SettlementDecision) -> bool:
    async with ledger.user_transaction(wager.user_id) as session:
        result = await session.execute(
            update(Wager)
            .where(Wager.id == wager.id, Wager.status == PENDING)
            .values(status=decision.status, payout=decision.payout, settled_at=datetime.now(UTC))
        )
        if result.rowcount == 0:
            logger.info("wager %s already left pending; skipping", wager.id)
            return False
        for pick_id, pick_result in decision.pick_results:
            await session.execute(update(WagerPick).where(WagerPick.id == pick_id).values(result=pick_result))
        if decision.payout > 0:
            await ledger.credit_payout(session, wager.user_id, decision.payout, wager_id=wager.id)
    return True


async def load_pending(session: AsyncSession) -> tuple[list[Wager], dict[int, Game]]:
    wagers = list(
        (
            await session.scalars(
                select(Wager).where(Wager.status == PENDING).options(selectinload(Wager.picks)).order_by(Wager.id)
            )
        ).all()
    )
    game_ids = {pick.game_id for wager in wagers for pick in wager.picks}
    games: dict[int, Game] = {}
    if game_ids:
        games = {g.id: g for g in (await session.scalars(select(Game).where(Game.id.in_(game_ids)))).all()}
    return wagers, games


async def settle_pending_wagers(
    session_factory: async_sessionmaker[AsyncSession], ledger: CreditLedger
) -> SettlementReport:
    async with session_factory() as session:
        wagers, games = await load_pending(session)

    report = SettlementReport(total=len(wagers))
    for wager in wagers:
        try:
            decision = settle_wager(wager, games)
        except ValidationFailure as exc:
            logger.warning("wager %s not settled: %s", wager.id, exc)
            report.failures.append(SettlementFailure(wager.id, str(exc)))
            continue
        except Exception as exc:
            logger.exception("failed to evaluate wager %s", wager.id)
            report.failures.append(SettlementFailure(wager.id, f"{type(exc).__name__}: {exc}"))
            continue

        if not decision.changed:
            report.pending += 1
            continue

        try:
            applied = await _apply_decision(ledger, wager, decision)
        except Exception as exc:
            logger.exception("failed to apply settlement for wager %s", wager.id)
            report.failures.append(SettlementFailure(wager.id, f"{type(exc).__name__}: {exc}"))
            continue

        if not applied:
            continue
        report.settled += 1
        if decision.status == "won":
            report.won += 1
        elif decision.status == "lost":
            report.lost += 1
        else:
            report.push += 1
        logger.info("wager settled: id=%s status=%s payout=%.2f", wager.id, decision.status, decision.payout)

    logger.info(
        "settlement run complete: total=%s settled=%s pending=%s failures=%s",
        report.total,
        report.settled,
        report.pending,
        len(report.failures),
    )
    return report
