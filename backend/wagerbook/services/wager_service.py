from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from wagerbook.exceptions import CreditRejected, ValidationFailure, WagerStateError
from wagerbook.models.game import Game
from wagerbook.models.odds_quote import OddsQuote
from wagerbook.models.wager import Wager, WagerPick
from wagerbook.services.credit_ledger import CreditLedger, ReserveResult
from wagerbook.services.outcomes import MARKET_SELECTIONS
from wagerbook.services.parlay_settlement import MAX_PARLAY_LEGS, MIN_PARLAY_LEGS
from wagerbook.services.settlement_service import PENDING

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PickRequest:
    game_id: int
    market: str
    selection: str


@dataclass(frozen=True)
class SubmitResult:
    accepted: bool
    wager: Wager | None = None
    reason: str | None = None
    requested: float = 0.0
    remaining: float | None = None
    shortfall: float | None = None

    @classmethod
    def rejected(cls, reason: str, requested: float = 0.0) -> SubmitResult:
        return cls(accepted=False, reason=reason, requested=requested)


def validate_shape(wager_type: str, stake_amount: float, picks: Sequence[PickRequest]) -> None:
    """Request checks that need no database access."""
    if stake_amount is None or stake_amount <= 0:
        raise ValidationFailure("stake must be positive")
    if wager_type == "straight":
        if len(picks) != 1:
            raise ValidationFailure(f"straight wager needs exactly 1 pick, got {len(picks)}")
    elif wager_type == "parlay":
        if not MIN_PARLAY_LEGS <= len(picks) <= MAX_PARLAY_LEGS:
            raise ValidationFailure(
                f"parlay needs {MIN_PARLAY_LEGS}-{MAX_PARLAY_LEGS} picks, got {len(picks)}"
            )
    else:
        raise ValidationFailure(f"unknown wager type {wager_type!r}")

    seen: set[tuple[int, str]] = set()
    for pick in picks:
        if pick.selection not in MARKET_SELECTIONS.get(pick.market, ()):
            raise ValidationFailure(f"selection {pick.selection!r} is not valid for market {pick.market!r}")
        key = (pick.game_id, pick.market)
        if key in seen:
            raise ValidationFailure(f"duplicate leg for game {pick.game_id} market {pick.market}")
        seen.add(key)


async def _snapshot(session: AsyncSession, pick: PickRequest, leg_order: int) -> WagerPick:
    game = await session.get(Game, pick.game_id)
    if game is None:
        raise ValidationFailure(f"game {pick.game_id} not found")
    if game.is_final:
        raise ValidationFailure(f"game {pick.game_id} is already final")
    quote = await session.scalar(
        select(OddsQuote).where(
            OddsQuote.game_id == pick.game_id,
            OddsQuote.market == pick.market,
            OddsQuote.side == pick.selection,
            OddsQuote.is_current.is_(True),
        )
    )
    if quote is None:
        raise ValidationFailure(f"no current {pick.market} line for game {pick.game_id}")
    return WagerPick(
        game_id=pick.game_id,
        leg_order=leg_order,
        market=pick.market,
        selection=pick.selection,
        line_snapshot=quote.line_value,
        price_snapshot=quote.price,
        result=None,
    )


class WagerService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], ledger: CreditLedger) -> None:
        self._session_factory = session_factory
        self.ledger = ledger

    async def submit(
        self, user_id: str, wager_type: str, stake_amount: float, picks: Sequence[PickRequest]
    ) -> SubmitResult:
        """Validate, snapshot lines, reserve credit and insert the wager in one transaction."""
        try:
            validate_shape(wager_type, stake_amount, picks)
        except ValidationFailure as exc:
            return SubmitResult.rejected(str(exc), requested=stake_amount or 0.0)

        stake = round(float(stake_amount), 2)
        try:
            async with self.ledger.user_transaction(user_id) as session:
                legs = [await _snapshot(session, pick, index) for index, pick in enumerate(picks)]
                wager = Wager(
                    user_id=user_id,
                    wager_type=wager_type,
                    stake_amount=stake,
                    status=PENDING,
                    payout=0.0,
                    created_at=datetime.now(UTC),
                    settled_at=None,
                    canceled_at=None,
                    canceled_by=None,
                    picks=legs,
                )
                session.add(wager)
                await session.flush()
                result = await self.ledger.reserve(session, user_id, stake, wager_id=wager.id)
                if not result.ok:
                    raise CreditRejected(result)
        except ValidationFailure as exc:
            logger.info("wager rejected: user=%s reason=%s", user_id, exc)
            return SubmitResult.rejected(str(exc), requested=stake)
        except CreditRejected as exc:
            return self._credit_rejection(exc.result)

        logger.info(
            "wager accepted: id=%s user=%s type=%s stake=%.2f legs=%s",
            wager.id,
            user_id,
            wager_type,
            stake,
            len(legs),
        )
        return SubmitResult(
            accepted=True, wager=wager, requested=stake, remaining=result.remaining, shortfall=0.0
        )

    @staticmethod
    def _credit_rejection(result: ReserveResult) -> SubmitResult:
        return SubmitResult(
            accepted=False,
            reason=result.reason,
            requested=result.requested,
            remaining=result.remaining,
            shortfall=result.shortfall,
        )

    async def get(self, wager_id: int) -> Wager | None:
        async with self._session_factory() as session:
            return await session.scalar(select(Wager).where(Wager.id == wager_id).options(selectinload(Wager.picks)))

    async def list_for_user(self, user_id: str, status: str | None = None, limit: int = 50) -> list[Wager]:
        async with self._session_factory() as session:
            stmt = select(Wager).where(Wager.user_id == user_id).options(selectinload(Wager.picks))
            if status:
                stmt = stmt.where(Wager.status == status)
            rows = await session.scalars(stmt.order_by(Wager.id.desc()).limit(limit))
            return list(rows.all())

    async def cancel(self, wager_id: int, canceled_by: str) -> Wager:
        """pending -> canceled, releasing the stake in the same transaction."""
        wager = await self.get(wager_id)
        if wager is None:
            raise ValidationFailure(f"wager {wager_id} not found")

        async with self.ledger.user_transaction(wager.user_id) as session:
            now = datetime.now(UTC)
            result = await session.execute(
                update(Wager)
                .where(Wager.id == wager_id, Wager.status == PENDING)
                .values(status="canceled", canceled_at=now, canceled_by=canceled_by)
            )
            if result.rowcount == 0:
                current = await session.scalar(select(Wager.status).where(Wager.id == wager_id))
                reason = "already canceled" if current == "canceled" else "already settled"
                raise WagerStateError(f"wager {wager_id} {reason}")
            await self.ledger.release(session, wager.user_id, wager.stake_amount, wager_id=wager_id)

        logger.info("wager canceled: id=%s by=%s stake=%.2f", wager_id, canceled_by, wager.stake_amount)
        return await self.get(wager_id)
