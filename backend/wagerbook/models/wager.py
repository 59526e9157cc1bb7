from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wagerbook.database import Base


class Wager(Base):
    __tablename__ = "wagers"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    wager_type: Mapped[str] = mapped_column(String(16))
    stake_amount: Mapped[float] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String(16), default="pending", index=True)
    payout: Mapped[float] = mapped_column(Float, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    canceled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    canceled_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    picks: Mapped[list["WagerPick"]] = relationship(
        "WagerPick", back_populates="wager", order_by="WagerPick.leg_order", cascade="all, delete-orphan"
    )


class WagerPick(Base):
    __tablename__ = "wager_picks"

    id: Mapped[int] = mapped_column(primary_key=True)
    wager_id: Mapped[int] = mapped_column(ForeignKey("wagers.id"), index=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), index=True)
    leg_order: Mapped[int] = mapped_column(Integer)
    market: Mapped[str] = mapped_column(String(16))
    selection: Mapped[str] = mapped_column(String(8))
    line_snapshot: Mapped[str | None] = mapped_column(String(16), nullable=True)
    price_snapshot: Mapped[str] = mapped_column(String(16))
    result: Mapped[str | None] = mapped_column(String(8), nullable=True)

    wager: Mapped[Wager] = relationship("Wager", back_populates="picks")
