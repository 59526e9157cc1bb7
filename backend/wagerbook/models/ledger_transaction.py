from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from wagerbook.database import Base


class LedgerTransaction(Base):
    __tablename__ = "ledger_transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("user_ledgers.user_id"), index=True)
    wager_id: Mapped[int | None] = mapped_column(ForeignKey("wagers.id"), nullable=True, index=True)
    entry_type: Mapped[str] = mapped_column(String(16), index=True)
    amount: Mapped[float] = mapped_column(Float)
    total_wagered_before: Mapped[float] = mapped_column(Float)
    total_wagered_after: Mapped[float] = mapped_column(Float)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)


class ResetAudit(Base):
    __tablename__ = "reset_audits"

    id: Mapped[int] = mapped_column(primary_key=True)
    users_total: Mapped[int] = mapped_column(Integer)
    users_reset: Mapped[int] = mapped_column(Integer)
    users_skipped: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
