from datetime import datetime

from sqlalchemy import DateTime, Float, String, func
from sqlalchemy.orm import Mapped, mapped_column

from wagerbook.database import Base


class UserLedger(Base):
    __tablename__ = "user_ledgers"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    credit_limit: Mapped[float] = mapped_column(Float)
    base_credit_limit: Mapped[float] = mapped_column(Float)
    total_wagered: Mapped[float] = mapped_column(Float, default=0.0)
    payout_balance: Mapped[float] = mapped_column(Float, default=0.0)
    previous_total_wagered: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_reset_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="active", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
