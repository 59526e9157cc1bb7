from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from wagerbook.database import Base


class OddsQuote(Base):
    __tablename__ = "odds_quotes"
    __table_args__ = (
        Index("ix_odds_quote_current", "game_id", "market", "side", "is_current"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), index=True)
    market: Mapped[str] = mapped_column(String(16))
    side: Mapped[str] = mapped_column(String(8))
    line_value: Mapped[str | None] = mapped_column(String(16), nullable=True)
    price: Mapped[str] = mapped_column(String(16))
    source_provider: Mapped[str] = mapped_column(String(32))
    bookmaker: Mapped[str] = mapped_column(String(64))
    observed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
    is_current: Mapped[bool] = mapped_column(Boolean, default=True)
