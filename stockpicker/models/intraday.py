"""Intraday recommendation table: three targets, BUY or SELL."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from stockpicker.database import Base


class IntradayRecommendationRow(Base):
    """Persisted intraday recommendation. Prices in currency units, 2 dp."""

    __tablename__ = "intraday_recommendations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    stock_name: Mapped[str] = mapped_column(String(50), nullable=False)
    trade_side: Mapped[str] = mapped_column(String(4), nullable=False)  # BUY, SELL
    recommended_price: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False)
    current_price: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False)
    target1: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False)
    target2: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False)
    target3: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False)
    stoploss: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False)
    exit_reason: Mapped[str | None] = mapped_column(String(20), nullable=True)
    exit_price: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=True)
    exited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("ix_intraday_recommendations_created_at", "created_at"),
    )
