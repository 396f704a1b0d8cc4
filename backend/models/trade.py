"""Trade model: one matched (or still open) position in one instrument."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Index
from sqlmodel import SQLModel, Field, Column

from backend.utils.timeutils import utcnow


class Trade(SQLModel, table=True):
    __tablename__ = "trade"
    __table_args__ = (Index("ix_trade_symbol_status", "symbol", "status"),)

    id: int | None = Field(default=None, primary_key=True)
    symbol: str = Field(index=True, max_length=50)
    timeframe: str = Field(default="", max_length=20)
    direction: str = "bullish"  # "bullish" (long) or "bearish" (short)

    entry_price: Decimal = Field(max_digits=20, decimal_places=8)
    entry_time: datetime = Field(index=True)
    exit_price: Decimal | None = Field(default=None, max_digits=20, decimal_places=8)
    exit_time: datetime | None = Field(default=None, index=True)
    pnl_percent: Decimal | None = Field(default=None, max_digits=12, decimal_places=4)  # fixed at close

    status: str = Field(default="open", index=True)  # "open", "closed"

    # Raw inbound signals that opened / closed the trade, kept for audit
    entry_payload: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    exit_payload: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
