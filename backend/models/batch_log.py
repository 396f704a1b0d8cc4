"""BatchLogEntry model: running capital / drawdown after each closed trade in a batch."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Index, UniqueConstraint
from sqlmodel import SQLModel, Field


class BatchLogEntry(SQLModel, table=True):
    __tablename__ = "batch_log_entry"
    __table_args__ = (
        UniqueConstraint("batch_id", "trade_id", name="uq_batch_trade"),
        UniqueConstraint("batch_id", "trade_number", name="uq_batch_trade_number"),
        Index("ix_batch_log_entry_batch_exit_time", "batch_id", "exit_time"),
    )

    id: int | None = Field(default=None, primary_key=True)
    batch_id: int = Field(foreign_key="batch.id", ondelete="CASCADE")
    trade_id: int = Field(foreign_key="trade.id", ondelete="CASCADE")

    # Copied from the trade at the time it closed
    symbol: str = Field(max_length=50)
    direction: str
    entry_price: Decimal = Field(max_digits=20, decimal_places=8)
    exit_price: Decimal = Field(max_digits=20, decimal_places=8)
    entry_time: datetime
    exit_time: datetime
    pnl_percent: Decimal = Field(max_digits=12, decimal_places=4)

    # Running state after this trade
    pnl_absolute: Decimal = Field(max_digits=20, decimal_places=2)
    capital_before: Decimal = Field(max_digits=20, decimal_places=2)
    capital_after: Decimal = Field(max_digits=20, decimal_places=2)
    cumulative_pnl: Decimal = Field(max_digits=20, decimal_places=2)
    drawdown: Decimal = Field(max_digits=12, decimal_places=4)  # % below running peak
    max_drawdown: Decimal = Field(max_digits=12, decimal_places=4)
    peak_capital: Decimal = Field(max_digits=20, decimal_places=2)
    trade_number: int  # 1-based position in the batch's exit-time order

    # Unrounded running capital and peak, carried into the next append
    capital_exact: str
    peak_exact: str
