"""Batch model: a named portfolio of instruments with a starting capital."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from backend.utils.constants import DEFAULT_BATCH_CAPITAL
from backend.utils.timeutils import utcnow


class Batch(SQLModel, table=True):
    __tablename__ = "batch"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    capital: Decimal = Field(default=DEFAULT_BATCH_CAPITAL, max_digits=20, decimal_places=2)
    start_time: datetime | None = None  # None = consider all history
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class BatchSymbol(SQLModel, table=True):
    """Membership row: one instrument symbol in one batch."""

    __tablename__ = "batch_symbol"
    __table_args__ = (UniqueConstraint("batch_id", "symbol", name="uq_batch_symbol"),)

    id: int | None = Field(default=None, primary_key=True)
    batch_id: int = Field(foreign_key="batch.id", index=True, ondelete="CASCADE")
    symbol: str = Field(max_length=50, index=True)
    created_at: datetime = Field(default_factory=utcnow)
