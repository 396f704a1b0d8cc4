"""Pydantic schemas for the batch API."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from backend.schemas.common import JsonDecimal
from backend.utils.constants import DEFAULT_BATCH_CAPITAL
from backend.utils.timeutils import to_utc_naive


def _clean_symbols(values: list[str]) -> list[str]:
    symbols: list[str] = []
    for value in values:
        text = value.strip().upper()
        if not text:
            raise ValueError("symbols must not be empty")
        if text not in symbols:
            symbols.append(text)
    return symbols


class BatchCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    capital: Decimal = Field(default=DEFAULT_BATCH_CAPITAL, gt=0, max_digits=20, decimal_places=2)
    start_time: datetime | None = None
    symbols: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _trim_name(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("must not be empty")
        return text

    @field_validator("start_time")
    @classmethod
    def _utc_start_time(cls, value: datetime | None) -> datetime | None:
        return to_utc_naive(value)

    @field_validator("symbols")
    @classmethod
    def _validate_symbols(cls, value: list[str]) -> list[str]:
        return _clean_symbols(value)


class BatchUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    capital: Decimal | None = Field(default=None, gt=0, max_digits=20, decimal_places=2)
    start_time: datetime | None = None

    @field_validator("name", "capital")
    @classmethod
    def _not_null(cls, value):
        # Omitted fields are left alone; an explicit null cannot clear them
        if value is None:
            raise ValueError("must not be null")
        return value

    @field_validator("name")
    @classmethod
    def _trim_optional_name(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("must not be empty")
        return text

    @field_validator("start_time")
    @classmethod
    def _utc_start_time(cls, value: datetime | None) -> datetime | None:
        return to_utc_naive(value)


class SymbolsReplace(BaseModel):
    symbols: list[str]

    @field_validator("symbols")
    @classmethod
    def _validate_symbols(cls, value: list[str]) -> list[str]:
        return _clean_symbols(value)


class SymbolAdd(BaseModel):
    symbol: str = Field(min_length=1, max_length=50)

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return _clean_symbols([value])[0]


class BatchSnapshot(BaseModel):
    """Latest running state of a batch, or its starting state when empty."""
    current_capital: JsonDecimal
    cumulative_pnl: JsonDecimal
    current_drawdown: JsonDecimal
    max_drawdown: JsonDecimal
    peak_capital: JsonDecimal
    total_trades: int


class BatchRead(BaseModel):
    id: int
    name: str
    capital: JsonDecimal
    start_time: datetime | None
    symbols: list[str]
    created_at: datetime
    updated_at: datetime
    snapshot: BatchSnapshot | None = None
