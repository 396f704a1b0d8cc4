"""Pydantic schemas for inbound alerts and the canonical signal record."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from backend.utils.constants import DIRECTION_ALIASES, KIND_ENTRY, KIND_EXIT
from backend.utils.timeutils import to_utc_naive

_FLAG_VALUES = {
    "true": True, "1": True, "yes": True, "on": True,
    "false": False, "0": False, "no": False, "off": False,
}


def _normalize_symbol(value: str) -> str:
    text = value.strip().upper()
    if not text:
        raise ValueError("must not be empty")
    return text


class WebhookPayload(BaseModel):
    """Structured alert as posted by the charting platform.

    Only ``symbol`` and ``price`` are required. Unknown keys are kept so the
    full payload can be stored for audit.
    """

    symbol: str = Field(min_length=1, max_length=50)
    price: Decimal = Field(gt=0)
    side: str | None = None
    timeframe: str | None = Field(default=None, max_length=20)
    type: str | None = None
    closeonflip: bool | None = None
    timestamp: datetime | None = None

    model_config = {"extra": "allow"}

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return _normalize_symbol(value)

    @field_validator("side")
    @classmethod
    def _validate_side(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        side = DIRECTION_ALIASES.get(value.strip().lower())
        if side is None:
            raise ValueError("must be one of: bullish, bearish")
        return side

    @field_validator("type")
    @classmethod
    def _normalize_type(cls, value: str | None) -> str | None:
        # Anything other than an explicit entry/exit means "auto-detect"
        if value is None:
            return None
        kind = value.strip().lower()
        return kind if kind in (KIND_ENTRY, KIND_EXIT) else None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("closeonflip", mode="before")
    @classmethod
    def _lenient_flag(cls, value):
        # Informational only; unrecognized values are dropped, the raw one stays in the payload
        if value is None or isinstance(value, bool):
            return value
        return _FLAG_VALUES.get(str(value).strip().lower())


class Signal(BaseModel):
    """Canonical signal consumed by the trade ledger."""

    symbol: str = Field(min_length=1, max_length=50)
    direction: Literal["bullish", "bearish"] | None = None
    timeframe: str = ""
    kind: Literal["entry", "exit"] | None = None
    price: Decimal = Field(gt=0)
    timestamp: datetime | None = None
    close_on_flip: bool | None = None
    raw_text: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return _normalize_symbol(value)

    @field_validator("timestamp")
    @classmethod
    def _utc_timestamp(cls, value: datetime | None) -> datetime | None:
        return to_utc_naive(value)
