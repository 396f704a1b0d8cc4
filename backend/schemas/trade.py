"""Pydantic schemas for the trade API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from backend.schemas.common import JsonDecimal


class TradeRead(BaseModel):
    id: int
    symbol: str
    timeframe: str
    direction: str
    entry_price: JsonDecimal
    entry_time: datetime
    exit_price: JsonDecimal | None
    exit_time: datetime | None
    pnl_percent: JsonDecimal | None
    status: str
    entry_payload: dict[str, Any] | None
    exit_payload: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SignalResponse(BaseModel):
    success: bool = True
    action: str  # "entry" or "exit"
    trade: TradeRead
