"""Turn inbound alerts into canonical signals.

Two shapes are accepted:

* a structured record (JSON object / form fields) with at least ``symbol``
  and ``price``;
* a free-text order-fill sentence, e.g.
  ``sell 2000 @ 68050.0 on BTCUSD.P (2026-02-26T13:51:00Z). Position: -2000 @ avg 68050.0. Order ID: Short``

Text variants are plain functions returning a ``ParseResult``; new formats
are added by appending to ``TEXT_PARSERS``. All functions here are pure.
"""

import json
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal

from pydantic import ValidationError as PydanticValidationError

from backend.errors import ParseError, ValidationError
from backend.schemas.signal import Signal, WebhookPayload
from backend.utils.constants import (
    DIRECTION_BEARISH,
    DIRECTION_BULLISH,
    KIND_ENTRY,
    KIND_EXIT,
)
from backend.utils.numbers import to_decimal
from backend.utils.timeutils import parse_iso_timestamp


@dataclass(frozen=True)
class ParseResult:
    """Outcome of one text parser: a signal, or the reason it did not match."""
    signal: Signal | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.signal is not None


_NUMBER = r"[-+]?\d+(?:\.\d+)?"

ORDER_FILL_PATTERN = re.compile(
    r"^(?P<action>buy|sell)\s+(?P<quantity>" + _NUMBER + r")"
    r"\s+@\s+(?P<price>" + _NUMBER + r")"
    r"\s+on\s+(?P<symbol>[^\s()]+)"
    r"\s+\((?P<timestamp>[^()]+)\)\."
    r"\s+Position:\s+(?P<position>" + _NUMBER + r")"
    r"\s+@\s+avg\s+(?P<avg_price>" + _NUMBER + r")\."
    r"\s+Order ID:\s*(?P<order_id>\S.*?)\s*$",
    re.IGNORECASE,
)


def parse_order_fill_text(text: str) -> ParseResult:
    """Parse the strategy order-fill sentence.

    A flat resulting position (0) means the fill closed a trade; otherwise it
    opened one on the side given by the sign of the position.
    """
    match = ORDER_FILL_PATTERN.match(text.strip())
    if match is None:
        return ParseResult(reason="text does not match the order fill template")

    action = match["action"].lower()
    try:
        timestamp = parse_iso_timestamp(match["timestamp"])
    except ValueError:
        return ParseResult(reason=f"invalid timestamp: {match['timestamp']!r}")
    position = to_decimal(match["position"])

    if position == 0:
        kind = KIND_EXIT
        direction = DIRECTION_BULLISH if action == "buy" else DIRECTION_BEARISH
    else:
        kind = KIND_ENTRY
        direction = DIRECTION_BULLISH if position > 0 else DIRECTION_BEARISH

    try:
        signal = Signal(
            symbol=match["symbol"],
            direction=direction,
            timeframe="",
            kind=kind,
            price=Decimal(match["price"]),
            timestamp=timestamp,
            raw_text=text,
            payload={
                "text": text,
                "action": action,
                "quantity": match["quantity"],
                "price": match["price"],
                "symbol": match["symbol"],
                "timestamp": match["timestamp"],
                "position": match["position"],
                "avg_price": match["avg_price"],
                "order_id": match["order_id"],
            },
        )
    except PydanticValidationError as e:
        return ParseResult(reason=_describe_errors(e))
    return ParseResult(signal=signal)


TEXT_PARSERS: list[Callable[[str], ParseResult]] = [parse_order_fill_text]


def parse_text(text: str) -> Signal:
    """Try each text variant in turn. Raises ParseError when none matches."""
    if not text or not text.strip():
        raise ParseError("Empty alert text")
    reasons = []
    for parser in TEXT_PARSERS:
        result = parser(text)
        if result.ok:
            return result.signal
        reasons.append(result.reason)
    raise ParseError("Unrecognized alert: " + "; ".join(reasons))


def parse_structured(payload: Mapping) -> Signal:
    """Validate a structured alert. Raises ValidationError on missing/invalid fields."""
    try:
        data = WebhookPayload.model_validate(dict(payload))
    except PydanticValidationError as e:
        errors = [
            {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
            for err in e.errors(include_url=False)
        ]
        missing = [err["loc"][0] for err in errors if err["msg"] == "Field required"]
        if missing:
            detail = f"Missing required fields: {', '.join(missing)}"
        else:
            detail = f"Invalid signal: {_describe_errors(e)}"
        raise ValidationError(detail, errors=errors) from e

    return Signal(
        symbol=data.symbol,
        direction=data.side,
        timeframe=data.timeframe or "",
        kind=data.type,
        price=data.price,
        timestamp=data.timestamp,
        close_on_flip=data.closeonflip,
        payload=_jsonable(payload),
    )


def parse_alert(data) -> Signal:
    """Sniff the shape of an inbound alert and dispatch to the matching parser."""
    if isinstance(data, Mapping):
        return parse_structured(data)
    if isinstance(data, (bytes, bytearray)):
        data = data.decode("utf-8", errors="replace")
    if isinstance(data, str):
        text = data.strip()
        if text.startswith("{"):
            try:
                decoded = json.loads(text)
            except json.JSONDecodeError:
                raise ParseError("Alert looks like JSON but could not be decoded")
            if isinstance(decoded, Mapping):
                return parse_structured(decoded)
        return parse_text(text)
    raise ValidationError(f"Unsupported alert body of type {type(data).__name__}")


def _describe_errors(error: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'signal'}: {err['msg']}"
        for err in error.errors(include_url=False)
    )


def _jsonable(payload: Mapping) -> dict:
    # Round-trip through json so the audit copy only holds JSON types
    return json.loads(json.dumps(dict(payload), default=str))
