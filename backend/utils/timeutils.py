"""Timestamp normalization. Everything is stored as naive UTC."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_iso_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into naive UTC."""
    text = text.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return to_utc_naive(datetime.fromisoformat(text))
