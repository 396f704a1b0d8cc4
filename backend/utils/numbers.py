"""Decimal helpers for prices, percentages and currency amounts."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from backend.utils.constants import MONEY_QUANTUM, PERCENT_QUANTUM


def to_decimal(value) -> Decimal:
    """Coerce a number or numeric string to Decimal. Raises ValueError."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    elif isinstance(value, float):
        # Go through repr so 68050.1 stays 68050.1 rather than its binary expansion
        result = Decimal(repr(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def round_percent(value: Decimal) -> Decimal:
    return value.quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


def round_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)
