"""Shared constants and defaults for trades, batches and batch logs."""

from decimal import Decimal

DEFAULT_BATCH_CAPITAL = Decimal("100000")

# Stored precision: percentages to 4 dp, currency to 2 dp
PERCENT_QUANTUM = Decimal("0.0001")
MONEY_QUANTUM = Decimal("0.01")

DIRECTION_BULLISH = "bullish"
DIRECTION_BEARISH = "bearish"

# Aliases accepted on inbound signals, normalized before storage
DIRECTION_ALIASES: dict[str, str] = {
    "bullish": DIRECTION_BULLISH,
    "long": DIRECTION_BULLISH,
    "bearish": DIRECTION_BEARISH,
    "short": DIRECTION_BEARISH,
}

# Stored directions that count as long when computing PnL
LONG_DIRECTIONS = ("bullish", "long")

KIND_ENTRY = "entry"
KIND_EXIT = "exit"

STATUS_OPEN = "open"
STATUS_CLOSED = "closed"

TRADES_PAGE_LIMIT = 200
TRADE_LOG_PAGE_LIMIT = 500
