"""Trade ledger: matches signals to positions.

Per symbol the ledger moves between "no open trade" and "open trade". An
entry opens a trade; an exit closes the oldest open trade and fixes its PnL.
Once closed a trade never changes again.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from backend.models.trade import Trade
from backend.repositories.base import UnitOfWork
from backend.schemas.signal import Signal
from backend.utils.constants import (
    DIRECTION_BULLISH,
    KIND_ENTRY,
    KIND_EXIT,
    LONG_DIRECTIONS,
    STATUS_CLOSED,
    STATUS_OPEN,
)
from backend.utils.numbers import round_percent
from backend.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class LedgerResult:
    action: str  # "entry" or "exit"
    trade: Trade


def compute_pnl_percent(direction: str, entry_price: Decimal, exit_price: Decimal) -> Decimal:
    """Realized PnL in percent of the entry price, rounded to 4 dp.

    Long trades profit when the price rises, short trades when it falls.
    """
    if direction in LONG_DIRECTIONS:
        change = exit_price - entry_price
    else:
        change = entry_price - exit_price
    return round_percent(change / entry_price * 100)


class TradeLedger:
    def __init__(self, uow: UnitOfWork):
        self.trades = uow.trades

    def find_open_trade(self, symbol: str) -> Trade | None:
        return self.trades.find_open(symbol)

    def open_trade(self, signal: Signal) -> Trade:
        trade = Trade(
            symbol=signal.symbol,
            timeframe=signal.timeframe or "",
            direction=signal.direction or DIRECTION_BULLISH,
            entry_price=signal.price,
            entry_time=signal.timestamp or utcnow(),
            status=STATUS_OPEN,
            entry_payload=signal.payload or None,
        )
        trade = self.trades.add(trade)
        logger.info(
            f"Opened trade #{trade.id} {trade.symbol} {trade.direction} @ {trade.entry_price}"
        )
        return trade

    def close_trade(self, trade: Trade, signal: Signal) -> Trade:
        if trade.status == STATUS_CLOSED:
            raise ValueError(f"Trade {trade.id} is already closed")

        # PnL follows the direction the trade was opened with, not the exit signal's
        trade.exit_price = signal.price
        trade.exit_time = signal.timestamp or utcnow()
        trade.pnl_percent = compute_pnl_percent(trade.direction, trade.entry_price, signal.price)
        trade.status = STATUS_CLOSED
        trade.exit_payload = signal.payload or None
        trade.updated_at = utcnow()
        trade = self.trades.save(trade)
        logger.info(
            f"Closed trade #{trade.id} {trade.symbol} {trade.direction} "
            f"{trade.entry_price} -> {trade.exit_price} pnl={trade.pnl_percent}%"
        )
        return trade

    def apply(self, signal: Signal) -> LedgerResult:
        """Match one signal against the symbol's open trade.

        With an open trade, anything but an explicit entry closes it (an
        absent kind auto-detects to exit). Without one, every signal opens a
        new trade, including an explicit exit.
        """
        open_trade = self.find_open_trade(signal.symbol)
        if open_trade is not None and signal.kind != KIND_ENTRY:
            return LedgerResult(action=KIND_EXIT, trade=self.close_trade(open_trade, signal))
        return LedgerResult(action=KIND_ENTRY, trade=self.open_trade(signal))
