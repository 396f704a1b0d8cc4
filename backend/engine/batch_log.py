"""Batch log engine: running capital, peak and drawdown per batch.

A batch log is a pure function of the batch's capital, start time and
membership plus the closed trades that match them, taken in (exit_time, id)
order. Two entry points keep it current:

* ``append`` adds one row when a member trade closes, carrying the running
  state forward from the batch's last row;
* ``rebuild`` throws the log away and replays the full history, used
  whenever capital, start time or membership change.

Both go through ``advance`` so they produce identical rows for the same
history. Figures are rounded only when written (4 dp for percentages, 2 dp
for currency); the running capital and peak are carried unrounded.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from backend.models.batch import Batch
from backend.models.batch_log import BatchLogEntry
from backend.models.trade import Trade
from backend.repositories.base import UnitOfWork
from backend.utils.constants import STATUS_CLOSED
from backend.utils.numbers import round_money, round_percent

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class RunningState:
    """Running totals after ``trade_number`` trades."""
    capital: Decimal
    peak: Decimal
    max_drawdown: Decimal
    trade_number: int = 0

    @classmethod
    def seed(cls, capital: Decimal) -> "RunningState":
        return cls(capital=capital, peak=capital, max_drawdown=ZERO, trade_number=0)

    @classmethod
    def from_entry(cls, entry: BatchLogEntry) -> "RunningState":
        return cls(
            capital=Decimal(entry.capital_exact),
            peak=Decimal(entry.peak_exact),
            max_drawdown=Decimal(entry.max_drawdown),
            trade_number=entry.trade_number,
        )


@dataclass(frozen=True)
class LogFigures:
    """Derived, rounded figures for one log row."""
    trade_number: int
    pnl_absolute: Decimal
    capital_before: Decimal
    capital_after: Decimal
    cumulative_pnl: Decimal
    drawdown: Decimal
    max_drawdown: Decimal
    peak_capital: Decimal
    capital_exact: str
    peak_exact: str


def advance(state: RunningState, batch_capital: Decimal, pnl_percent: Decimal) -> tuple[RunningState, LogFigures]:
    """Apply one closed trade's PnL to the running state."""
    capital_before = state.capital
    pnl_absolute = capital_before * pnl_percent / HUNDRED
    capital_after = capital_before + pnl_absolute
    cumulative_pnl = capital_after - batch_capital

    peak = max(state.peak, capital_after)
    drawdown = (peak - capital_after) / peak * HUNDRED if peak > 0 else ZERO
    # Kept at stored precision so a seed read back from the last row matches
    max_drawdown = round_percent(max(state.max_drawdown, drawdown))

    next_state = RunningState(
        capital=capital_after,
        peak=peak,
        max_drawdown=max_drawdown,
        trade_number=state.trade_number + 1,
    )
    figures = LogFigures(
        trade_number=next_state.trade_number,
        pnl_absolute=round_money(pnl_absolute),
        capital_before=round_money(capital_before),
        capital_after=round_money(capital_after),
        cumulative_pnl=round_money(cumulative_pnl),
        drawdown=round_percent(drawdown),
        max_drawdown=max_drawdown,
        peak_capital=round_money(peak),
        capital_exact=str(capital_after),
        peak_exact=str(peak),
    )
    return next_state, figures


def replay(batch_capital: Decimal, pnl_percents: list[Decimal]) -> list[LogFigures]:
    """Figures for a whole sequence of trades, starting from ``batch_capital``."""
    state = RunningState.seed(batch_capital)
    rows = []
    for pnl_percent in pnl_percents:
        state, figures = advance(state, batch_capital, pnl_percent)
        rows.append(figures)
    return rows


def _entry_fields(trade: Trade, figures: LogFigures) -> dict:
    return {
        "symbol": trade.symbol,
        "direction": trade.direction,
        "entry_price": trade.entry_price,
        "exit_price": trade.exit_price,
        "entry_time": trade.entry_time,
        "exit_time": trade.exit_time,
        "pnl_percent": trade.pnl_percent,
        "pnl_absolute": figures.pnl_absolute,
        "capital_before": figures.capital_before,
        "capital_after": figures.capital_after,
        "cumulative_pnl": figures.cumulative_pnl,
        "drawdown": figures.drawdown,
        "max_drawdown": figures.max_drawdown,
        "peak_capital": figures.peak_capital,
        "trade_number": figures.trade_number,
        "capital_exact": figures.capital_exact,
        "peak_exact": figures.peak_exact,
    }


def _new_entry(batch: Batch, trade: Trade, figures: LogFigures) -> BatchLogEntry:
    return BatchLogEntry(batch_id=batch.id, trade_id=trade.id, **_entry_fields(trade, figures))


def _fill_entry(entry: BatchLogEntry, trade: Trade, figures: LogFigures) -> BatchLogEntry:
    for key, value in _entry_fields(trade, figures).items():
        setattr(entry, key, value)
    return entry


class BatchLogEngine:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def affected_batches(self, trade: Trade) -> list[Batch]:
        """Batches that hold the trade's symbol and had started when it was entered."""
        return self.uow.batches.containing_symbol(trade.symbol, trade.entry_time)

    def append(self, batch: Batch, trade: Trade) -> BatchLogEntry:
        """Add (or refresh) the row for one closed trade.

        Re-processing a trade that already has a row updates it in place. A
        trade that would not sort last in the log triggers a rebuild instead,
        so trade numbers always follow exit time.
        """
        if trade.status != STATUS_CLOSED:
            raise ValueError(f"Trade {trade.id} is not closed")

        logs = self.uow.logs
        last = logs.last_entry(batch.id)
        existing = logs.get_for_trade(batch.id, trade.id)

        if existing is not None:
            if existing.trade_number != last.trade_number:
                logger.info(
                    f"[batch {batch.id}] Trade #{trade.id} already logged mid-sequence, rebuilding"
                )
                return self._rebuild_and_get(batch, trade)
            previous = logs.entry_at(batch.id, existing.trade_number - 1)
            state = RunningState.from_entry(previous) if previous else RunningState.seed(batch.capital)
            _, figures = advance(state, batch.capital, trade.pnl_percent)
            return logs.save(_fill_entry(existing, trade, figures))

        if last is not None and (trade.exit_time, trade.id) < (last.exit_time, last.trade_id):
            logger.info(
                f"[batch {batch.id}] Trade #{trade.id} exited before trade #{last.trade_id}, rebuilding"
            )
            return self._rebuild_and_get(batch, trade)

        state = RunningState.from_entry(last) if last else RunningState.seed(batch.capital)
        _, figures = advance(state, batch.capital, trade.pnl_percent)
        entry = logs.add(_new_entry(batch, trade, figures))
        logger.info(
            f"[batch {batch.id}] Logged trade #{trade.id} as #{entry.trade_number}: "
            f"capital {entry.capital_before} -> {entry.capital_after}, dd={entry.drawdown}%"
        )
        return entry

    def _rebuild_and_get(self, batch: Batch, trade: Trade) -> BatchLogEntry | None:
        self.rebuild(batch)
        return self.uow.logs.get_for_trade(batch.id, trade.id)

    def rebuild(self, batch: Batch) -> list[BatchLogEntry]:
        """Recompute the batch's whole log from scratch."""
        logs = self.uow.logs
        removed = logs.delete_for_batch(batch.id)

        symbols = self.uow.batches.symbols(batch.id)
        if not symbols:
            logger.info(f"[batch {batch.id}] No symbols, log cleared ({removed} rows removed)")
            return []

        trades = self.uow.trades.closed_for_symbols(symbols, since=batch.start_time)
        entries = []
        state = RunningState.seed(batch.capital)
        for trade in trades:
            state, figures = advance(state, batch.capital, trade.pnl_percent)
            entries.append(logs.add(_new_entry(batch, trade, figures)))

        logger.info(
            f"[batch {batch.id}] Rebuilt log: {len(entries)} trades over {len(symbols)} symbols "
            f"({removed} rows replaced)"
        )
        return entries
