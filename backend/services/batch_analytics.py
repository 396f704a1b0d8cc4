"""Batch analytics: read-only views over a batch's log rows.

Every function takes the batch's log entries (ascending trade number) and
aggregates them; nothing here writes or recomputes running totals.
"""

from decimal import Decimal

import pandas as pd

from backend.models.batch_log import BatchLogEntry
from backend.utils.numbers import round_money, round_percent

ZERO = Decimal("0")

_HIDDEN_FIELDS = {"capital_exact", "peak_exact"}


def _decimal_sum(values) -> Decimal:
    return sum(values, ZERO)


def _decimal_mean(values) -> Decimal | None:
    values = list(values)
    if not values:
        return None
    return round_percent(_decimal_sum(values) / len(values))


def entry_dict(entry: BatchLogEntry) -> dict:
    return entry.model_dump(exclude=_HIDDEN_FIELDS)


def latest_snapshot(entries: list[BatchLogEntry]) -> dict | None:
    if not entries:
        return None
    last = entries[-1]
    return {
        "capital_after": last.capital_after,
        "cumulative_pnl": last.cumulative_pnl,
        "drawdown": last.drawdown,
        "max_drawdown": last.max_drawdown,
        "peak_capital": last.peak_capital,
        "trade_number": last.trade_number,
    }


def summary_stats(entries: list[BatchLogEntry]) -> dict:
    """KPI counts and PnL aggregates for a batch."""
    pnls = [e.pnl_percent for e in entries]
    total = len(entries)
    winning = sum(1 for p in pnls if p > 0)
    return {
        "total_trades": total,
        "winning_trades": winning,
        "losing_trades": sum(1 for p in pnls if p < 0),
        "breakeven_trades": sum(1 for p in pnls if p == 0),
        "win_rate": round(winning / total * 100, 2) if total else 0.0,
        "avg_pnl_percent": _decimal_mean(pnls),
        "best_trade_pct": max(pnls) if pnls else None,
        "worst_trade_pct": min(pnls) if pnls else None,
        "total_pnl_absolute": round_money(_decimal_sum(e.pnl_absolute for e in entries)),
    }


def capital_by_trade(entries: list[BatchLogEntry]) -> list[dict]:
    return [
        {
            "trade_number": e.trade_number,
            "capital_after": e.capital_after,
            "cumulative_pnl": e.cumulative_pnl,
            "pnl_absolute": e.pnl_absolute,
            "pnl_percent": e.pnl_percent,
            "drawdown": e.drawdown,
            "max_drawdown": e.max_drawdown,
            "exit_time": e.exit_time,
            "symbol": e.symbol,
        }
        for e in entries
    ]


def _frame(entries: list[BatchLogEntry]) -> pd.DataFrame:
    frame = pd.DataFrame(
        [
            {
                "trade_number": e.trade_number,
                "exit_time": e.exit_time,
                "symbol": e.symbol,
                "pnl_percent": e.pnl_percent,
                "pnl_absolute": e.pnl_absolute,
                "capital_after": e.capital_after,
                "cumulative_pnl": e.cumulative_pnl,
                "drawdown": e.drawdown,
                "max_drawdown": e.max_drawdown,
            }
            for e in entries
        ]
    )
    frame = frame.sort_values("trade_number", kind="stable")
    frame["day"] = pd.to_datetime(frame["exit_time"]).dt.date
    return frame


def capital_by_day(entries: list[BatchLogEntry]) -> list[dict]:
    """One row per exit date: running totals as of the day's last trade, PnL summed."""
    if not entries:
        return []
    daily = _frame(entries).groupby("day", sort=True).agg(
        trade_count_cumulative=("trade_number", "max"),
        trades_on_day=("trade_number", "size"),
        daily_pnl=("pnl_absolute", _decimal_sum),
        capital_eod=("capital_after", "last"),
        cumulative_pnl=("cumulative_pnl", "last"),
        drawdown_eod=("drawdown", "last"),
        max_drawdown=("max_drawdown", "last"),
    )
    return [
        {
            "day": day,
            "trade_count_cumulative": int(row.trade_count_cumulative),
            "trades_on_day": int(row.trades_on_day),
            "daily_pnl": round_money(row.daily_pnl),
            "capital_eod": row.capital_eod,
            "cumulative_pnl": row.cumulative_pnl,
            "drawdown_eod": row.drawdown_eod,
            "max_drawdown": row.max_drawdown,
        }
        for day, row in daily.iterrows()
    ]


def trades_per_day(entries: list[BatchLogEntry]) -> list[dict]:
    if not entries:
        return []
    counts = _frame(entries).groupby("day", sort=True).size()
    return [{"day": day, "trade_count": int(count)} for day, count in counts.items()]


def cumulative_trade_count(entries: list[BatchLogEntry]) -> list[dict]:
    return [{"trade_number": e.trade_number, "exit_time": e.exit_time} for e in entries]


def symbol_breakdown(entries: list[BatchLogEntry]) -> list[dict]:
    """Per-symbol trade count, wins, losses, average PnL % and total PnL, best first."""
    if not entries:
        return []
    grouped = _frame(entries).groupby("symbol", sort=True).agg(
        trades=("trade_number", "size"),
        wins=("pnl_percent", lambda s: sum(1 for p in s if p > 0)),
        losses=("pnl_percent", lambda s: sum(1 for p in s if p < 0)),
        avg_pnl_pct=("pnl_percent", _decimal_mean),
        total_pnl=("pnl_absolute", _decimal_sum),
    )
    rows = [
        {
            "symbol": symbol,
            "trades": int(row.trades),
            "wins": int(row.wins),
            "losses": int(row.losses),
            "avg_pnl_pct": row.avg_pnl_pct,
            "total_pnl": round_money(row.total_pnl),
        }
        for symbol, row in grouped.iterrows()
    ]
    rows.sort(key=lambda r: r["total_pnl"], reverse=True)
    return rows


def drawdown_series(entries: list[BatchLogEntry]) -> list[dict]:
    return [
        {
            "trade_number": e.trade_number,
            "exit_time": e.exit_time,
            "drawdown": e.drawdown,
            "max_drawdown": e.max_drawdown,
            "capital_after": e.capital_after,
            "peak_capital": e.peak_capital,
        }
        for e in entries
    ]
