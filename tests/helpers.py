"""Test helpers: signal builders and in-memory stores.

The memory stores have no isolation: every "unit of work" shares the same
dictionaries and commit/rollback only count calls.
"""

from __future__ import annotations

import itertools
from datetime import datetime
from decimal import Decimal

from backend.models.batch import Batch
from backend.models.batch_log import BatchLogEntry
from backend.models.trade import Trade
from backend.schemas.signal import Signal
from backend.utils.constants import STATUS_CLOSED, STATUS_OPEN


class MemoryTradeStore:
    def __init__(self):
        self.rows: dict[int, Trade] = {}
        self._ids = itertools.count(1)

    def get(self, trade_id: int) -> Trade | None:
        return self.rows.get(trade_id)

    def find_open(self, symbol: str) -> Trade | None:
        candidates = [t for t in self.rows.values() if t.symbol == symbol and t.status == STATUS_OPEN]
        return min(candidates, key=lambda t: (t.entry_time, t.id), default=None)

    def add(self, trade: Trade) -> Trade:
        trade.id = next(self._ids)
        self.rows[trade.id] = trade
        return trade

    def save(self, trade: Trade) -> Trade:
        self.rows[trade.id] = trade
        return trade

    def list(self, status=None, symbol=None, limit=200, offset=0) -> list[Trade]:
        trades = [
            t for t in self.rows.values()
            if (status is None or t.status == status) and (symbol is None or t.symbol == symbol)
        ]
        trades.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        return trades[offset:offset + limit]

    def closed_for_symbols(self, symbols: list[str], since: datetime | None = None) -> list[Trade]:
        trades = [
            t for t in self.rows.values()
            if t.symbol in symbols
            and t.status == STATUS_CLOSED
            and (since is None or t.entry_time >= since)
        ]
        return sorted(trades, key=lambda t: (t.exit_time, t.id))

    def distinct_symbols(self) -> list[str]:
        return sorted({t.symbol for t in self.rows.values()})


class MemoryBatchStore:
    def __init__(self, logs: "MemoryBatchLogStore"):
        self.rows: dict[int, Batch] = {}
        self.members: dict[int, list[str]] = {}
        self.logs = logs
        self._ids = itertools.count(1)

    def get(self, batch_id: int, for_update: bool = False) -> Batch | None:
        return self.rows.get(batch_id)

    def list(self) -> list[Batch]:
        return sorted(self.rows.values(), key=lambda b: (b.created_at, b.id), reverse=True)

    def add(self, batch: Batch) -> Batch:
        batch.id = next(self._ids)
        self.rows[batch.id] = batch
        self.members[batch.id] = []
        return batch

    def save(self, batch: Batch) -> Batch:
        self.rows[batch.id] = batch
        return batch

    def delete(self, batch: Batch) -> None:
        self.logs.delete_for_batch(batch.id)
        self.members.pop(batch.id, None)
        self.rows.pop(batch.id, None)

    def symbols(self, batch_id: int) -> list[str]:
        return sorted(self.members.get(batch_id, []))

    def replace_symbols(self, batch_id: int, symbols: list[str]) -> None:
        self.members[batch_id] = list(dict.fromkeys(symbols))

    def add_symbol(self, batch_id: int, symbol: str) -> bool:
        if symbol in self.members[batch_id]:
            return False
        self.members[batch_id].append(symbol)
        return True

    def remove_symbol(self, batch_id: int, symbol: str) -> bool:
        if symbol not in self.members[batch_id]:
            return False
        self.members[batch_id].remove(symbol)
        return True

    def containing_symbol(self, symbol: str, as_of: datetime | None = None) -> list[Batch]:
        return [
            b for b in sorted(self.rows.values(), key=lambda b: b.id)
            if symbol in self.members.get(b.id, [])
            and (as_of is None or b.start_time is None or b.start_time <= as_of)
        ]


class MemoryBatchLogStore:
    def __init__(self):
        self.rows: list[BatchLogEntry] = []
        self._ids = itertools.count(1)

    def _for_batch(self, batch_id: int) -> list[BatchLogEntry]:
        return sorted((e for e in self.rows if e.batch_id == batch_id), key=lambda e: e.trade_number)

    def last_entry(self, batch_id: int) -> BatchLogEntry | None:
        entries = self._for_batch(batch_id)
        return entries[-1] if entries else None

    def entry_at(self, batch_id: int, trade_number: int) -> BatchLogEntry | None:
        return next((e for e in self._for_batch(batch_id) if e.trade_number == trade_number), None)

    def get_for_trade(self, batch_id: int, trade_id: int) -> BatchLogEntry | None:
        return next((e for e in self.rows if e.batch_id == batch_id and e.trade_id == trade_id), None)

    def entries(self, batch_id: int, limit: int | None = None, offset: int = 0) -> list[BatchLogEntry]:
        entries = self._for_batch(batch_id)[offset:]
        return entries if limit is None else entries[:limit]

    def add(self, entry: BatchLogEntry) -> BatchLogEntry:
        if self.get_for_trade(entry.batch_id, entry.trade_id) is not None:
            raise AssertionError(f"duplicate log row for trade {entry.trade_id}")
        if self.entry_at(entry.batch_id, entry.trade_number) is not None:
            raise AssertionError(f"duplicate trade number {entry.trade_number}")
        entry.id = next(self._ids)
        self.rows.append(entry)
        return entry

    def save(self, entry: BatchLogEntry) -> BatchLogEntry:
        return entry

    def delete_for_batch(self, batch_id: int) -> int:
        before = len(self.rows)
        self.rows = [e for e in self.rows if e.batch_id != batch_id]
        return before - len(self.rows)


class MemoryUnitOfWork:
    def __init__(self):
        self.trades = MemoryTradeStore()
        self.logs = MemoryBatchLogStore()
        self.batches = MemoryBatchStore(self.logs)
        self.commits = 0

    def __enter__(self) -> "MemoryUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb):
        return None

    def commit(self):
        self.commits += 1

    def rollback(self):
        pass


def make_signal(
    symbol: str,
    price,
    kind: str | None = None,
    direction: str | None = None,
    at: str | None = None,
    timeframe: str = "",
) -> Signal:
    """Build a canonical signal; ``at`` is an ISO timestamp taken as UTC."""
    return Signal(
        symbol=symbol,
        price=Decimal(str(price)),
        kind=kind,
        direction=direction,
        timestamp=datetime.fromisoformat(at) if at else None,
        timeframe=timeframe,
        payload={"symbol": symbol, "price": str(price), "type": kind, "side": direction},
    )


def round_trip(processor, symbol, entry_price, exit_price, opened_at, closed_at, direction="bullish"):
    """Open and close one trade through the processor; returns the closed trade."""
    processor.process(make_signal(symbol, entry_price, kind="entry", direction=direction, at=opened_at))
    return processor.process(make_signal(symbol, exit_price, kind="exit", at=closed_at)).trade
