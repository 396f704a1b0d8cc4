"""Store interfaces used by the ledger, the batch registry and the log engine.

Components receive an open unit of work and talk to these protocols only,
so the matching and replay logic never sees a session or a query.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from backend.models.batch import Batch
from backend.models.batch_log import BatchLogEntry
from backend.models.trade import Trade


class TradeStore(Protocol):
    def get(self, trade_id: int) -> Trade | None: ...

    def find_open(self, symbol: str) -> Trade | None:
        """Oldest open trade for the symbol by entry time, if any."""

    def add(self, trade: Trade) -> Trade:
        """Persist a new trade and assign its id."""

    def save(self, trade: Trade) -> Trade: ...

    def list(
        self,
        status: str | None = None,
        symbol: str | None = None,
        limit: int = 200,
        offset: int = 0,
    ) -> list[Trade]: ...

    def closed_for_symbols(self, symbols: list[str], since: datetime | None = None) -> list[Trade]:
        """Closed trades in ``symbols`` entered at or after ``since``, by (exit_time, id)."""

    def distinct_symbols(self) -> list[str]: ...


class BatchStore(Protocol):
    def get(self, batch_id: int, for_update: bool = False) -> Batch | None: ...

    def list(self) -> list[Batch]: ...

    def add(self, batch: Batch) -> Batch: ...

    def save(self, batch: Batch) -> Batch: ...

    def delete(self, batch: Batch) -> None:
        """Remove the batch with its membership and log rows. Trades are untouched."""

    def symbols(self, batch_id: int) -> list[str]: ...

    def replace_symbols(self, batch_id: int, symbols: list[str]) -> None: ...

    def add_symbol(self, batch_id: int, symbol: str) -> bool:
        """Returns False when the symbol was already a member."""

    def remove_symbol(self, batch_id: int, symbol: str) -> bool:
        """Returns False when the symbol was not a member."""

    def containing_symbol(self, symbol: str, as_of: datetime | None = None) -> list[Batch]:
        """Batches holding ``symbol``, row-locked for the rest of the transaction.

        With ``as_of``, only batches whose start time is unset or not after it.
        """


class BatchLogStore(Protocol):
    def last_entry(self, batch_id: int) -> BatchLogEntry | None:
        """Entry with the highest trade number."""

    def entry_at(self, batch_id: int, trade_number: int) -> BatchLogEntry | None: ...

    def get_for_trade(self, batch_id: int, trade_id: int) -> BatchLogEntry | None: ...

    def entries(self, batch_id: int, limit: int | None = None, offset: int = 0) -> list[BatchLogEntry]:
        """Entries in ascending trade number."""

    def add(self, entry: BatchLogEntry) -> BatchLogEntry: ...

    def save(self, entry: BatchLogEntry) -> BatchLogEntry: ...

    def delete_for_batch(self, batch_id: int) -> int: ...


class UnitOfWork(Protocol):
    trades: TradeStore
    batches: BatchStore
    logs: BatchLogStore

    def __enter__(self) -> "UnitOfWork": ...

    def __exit__(self, exc_type, exc, tb) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
