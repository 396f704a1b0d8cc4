"""Batch registry: batch definitions and instrument membership.

Any change to capital, start time or membership rebuilds the batch log in
the same unit of work, under the batch's lock, before the call returns.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from decimal import Decimal

from backend.engine.batch_log import BatchLogEngine
from backend.engine.locks import KeyedLocks, batch_key, locks as default_locks
from backend.errors import NotFoundError, ValidationError
from backend.models.batch import Batch
from backend.repositories.base import UnitOfWork
from backend.schemas.batch import BatchRead, BatchSnapshot
from backend.utils.constants import DEFAULT_BATCH_CAPITAL
from backend.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

REBUILD_FIELDS = ("capital", "start_time")


def normalize_symbols(symbols: Iterable[str]) -> list[str]:
    """Upper-case, strip and de-duplicate, keeping first-seen order."""
    cleaned = (symbol.strip().upper() for symbol in symbols)
    return list(dict.fromkeys(symbol for symbol in cleaned if symbol))


def batch_view(uow: UnitOfWork, batch: Batch) -> BatchRead:
    """Batch fields, members and latest running snapshot."""
    last = uow.logs.last_entry(batch.id)
    if last is not None:
        snapshot = BatchSnapshot(
            current_capital=last.capital_after,
            cumulative_pnl=last.cumulative_pnl,
            current_drawdown=last.drawdown,
            max_drawdown=last.max_drawdown,
            peak_capital=last.peak_capital,
            total_trades=last.trade_number,
        )
    else:
        snapshot = BatchSnapshot(
            current_capital=batch.capital,
            cumulative_pnl=Decimal("0"),
            current_drawdown=Decimal("0"),
            max_drawdown=Decimal("0"),
            peak_capital=batch.capital,
            total_trades=0,
        )
    return BatchRead(
        id=batch.id,
        name=batch.name,
        capital=batch.capital,
        start_time=batch.start_time,
        symbols=uow.batches.symbols(batch.id),
        created_at=batch.created_at,
        updated_at=batch.updated_at,
        snapshot=snapshot,
    )


def require_batch(uow: UnitOfWork, batch_id: int, for_update: bool = False) -> Batch:
    batch = uow.batches.get(batch_id, for_update=for_update)
    if batch is None:
        raise NotFoundError(f"Batch {batch_id} not found")
    return batch


class BatchRegistry:
    def __init__(self, uow_factory: Callable[[], UnitOfWork], locks: KeyedLocks = default_locks):
        self.uow_factory = uow_factory
        self.locks = locks

    # ---------------------------------------------------------------------
    # Reads
    # ---------------------------------------------------------------------

    def get(self, batch_id: int) -> BatchRead:
        with self.uow_factory() as uow:
            return batch_view(uow, require_batch(uow, batch_id))

    def list(self) -> list[BatchRead]:
        with self.uow_factory() as uow:
            return [batch_view(uow, batch) for batch in uow.batches.list()]

    # ---------------------------------------------------------------------
    # Mutations
    # ---------------------------------------------------------------------

    def create(
        self,
        name: str,
        capital: Decimal = DEFAULT_BATCH_CAPITAL,
        start_time: datetime | None = None,
        symbols: Iterable[str] = (),
    ) -> BatchRead:
        with self.uow_factory() as uow:
            batch = uow.batches.add(Batch(name=name, capital=capital, start_time=start_time))
            with self.locks.hold(batch_key(batch.id)):
                members = normalize_symbols(symbols)
                if members:
                    uow.batches.replace_symbols(batch.id, members)
                BatchLogEngine(uow).rebuild(batch)
                uow.commit()
            logger.info(f"Created batch {batch.id} '{batch.name}' with {len(members)} symbols")
            return batch_view(uow, batch)

    def update(self, batch_id: int, **changes) -> BatchRead:
        """Apply field changes (name, capital, start_time).

        Only keys present in ``changes`` are touched, so ``start_time=None``
        clears the start time while omitting it leaves it alone.
        """
        unknown = set(changes) - {"name", "capital", "start_time"}
        if unknown:
            raise TypeError(f"Unknown batch fields: {', '.join(sorted(unknown))}")
        nulls = [key for key in ("name", "capital") if key in changes and changes[key] is None]
        if nulls:
            raise ValidationError(f"Fields cannot be null: {', '.join(nulls)}")

        def apply(uow: UnitOfWork, batch: Batch) -> bool:
            for key, value in changes.items():
                setattr(batch, key, value)
            batch.updated_at = utcnow()
            uow.batches.save(batch)
            return any(key in changes for key in REBUILD_FIELDS)

        return self._mutate(batch_id, apply)

    def delete(self, batch_id: int):
        with self.locks.hold(batch_key(batch_id)):
            with self.uow_factory() as uow:
                batch = require_batch(uow, batch_id, for_update=True)
                uow.batches.delete(batch)
                uow.commit()
        logger.info(f"Deleted batch {batch_id}")

    def set_symbols(self, batch_id: int, symbols: Iterable[str]) -> BatchRead:
        members = normalize_symbols(symbols)

        def apply(uow: UnitOfWork, batch: Batch) -> bool:
            uow.batches.replace_symbols(batch.id, members)
            return True

        return self._mutate(batch_id, apply)

    def add_symbol(self, batch_id: int, symbol: str) -> BatchRead:
        def apply(uow: UnitOfWork, batch: Batch) -> bool:
            for member in normalize_symbols([symbol]):
                uow.batches.add_symbol(batch.id, member)
            return True

        return self._mutate(batch_id, apply)

    def remove_symbol(self, batch_id: int, symbol: str) -> BatchRead:
        def apply(uow: UnitOfWork, batch: Batch) -> bool:
            for member in normalize_symbols([symbol]):
                uow.batches.remove_symbol(batch.id, member)
            return True

        return self._mutate(batch_id, apply)

    def rebuild(self, batch_id: int) -> BatchRead:
        return self._mutate(batch_id, lambda uow, batch: True)

    def rebuild_all(self) -> int:
        with self.uow_factory() as uow:
            batch_ids = [batch.id for batch in uow.batches.list()]
        for batch_id in batch_ids:
            self.rebuild(batch_id)
        return len(batch_ids)

    def _mutate(self, batch_id: int, apply: Callable[[UnitOfWork, Batch], bool]) -> BatchRead:
        with self.locks.hold(batch_key(batch_id)):
            with self.uow_factory() as uow:
                batch = require_batch(uow, batch_id, for_update=True)
                if apply(uow, batch):
                    BatchLogEngine(uow).rebuild(batch)
                uow.commit()
                return batch_view(uow, batch)
