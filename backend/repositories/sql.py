"""SQLModel implementations of the stores and the unit of work."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, col, or_

from backend.errors import StorageError
from backend.models.batch import Batch, BatchSymbol
from backend.models.batch_log import BatchLogEntry
from backend.models.trade import Trade
from backend.utils.constants import STATUS_CLOSED, STATUS_OPEN

logger = logging.getLogger(__name__)


class SqlTradeStore:
    def __init__(self, session: Session):
        self.session = session

    def get(self, trade_id: int) -> Trade | None:
        return self.session.get(Trade, trade_id)

    def find_open(self, symbol: str) -> Trade | None:
        stmt = (
            select(Trade)
            .where(Trade.symbol == symbol, Trade.status == STATUS_OPEN)
            .order_by(Trade.entry_time, Trade.id)
            .limit(1)
            .with_for_update()
        )
        return self.session.exec(stmt).first()

    def add(self, trade: Trade) -> Trade:
        self.session.add(trade)
        self.session.flush()
        return trade

    def save(self, trade: Trade) -> Trade:
        self.session.add(trade)
        self.session.flush()
        return trade

    def list(
        self,
        status: str | None = None,
        symbol: str | None = None,
        limit: int = 200,
        offset: int = 0,
    ) -> list[Trade]:
        stmt = select(Trade).order_by(col(Trade.created_at).desc(), col(Trade.id).desc())
        if status is not None:
            stmt = stmt.where(Trade.status == status)
        if symbol is not None:
            stmt = stmt.where(Trade.symbol == symbol)
        stmt = stmt.offset(offset).limit(limit)
        return list(self.session.exec(stmt).all())

    def closed_for_symbols(self, symbols: list[str], since: datetime | None = None) -> list[Trade]:
        if not symbols:
            return []
        stmt = select(Trade).where(
            col(Trade.symbol).in_(symbols),
            Trade.status == STATUS_CLOSED,
        )
        if since is not None:
            stmt = stmt.where(Trade.entry_time >= since)
        stmt = stmt.order_by(Trade.exit_time, Trade.id)
        return list(self.session.exec(stmt).all())

    def distinct_symbols(self) -> list[str]:
        stmt = select(Trade.symbol).distinct().order_by(Trade.symbol)
        return list(self.session.exec(stmt).all())


class SqlBatchStore:
    def __init__(self, session: Session):
        self.session = session

    def get(self, batch_id: int, for_update: bool = False) -> Batch | None:
        if not for_update:
            return self.session.get(Batch, batch_id)
        stmt = select(Batch).where(Batch.id == batch_id).with_for_update()
        return self.session.exec(stmt).first()

    def list(self) -> list[Batch]:
        stmt = select(Batch).order_by(col(Batch.created_at).desc(), col(Batch.id).desc())
        return list(self.session.exec(stmt).all())

    def add(self, batch: Batch) -> Batch:
        self.session.add(batch)
        self.session.flush()
        return batch

    def save(self, batch: Batch) -> Batch:
        self.session.add(batch)
        self.session.flush()
        return batch

    def delete(self, batch: Batch) -> None:
        for entry in self.session.exec(
            select(BatchLogEntry).where(BatchLogEntry.batch_id == batch.id)
        ).all():
            self.session.delete(entry)
        for member in self._members(batch.id):
            self.session.delete(member)
        self.session.flush()
        self.session.delete(batch)
        self.session.flush()

    def _members(self, batch_id: int) -> list[BatchSymbol]:
        stmt = select(BatchSymbol).where(BatchSymbol.batch_id == batch_id)
        return list(self.session.exec(stmt).all())

    def symbols(self, batch_id: int) -> list[str]:
        stmt = (
            select(BatchSymbol.symbol)
            .where(BatchSymbol.batch_id == batch_id)
            .order_by(BatchSymbol.symbol)
        )
        return list(self.session.exec(stmt).all())

    def replace_symbols(self, batch_id: int, symbols: list[str]) -> None:
        for member in self._members(batch_id):
            self.session.delete(member)
        # Deletes must reach the database before re-inserting the same symbols
        self.session.flush()
        for symbol in dict.fromkeys(symbols):
            self.session.add(BatchSymbol(batch_id=batch_id, symbol=symbol))
        self.session.flush()

    def add_symbol(self, batch_id: int, symbol: str) -> bool:
        if symbol in self.symbols(batch_id):
            return False
        self.session.add(BatchSymbol(batch_id=batch_id, symbol=symbol))
        self.session.flush()
        return True

    def remove_symbol(self, batch_id: int, symbol: str) -> bool:
        stmt = select(BatchSymbol).where(
            BatchSymbol.batch_id == batch_id, BatchSymbol.symbol == symbol
        )
        member = self.session.exec(stmt).first()
        if member is None:
            return False
        self.session.delete(member)
        self.session.flush()
        return True

    def containing_symbol(self, symbol: str, as_of: datetime | None = None) -> list[Batch]:
        stmt = (
            select(Batch)
            .join(BatchSymbol, col(BatchSymbol.batch_id) == col(Batch.id))
            .where(BatchSymbol.symbol == symbol)
            .order_by(Batch.id)
            .with_for_update(of=Batch)
            .execution_options(populate_existing=True)
        )
        if as_of is not None:
            stmt = stmt.where(or_(col(Batch.start_time).is_(None), col(Batch.start_time) <= as_of))
        return list(self.session.exec(stmt).all())


class SqlBatchLogStore:
    def __init__(self, session: Session):
        self.session = session

    def last_entry(self, batch_id: int) -> BatchLogEntry | None:
        stmt = (
            select(BatchLogEntry)
            .where(BatchLogEntry.batch_id == batch_id)
            .order_by(col(BatchLogEntry.trade_number).desc())
            .limit(1)
        )
        return self.session.exec(stmt).first()

    def entry_at(self, batch_id: int, trade_number: int) -> BatchLogEntry | None:
        stmt = select(BatchLogEntry).where(
            BatchLogEntry.batch_id == batch_id,
            BatchLogEntry.trade_number == trade_number,
        )
        return self.session.exec(stmt).first()

    def get_for_trade(self, batch_id: int, trade_id: int) -> BatchLogEntry | None:
        stmt = select(BatchLogEntry).where(
            BatchLogEntry.batch_id == batch_id,
            BatchLogEntry.trade_id == trade_id,
        )
        return self.session.exec(stmt).first()

    def entries(self, batch_id: int, limit: int | None = None, offset: int = 0) -> list[BatchLogEntry]:
        stmt = (
            select(BatchLogEntry)
            .where(BatchLogEntry.batch_id == batch_id)
            .order_by(BatchLogEntry.trade_number)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.exec(stmt).all())

    def add(self, entry: BatchLogEntry) -> BatchLogEntry:
        self.session.add(entry)
        self.session.flush()
        return entry

    def save(self, entry: BatchLogEntry) -> BatchLogEntry:
        self.session.add(entry)
        self.session.flush()
        return entry

    def delete_for_batch(self, batch_id: int) -> int:
        rows = self.session.exec(
            select(BatchLogEntry).where(BatchLogEntry.batch_id == batch_id)
        ).all()
        for entry in rows:
            self.session.delete(entry)
        # Flush now: SQLAlchemy orders inserts before deletes within one flush,
        # which would trip the (batch_id, trade_id) unique key on replay.
        self.session.flush()
        return len(rows)


class SqlUnitOfWork:
    """One session, one transaction.

    Nothing is committed unless ``commit()`` is called inside the block; any
    exception rolls the whole operation back. SQLAlchemy failures surface as
    ``StorageError``.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session: Session | None = None

    def __enter__(self) -> "SqlUnitOfWork":
        # Objects stay readable after commit so results can be returned to callers
        self.session = Session(self.engine, expire_on_commit=False)
        self.trades = SqlTradeStore(self.session)
        self.batches = SqlBatchStore(self.session)
        self.logs = SqlBatchLogStore(self.session)
        return self

    def __exit__(self, exc_type, exc, tb):
        # close() discards any uncommitted work without expiring loaded objects,
        # so results stay readable once the block has returned them
        try:
            if exc is not None:
                self.session.rollback()
        finally:
            self.session.close()
        if exc is not None and isinstance(exc, SQLAlchemyError):
            logger.error(f"Storage failure, transaction rolled back: {exc}", exc_info=exc)
            raise StorageError(str(exc)) from exc

    def commit(self):
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Commit failed: {e}", exc_info=True)
            raise StorageError(str(e)) from e

    def rollback(self):
        self.session.rollback()
