"""Signal processor: one inbound signal, one atomic unit of work.

Matching, closing and every affected batch's log append commit together or
not at all. Locks are taken before the first write and held until commit:
the symbol lock serializes matching for one instrument, and the locks of
every batch holding the symbol serialize log writes against batch edits,
which take the same batch locks before writing.
"""

import logging
from collections.abc import Callable
from contextlib import ExitStack

from backend.engine.batch_log import BatchLogEngine
from backend.engine.locks import KeyedLocks, batch_key, locks as default_locks, symbol_key
from backend.repositories.base import UnitOfWork
from backend.schemas.signal import Signal
from backend.services.trade_ledger import LedgerResult, TradeLedger
from backend.utils.constants import KIND_EXIT

logger = logging.getLogger(__name__)


class SignalProcessor:
    def __init__(self, uow_factory: Callable[[], UnitOfWork], locks: KeyedLocks = default_locks):
        self.uow_factory = uow_factory
        self.locks = locks

    def process(self, signal: Signal) -> LedgerResult:
        with ExitStack() as stack:
            stack.enter_context(self.locks.hold(symbol_key(signal.symbol)))
            locked = self._lock_member_batches(stack, signal.symbol)
            uow = stack.enter_context(self.uow_factory())

            result = TradeLedger(uow).apply(signal)
            if result.action == KIND_EXIT:
                self._update_batch_logs(uow, result, locked)

            uow.commit()

        logger.info(
            f"Processed {signal.symbol} signal as {result.action} for trade #{result.trade.id}"
        )
        return result

    def _lock_member_batches(self, stack: ExitStack, symbol: str) -> set[int]:
        """Hold the lock of every batch holding ``symbol``; returns their ids.

        Resolved in a read-only unit of work so no database write lock is
        held while waiting on a batch that is being edited.
        """
        with self.uow_factory() as uow:
            batch_ids = {batch.id for batch in uow.batches.containing_symbol(symbol)}
        if batch_ids:
            stack.enter_context(self.locks.hold(*(batch_key(batch_id) for batch_id in batch_ids)))
        return batch_ids

    def _update_batch_logs(self, uow: UnitOfWork, result: LedgerResult, locked: set[int]):
        engine = BatchLogEngine(uow)
        # Membership may have changed while waiting; only batches still holding
        # the symbol and covered by our locks are appended to.
        for batch in engine.affected_batches(result.trade):
            if batch.id not in locked:
                logger.warning(
                    f"[batch {batch.id}] Joined symbol {result.trade.symbol} concurrently, "
                    f"trade #{result.trade.id} is picked up by its next rebuild"
                )
                continue
            engine.append(batch, result.trade)
