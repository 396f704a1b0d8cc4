"""Per-key mutual exclusion for signal matching and batch log writes.

Two signals for the same symbol must not both see "no open trade", and two
closing trades must not append to the same batch log at once. Callers hold
the relevant keys until their unit of work has committed.
"""

import threading
from contextlib import contextmanager


class KeyedLocks:
    def __init__(self):
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _get(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *keys: str):
        """Acquire every key in sorted order, release in reverse."""
        acquired: list[threading.Lock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._get(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def symbol_key(symbol: str) -> str:
    return f"symbol:{symbol}"


def batch_key(batch_id: int) -> str:
    return f"batch:{batch_id}"


locks = KeyedLocks()
