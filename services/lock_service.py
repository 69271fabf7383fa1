"""
Per-aggregate locks for check-and-write sequences.

Every mutating fulfillment operation holds the locks of the requests,
orders and trucks it touches for its whole read-validate-write sequence,
so two dispatchers cannot both bind the same truck or both assign the
same order. Within one `hold()` call keys are taken requests first, then
orders, then trucks, each group sorted. Locks are re-entrant: an approval
that already holds an order lock can call the executor, which takes the
same order lock again.
"""

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

import structlog

logger = structlog.get_logger(__name__)


def _keys(prefix: str, ids: Iterable[Optional[str]]) -> list[str]:
    return sorted({f"{prefix}:{i}" for i in ids if i})


class AggregateLocks:
    """
    Registry of named re-entrant locks.

    A key's lock exists only while some thread holds or waits for it;
    the entry is dropped when its last holder releases.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._holders: dict[str, int] = {}

    def _checkout(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            self._holders[key] = self._holders.get(key, 0) + 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            remaining = self._holders[key] - 1
            if remaining:
                self._holders[key] = remaining
            else:
                del self._holders[key]
                del self._locks[key]

    @contextmanager
    def hold(
        self,
        request_ids: Iterable[Optional[str]] = (),
        order_ids: Iterable[Optional[str]] = (),
        truck_ids: Iterable[Optional[str]] = (),
    ) -> Iterator[None]:
        """
        Hold the locks of the given aggregates for the duration of the block.

        None ids are ignored; duplicates are taken once.
        """
        keys = (
            _keys("request", request_ids)
            + _keys("order", order_ids)
            + _keys("truck", truck_ids)
        )
        registered: list[str] = []
        acquired: list[threading.RLock] = []
        try:
            for key in keys:
                lock = self._checkout(key)
                registered.append(key)
                lock.acquire()
                acquired.append(lock)
            logger.debug("aggregate_locks_acquired", keys=keys)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in reversed(registered):
                self._checkin(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Singleton instance
_aggregate_locks: Optional[AggregateLocks] = None


def get_aggregate_locks() -> AggregateLocks:
    """Get or create the process-wide lock registry."""
    global _aggregate_locks
    if _aggregate_locks is None:
        _aggregate_locks = AggregateLocks()
    return _aggregate_locks
