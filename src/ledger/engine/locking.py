"""Per-key mutexes scoping each stock movement to the records it touches.

Locks for several keys are always taken in sorted key order, so two
transfers running in opposite directions cannot deadlock.
"""

import threading
import time
from collections.abc import Iterable
from contextlib import contextmanager

import structlog

from ledger.errors import ConcurrencyConflictError
from ledger.stock.record import StockKey

logger = structlog.get_logger(__name__)


class _Slot:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class KeyLocks:
    """Registry of one lock per stock key.

    A key is tracked only while some caller holds or waits for it; the
    last one out drops the entry, so the registry stays as small as the
    set of keys in flight.
    """

    def __init__(self):
        self._registry_lock = threading.Lock()
        self._slots: dict[StockKey, _Slot] = {}

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._slots)

    def _checkout(self, key: StockKey) -> threading.Lock:
        with self._registry_lock:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = _Slot()
            slot.users += 1
            return slot.lock

    def _checkin(self, key: StockKey) -> None:
        with self._registry_lock:
            slot = self._slots[key]
            slot.users -= 1
            if slot.users == 0:
                del self._slots[key]

    def is_locked(self, key: StockKey) -> bool:
        with self._registry_lock:
            slot = self._slots.get(key)
        return slot is not None and slot.lock.locked()

    @contextmanager
    def hold(self, keys: Iterable[StockKey], timeout: float | None = None):
        """Hold the locks for ``keys`` for the duration of the block.

        ``timeout`` bounds the total wait; ``None`` waits forever. When it
        runs out, every lock taken so far is released and
        ConcurrencyConflictError is raised.
        """
        ordered = sorted(set(keys))
        deadline = None if timeout is None else time.monotonic() + timeout
        checked_out = []
        acquired = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                checked_out.append(key)
                if deadline is None:
                    lock.acquire()
                elif not lock.acquire(timeout=max(deadline - time.monotonic(), 0)):
                    logger.warning(
                        "Stock lock contention",
                        product_id=key.product_id,
                        warehouse_id=key.warehouse_id,
                        timeout=timeout,
                    )
                    raise ConcurrencyConflictError(
                        f"Timed out after {timeout}s waiting for stock record {key.record_id}",
                        product_id=key.product_id,
                        warehouse_id=key.warehouse_id,
                        timeout=timeout,
                    )
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in checked_out:
                self._checkin(key)
