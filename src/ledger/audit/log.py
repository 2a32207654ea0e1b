"""Audit log — append-only store of stock transactions.

Only the stock movement engine appends, as part of its atomic unit. All
reads are pure and can be re-issued freely. Date ranges are inclusive on
both ends; an open end means unbounded. Naive bounds are read as UTC.

Entries are stored and handed out as detached copies, so nothing a
reader does to a returned entry reaches the log.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime

from ledger.audit.transaction import StockTransaction, TransactionType


@dataclass(frozen=True)
class MovementSummary:
    """Counts of on-hand movements within a time window."""

    stock_in_count: int = 0
    stock_out_count: int = 0
    adjustment_count: int = 0

    @property
    def total(self) -> int:
        return self.stock_in_count + self.stock_out_count + self.adjustment_count


def as_utc(value: datetime | None) -> datetime | None:
    """Treat a naive datetime as UTC; aware values pass through unchanged."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _in_range(entry, start, end) -> bool:
    start, end = as_utc(start), as_utc(end)
    timestamp = as_utc(entry.timestamp)
    if start is not None and timestamp < start:
        return False
    if end is not None and timestamp > end:
        return False
    return True


def _chronological(entry):
    return (as_utc(entry.timestamp), entry.sequence)


class AuditLog(ABC):
    """Abstract interface for stock transaction storage."""

    guard: threading.RLock

    @abstractmethod
    def append(self, transaction: StockTransaction) -> StockTransaction:
        """Store a new entry and assign its sequence number."""
        ...

    @abstractmethod
    def retract(self, transaction: StockTransaction) -> None:
        """Drop an entry appended by an atomic unit that is rolling back.

        Never used on entries of a committed unit.
        """
        ...

    @abstractmethod
    def entries(self) -> list[StockTransaction]:
        """Every entry in chronological order."""
        ...

    def history(self, product_id, warehouse_id=None, start=None, end=None) -> list[StockTransaction]:
        return [
            e
            for e in self.entries()
            if e.product_id == str(product_id)
            and (warehouse_id is None or e.warehouse_id == str(warehouse_id))
            and _in_range(e, start, end)
        ]

    def recent(self, count=10) -> list[StockTransaction]:
        """Most recent entries first."""
        if count <= 0:
            return []
        return list(reversed(self.entries()))[:count]

    def between(self, start=None, end=None) -> list[StockTransaction]:
        return [e for e in self.entries() if _in_range(e, start, end)]

    def movement_summary(self, start=None, end=None) -> MovementSummary:
        counts = {kind: 0 for kind in TransactionType}
        for entry in self.between(start, end):
            counts[entry.kind] += 1
        return MovementSummary(
            stock_in_count=counts[TransactionType.STOCK_IN],
            stock_out_count=counts[TransactionType.STOCK_OUT],
            adjustment_count=counts[TransactionType.ADJUSTMENT],
        )

    def by_reference(self, reference_number) -> list[StockTransaction]:
        return [e for e in self.entries() if e.reference_number == reference_number]

    def by_type(self, transaction_type) -> list[StockTransaction]:
        kind = TransactionType(transaction_type)
        return [e for e in self.entries() if e.kind == kind]

    def by_actor(self, actor_id) -> list[StockTransaction]:
        return [e for e in self.entries() if e.actor_id == str(actor_id)]

    def by_warehouse(self, warehouse_id) -> list[StockTransaction]:
        return [e for e in self.entries() if e.warehouse_id == str(warehouse_id)]


class InMemoryAuditLog(AuditLog):
    """Audit log backed by a list. Sequence numbers start at 1."""

    def __init__(self, guard=None):
        self.guard = guard or threading.RLock()
        self._entries: list[StockTransaction] = []
        self._last_sequence = 0

    def append(self, transaction):
        with self.guard:
            self._last_sequence += 1
            transaction.sequence = self._last_sequence
            self._entries.append(transaction.detach())
            return transaction

    def retract(self, transaction):
        with self.guard:
            self._entries = [e for e in self._entries if e.transaction_id != transaction.transaction_id]

    def entries(self):
        with self.guard:
            return [e.detach() for e in sorted(self._entries, key=_chronological)]
