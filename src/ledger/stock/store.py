"""Ledger store — keyed access to stock records, one per (product, warehouse).

The engine programs against ``LedgerStore``; ``InMemoryLedgerStore`` is the
process-local adapter. Records handed out are detached copies: a change
only becomes visible once the engine saves it.
"""

import threading
from abc import ABC, abstractmethod

from ledger.errors import ConcurrencyConflictError
from ledger.stock.record import StockKey, StockRecord, stock_key


class LedgerStore(ABC):
    """Abstract interface for stock record storage."""

    #: Guards the stored records. Writers spanning the ledger and the audit
    #: log take this guard first.
    guard: threading.RLock

    @abstractmethod
    def get(self, product_id, warehouse_id) -> StockRecord | None:
        """Return the record for the pair, or None if it never held stock."""
        ...

    @abstractmethod
    def save(self, record: StockRecord) -> StockRecord:
        """Persist the full record and bump its revision.

        Raises ConcurrencyConflictError if the stored revision moved since
        the record was read.
        """
        ...

    @abstractmethod
    def restore(self, previous: StockRecord | None, key: StockKey) -> None:
        """Put a pair back to a state captured earlier in the same atomic unit."""
        ...

    @abstractmethod
    def records(self) -> list[StockRecord]:
        """All records, ordered by product then warehouse."""
        ...

    def get_or_create(self, product_id, warehouse_id) -> StockRecord:
        with self.guard:
            record = self.get(product_id, warehouse_id)
            if record is None:
                record = self.save(StockRecord.open(product_id, warehouse_id))
            return record

    def for_product(self, product_id) -> list[StockRecord]:
        return [r for r in self.records() if r.product_id == str(product_id)]

    def for_warehouse(self, warehouse_id) -> list[StockRecord]:
        return [r for r in self.records() if r.warehouse_id == str(warehouse_id)]

    def available_stock(self) -> list[StockRecord]:
        """Records with something left to promise."""
        return [r for r in self.records() if r.quantity > r.reserved_quantity]

    def list_low_stock(self, threshold_source) -> list[StockRecord]:
        """Records at or below their product's low-stock threshold."""
        low = []
        for record in self.records():
            threshold = threshold_source.low_stock_threshold(record.product_id)
            if threshold is not None and record.quantity <= threshold:
                low.append(record)
        return low

    def total_quantity(self, product_id) -> int:
        return sum(r.quantity for r in self.for_product(product_id))

    def total_available(self, product_id) -> int:
        return sum(r.available_quantity for r in self.for_product(product_id))

    def valuation(self, cost_source, warehouse_id=None) -> float:
        """Sum of quantity x unit cost, for one warehouse or all of them."""
        records = self.records() if warehouse_id is None else self.for_warehouse(warehouse_id)
        return sum(r.quantity * (cost_source.unit_cost(r.product_id) or 0.0) for r in records)


class InMemoryLedgerStore(LedgerStore):
    """Ledger store backed by a dict. Suitable for tests and single-process use."""

    def __init__(self, guard=None):
        self.guard = guard or threading.RLock()
        self._records: dict[StockKey, StockRecord] = {}

    def get(self, product_id, warehouse_id):
        with self.guard:
            record = self._records.get(stock_key(product_id, warehouse_id))
            return record.detach() if record is not None else None

    def save(self, record):
        with self.guard:
            stored = self._records.get(record.key)
            stored_revision = stored.revision if stored is not None else 0
            if (record.revision or 0) != stored_revision:
                raise ConcurrencyConflictError(
                    f"Stock record {record.record_id} changed since it was read "
                    f"(revision {record.revision}, stored {stored_revision})",
                    product_id=record.product_id,
                    warehouse_id=record.warehouse_id,
                    revision=record.revision,
                    stored_revision=stored_revision,
                )
            saved = record.detach()
            saved.revision = stored_revision + 1
            self._records[record.key] = saved
            return saved.detach()

    def restore(self, previous, key):
        with self.guard:
            if previous is None:
                self._records.pop(key, None)
            else:
                self._records[key] = previous.detach()

    def records(self):
        with self.guard:
            ordered = sorted(self._records.items())
            return [record.detach() for _, record in ordered]
