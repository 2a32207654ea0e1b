"""Read-only inventory views over the ledger store and the audit log.

Nothing here writes. Thresholds, unit costs and capacities come from the
metadata ports; everything else is derived from stored records and
entries at query time.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, datetime

from ledger.audit.log import AuditLog, MovementSummary, as_utc
from ledger.audit.transaction import RESERVATION_TYPES, TransactionType
from ledger.metadata import ProductCatalog, WarehouseDirectory
from ledger.stock.record import StockRecord
from ledger.stock.store import LedgerStore

OUT_OF_STOCK = "Out of Stock"
LOW_STOCK = "Low Stock"
NORMAL = "Normal"


@dataclass(frozen=True)
class ProductStockLevel:
    product_id: str
    total_quantity: int
    total_available: int
    low_stock_threshold: int | None


@dataclass(frozen=True)
class ReplayMismatch:
    product_id: str
    warehouse_id: str
    ledger_quantity: int
    replayed_quantity: int


@dataclass(frozen=True)
class ProductMovement:
    """Movement totals for one product over a reporting window."""

    product_id: str
    total_stock_in: int
    total_stock_out: int
    total_transferred: int
    net_adjustment: int
    total_stock_in_value: float
    total_stock_out_value: float
    transaction_count: int
    first_transaction_at: datetime | None
    last_transaction_at: datetime | None
    current_stock_level: int

    @property
    def net_movement(self) -> int:
        return self.total_stock_in - self.total_stock_out + self.net_adjustment


@dataclass(frozen=True)
class DashboardSummary:
    total_records: int
    total_value: float
    low_stock_count: int
    out_of_stock_count: int
    transactions_today: int
    transactions_this_month: int
    stock_in_today: int
    stock_out_today: int


def replay(entries) -> int:
    """Fold on-hand deltas from zero."""
    quantity = 0
    for entry in entries:
        quantity += entry.quantity_changed or 0
    return quantity


class InventoryQueries:
    """Derived inventory views: low stock, valuation, history, utilization, reports."""

    def __init__(
        self,
        ledger: LedgerStore,
        audit_log: AuditLog,
        products: ProductCatalog,
        warehouses: WarehouseDirectory,
    ):
        self.ledger = ledger
        self.audit_log = audit_log
        self.products = products
        self.warehouses = warehouses

    # -------------------------------------------------------------------
    # Stock levels
    # -------------------------------------------------------------------
    def get(self, product_id, warehouse_id) -> StockRecord | None:
        return self.ledger.get(product_id, warehouse_id)

    def total_quantity(self, product_id) -> int:
        return self.ledger.total_quantity(product_id)

    def total_available(self, product_id) -> int:
        return self.ledger.total_available(product_id)

    def stock_status(self, record: StockRecord) -> str:
        if record.quantity <= 0:
            return OUT_OF_STOCK
        threshold = self.products.low_stock_threshold(record.product_id)
        if threshold is not None and record.quantity <= threshold:
            return LOW_STOCK
        return NORMAL

    def low_stock(self) -> list[StockRecord]:
        """Per-warehouse records at or below their product's threshold."""
        return self.ledger.list_low_stock(self.products)

    def out_of_stock(self) -> list[StockRecord]:
        return [r for r in self.ledger.records() if r.quantity <= 0]

    def _product_levels(self) -> list[ProductStockLevel]:
        product_ids = {r.product_id for r in self.ledger.records()} | set(self.products.product_ids())
        return [
            ProductStockLevel(
                product_id=product_id,
                total_quantity=self.ledger.total_quantity(product_id),
                total_available=self.ledger.total_available(product_id),
                low_stock_threshold=self.products.low_stock_threshold(product_id),
            )
            for product_id in sorted(product_ids)
        ]

    def low_stock_products(self) -> list[ProductStockLevel]:
        """Products whose total across warehouses is at or below their threshold."""
        return [
            level
            for level in self._product_levels()
            if level.low_stock_threshold is not None and level.total_quantity <= level.low_stock_threshold
        ]

    def out_of_stock_products(self) -> list[ProductStockLevel]:
        return [level for level in self._product_levels() if level.total_quantity <= 0]

    # -------------------------------------------------------------------
    # Valuation and capacity
    # -------------------------------------------------------------------
    def valuation(self, warehouse_id=None) -> float:
        return self.ledger.valuation(self.products, warehouse_id=warehouse_id)

    def valuation_by_warehouse(self) -> dict[str, float]:
        values = defaultdict(float)
        for record in self.ledger.records():
            values[record.warehouse_id] += record.quantity * (self.products.unit_cost(record.product_id) or 0.0)
        return dict(values)

    def capacity_utilization(self, warehouse_id) -> float | None:
        """Share of capacity in use, or None when capacity is unset or not positive."""
        capacity = self.warehouses.capacity(warehouse_id)
        if capacity is None or capacity <= 0:
            return None
        stored = sum(r.quantity for r in self.ledger.for_warehouse(warehouse_id))
        return stored / capacity

    # -------------------------------------------------------------------
    # Movements
    # -------------------------------------------------------------------
    def movement_history(self, product_id, warehouse_id=None, start=None, end=None):
        return self.audit_log.history(product_id, warehouse_id=warehouse_id, start=start, end=end)

    def recent(self, count=10):
        return self.audit_log.recent(count)

    def movement_summary(self, start=None, end=None) -> MovementSummary:
        return self.audit_log.movement_summary(start, end)

    def product_movement_report(self, start=None, end=None) -> list[ProductMovement]:
        """Per-product totals for every product with entries in the window."""
        by_product = defaultdict(list)
        for entry in self.audit_log.between(start, end):
            by_product[entry.product_id].append(entry)

        report = []
        for product_id in sorted(by_product):
            entries = by_product[product_id]
            totals = defaultdict(int)
            values = defaultdict(float)
            for entry in entries:
                totals[entry.kind] += entry.absolute_quantity
                values[entry.kind] += entry.total_value or 0.0
            report.append(
                ProductMovement(
                    product_id=product_id,
                    total_stock_in=totals[TransactionType.STOCK_IN],
                    total_stock_out=totals[TransactionType.STOCK_OUT],
                    total_transferred=totals[TransactionType.TRANSFER_OUT],
                    net_adjustment=sum(
                        e.quantity_changed for e in entries if e.kind == TransactionType.ADJUSTMENT
                    ),
                    total_stock_in_value=values[TransactionType.STOCK_IN],
                    total_stock_out_value=values[TransactionType.STOCK_OUT],
                    transaction_count=len(entries),
                    first_transaction_at=entries[0].timestamp,
                    last_transaction_at=entries[-1].timestamp,
                    current_stock_level=self.ledger.total_quantity(product_id),
                )
            )
        return report

    def dashboard_summary(self, now=None) -> DashboardSummary:
        now = as_utc(now) or datetime.now(UTC)
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        start_of_month = start_of_day.replace(day=1)

        this_month = self.audit_log.between(start_of_month, now)
        today = [e for e in this_month if as_utc(e.timestamp) >= start_of_day]
        on_hand_today = [e for e in today if e.kind not in RESERVATION_TYPES]
        records = self.ledger.records()

        return DashboardSummary(
            total_records=len(records),
            total_value=self.valuation(),
            low_stock_count=len(self.low_stock()),
            out_of_stock_count=sum(1 for r in records if r.quantity <= 0),
            transactions_today=len(today),
            transactions_this_month=len(this_month),
            stock_in_today=sum(1 for e in on_hand_today if e.kind == TransactionType.STOCK_IN),
            stock_out_today=sum(1 for e in on_hand_today if e.kind == TransactionType.STOCK_OUT),
        )

    # -------------------------------------------------------------------
    # Consistency
    # -------------------------------------------------------------------
    def replayed_quantity(self, product_id, warehouse_id) -> int:
        return replay(self.audit_log.history(product_id, warehouse_id=warehouse_id))

    def inconsistent_records(self) -> list[ReplayMismatch]:
        """Records whose on-hand quantity differs from the replay of their entries."""
        with self.ledger.guard, self.audit_log.guard:
            records = self.ledger.records()
            entries = self.audit_log.entries()

        by_key = defaultdict(list)
        for entry in entries:
            by_key[(entry.product_id, entry.warehouse_id)].append(entry)

        mismatches = []
        for record in records:
            replayed = replay(by_key[(record.product_id, record.warehouse_id)])
            if replayed != record.quantity:
                mismatches.append(
                    ReplayMismatch(
                        product_id=record.product_id,
                        warehouse_id=record.warehouse_id,
                        ledger_quantity=record.quantity,
                        replayed_quantity=replayed,
                    )
                )
        return mismatches
