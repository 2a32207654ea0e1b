"""StockRecord aggregate — on-hand and reserved quantity for one product at one warehouse.

Quantity Model:
    quantity:           Physical count in the warehouse (on-hand)
    reserved_quantity:  Held against pending demand, not yet shipped
    available_quantity: quantity - reserved_quantity (what can be promised)

A record is created the first time stock is introduced for a pair and is
never deleted. Only the stock movement engine changes its counters; the
methods below validate a change and apply it, leaving the audit entry to
the engine.
"""

from datetime import UTC, datetime
from typing import NamedTuple

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer

from ledger.domain import ledger
from ledger.errors import (
    InsufficientAvailableStockError,
    InsufficientStockError,
    OverReleaseError,
    ReservationConflictError,
)


class StockKey(NamedTuple):
    """Composite identity of a stock record."""

    product_id: str
    warehouse_id: str

    @property
    def record_id(self) -> str:
        return f"{self.product_id}@{self.warehouse_id}"


def stock_key(product_id, warehouse_id) -> StockKey:
    return StockKey(str(product_id), str(warehouse_id))


@ledger.aggregate
class StockRecord:
    """Stock levels for one product variant at one warehouse."""

    record_id = Identifier(identifier=True)
    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Integer(default=0, min_value=0)
    reserved_quantity = Integer(default=0, min_value=0)
    last_stock_count_at = DateTime()
    revision = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def open(cls, product_id, warehouse_id, now=None):
        """Blank record for a pair that has never held stock. Not persisted."""
        key = stock_key(product_id, warehouse_id)
        now = now or datetime.now(UTC)
        return cls(
            record_id=key.record_id,
            product_id=key.product_id,
            warehouse_id=key.warehouse_id,
            quantity=0,
            reserved_quantity=0,
            revision=0,
            created_at=now,
            updated_at=now,
        )

    @invariant.post
    def reserved_must_not_exceed_on_hand(self):
        if (self.reserved_quantity or 0) > (self.quantity or 0):
            raise ValidationError(
                {"reserved_quantity": [f"Reserved ({self.reserved_quantity}) exceeds on-hand ({self.quantity})"]}
            )

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def key(self) -> StockKey:
        return stock_key(self.product_id, self.warehouse_id)

    @property
    def available_quantity(self) -> int:
        return (self.quantity or 0) - (self.reserved_quantity or 0)

    def has_sufficient_stock(self, requested) -> bool:
        return self.available_quantity >= requested

    def levels(self) -> dict:
        """Current counters, attached to errors and log lines."""
        return {
            "quantity": self.quantity,
            "reserved_quantity": self.reserved_quantity,
            "available_quantity": self.available_quantity,
        }

    def detach(self):
        """Independent copy, so stores never hand out their own instance."""
        return StockRecord(
            record_id=self.record_id,
            product_id=self.product_id,
            warehouse_id=self.warehouse_id,
            quantity=self.quantity,
            reserved_quantity=self.reserved_quantity,
            last_stock_count_at=self.last_stock_count_at,
            revision=self.revision,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    # -------------------------------------------------------------------
    # On-hand changes
    # -------------------------------------------------------------------
    def check_delta(self, delta):
        """Reject a change to on-hand quantity that would break an invariant."""
        new_quantity = self.quantity + delta
        if new_quantity < 0:
            raise InsufficientStockError(
                f"Adjustment would result in negative stock: {self.quantity} on hand, change {delta}",
                product_id=self.product_id,
                warehouse_id=self.warehouse_id,
                requested=delta,
                **self.levels(),
            )
        if new_quantity < self.reserved_quantity:
            raise ReservationConflictError(
                f"Adjustment would leave {new_quantity} on hand, below {self.reserved_quantity} reserved",
                product_id=self.product_id,
                warehouse_id=self.warehouse_id,
                requested=delta,
                **self.levels(),
            )
        return new_quantity

    def apply_delta(self, delta, now=None):
        """Change on-hand quantity by ``delta``. Returns (previous, new)."""
        previous = self.quantity
        self.quantity = self.check_delta(delta)
        self.updated_at = now or datetime.now(UTC)
        return previous, self.quantity

    def record_count(self, counted_quantity, now=None):
        """Set on-hand to a physical count. Returns the discrepancy applied."""
        now = now or datetime.now(UTC)
        discrepancy = counted_quantity - self.quantity
        if discrepancy:
            self.apply_delta(discrepancy, now=now)
        self.last_stock_count_at = now
        self.updated_at = now
        return discrepancy

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def reserve(self, quantity, now=None):
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if not self.has_sufficient_stock(quantity):
            raise InsufficientAvailableStockError(
                f"Insufficient stock: {self.available_quantity} available, {quantity} requested",
                product_id=self.product_id,
                warehouse_id=self.warehouse_id,
                requested=quantity,
                **self.levels(),
            )
        self.reserved_quantity = self.reserved_quantity + quantity
        self.updated_at = now or datetime.now(UTC)

    def release(self, quantity, now=None):
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if quantity > self.reserved_quantity:
            raise OverReleaseError(
                f"Cannot release {quantity}: only {self.reserved_quantity} reserved",
                product_id=self.product_id,
                warehouse_id=self.warehouse_id,
                requested=quantity,
                **self.levels(),
            )
        self.reserved_quantity = self.reserved_quantity - quantity
        self.updated_at = now or datetime.now(UTC)
