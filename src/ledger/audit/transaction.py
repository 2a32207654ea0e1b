"""StockTransaction aggregate — one immutable entry in the stock audit log.

Every change the engine makes to a stock record is written as exactly one
StockTransaction. Entries are created once and never edited; corrections
are new Adjustment entries. Replaying a pair's entries in order from zero
reproduces its on-hand quantity.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ledger.domain import ledger


class TransactionType(Enum):
    STOCK_IN = "StockIn"
    STOCK_OUT = "StockOut"
    ADJUSTMENT = "Adjustment"
    RESERVATION = "Reservation"
    RESERVATION_RELEASE = "ReservationRelease"
    TRANSFER_OUT = "TransferOut"
    TRANSFER_IN = "TransferIn"


RESERVATION_TYPES = frozenset({TransactionType.RESERVATION, TransactionType.RESERVATION_RELEASE})

_LABELS = {
    TransactionType.STOCK_IN: "Stock In",
    TransactionType.STOCK_OUT: "Stock Out",
    TransactionType.ADJUSTMENT: "Adjustment",
    TransactionType.RESERVATION: "Reservation",
    TransactionType.RESERVATION_RELEASE: "Reservation Release",
    TransactionType.TRANSFER_OUT: "Transfer Out",
    TransactionType.TRANSFER_IN: "Transfer In",
}


@ledger.aggregate
class StockTransaction:
    """An audit entry describing a single stock-affecting event."""

    transaction_id = Identifier(identifier=True)
    sequence = Integer(default=0)
    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    actor_id = String(max_length=100)
    transaction_type = String(required=True, choices=TransactionType)
    quantity_changed = Integer(default=0)
    reservation_delta = Integer(default=0)
    previous_quantity = Integer(required=True, min_value=0)
    new_quantity = Integer(required=True, min_value=0)
    unit_cost = Float(min_value=0.0)
    reason = String(max_length=200)
    reference_number = String(max_length=50)
    notes = Text()
    timestamp = DateTime(required=True)

    @classmethod
    def record(
        cls,
        record,
        transaction_type,
        previous_quantity,
        quantity_changed=0,
        reservation_delta=0,
        actor_id=None,
        unit_cost=None,
        reason=None,
        reference_number=None,
        notes=None,
        timestamp=None,
    ):
        """Build the entry describing a change just applied to ``record``."""
        return cls(
            transaction_id=str(uuid4()),
            product_id=record.product_id,
            warehouse_id=record.warehouse_id,
            actor_id=str(actor_id) if actor_id is not None else None,
            transaction_type=TransactionType(transaction_type).value,
            quantity_changed=quantity_changed,
            reservation_delta=reservation_delta,
            previous_quantity=previous_quantity,
            new_quantity=previous_quantity + quantity_changed,
            unit_cost=unit_cost,
            reason=reason,
            reference_number=reference_number,
            notes=notes,
            timestamp=timestamp or datetime.now(UTC),
        )

    def detach(self):
        """Independent copy, so the audit log never hands out its own entry."""
        return StockTransaction(
            transaction_id=self.transaction_id,
            sequence=self.sequence,
            product_id=self.product_id,
            warehouse_id=self.warehouse_id,
            actor_id=self.actor_id,
            transaction_type=self.transaction_type,
            quantity_changed=self.quantity_changed,
            reservation_delta=self.reservation_delta,
            previous_quantity=self.previous_quantity,
            new_quantity=self.new_quantity,
            unit_cost=self.unit_cost,
            reason=self.reason,
            reference_number=self.reference_number,
            notes=self.notes,
            timestamp=self.timestamp,
        )

    @invariant.post
    def new_quantity_must_follow_from_change(self):
        if self.new_quantity != (self.previous_quantity or 0) + (self.quantity_changed or 0):
            raise ValidationError(
                {
                    "new_quantity": [
                        f"Expected {self.previous_quantity} + {self.quantity_changed}, got {self.new_quantity}"
                    ]
                }
            )

    @invariant.post
    def change_must_match_type(self):
        kind = TransactionType(self.transaction_type)
        if kind in RESERVATION_TYPES:
            if self.quantity_changed:
                raise ValidationError({"quantity_changed": ["Reservation entries do not change on-hand quantity"]})
            if not self.reservation_delta:
                raise ValidationError({"reservation_delta": ["Reservation entries must carry a reservation delta"]})
            return

        if self.reservation_delta:
            raise ValidationError({"reservation_delta": [f"{kind.value} entries do not change reservations"]})
        if kind in (TransactionType.STOCK_IN, TransactionType.TRANSFER_IN) and self.quantity_changed <= 0:
            raise ValidationError({"quantity_changed": [f"{kind.value} must increase stock"]})
        if kind in (TransactionType.STOCK_OUT, TransactionType.TRANSFER_OUT) and self.quantity_changed >= 0:
            raise ValidationError({"quantity_changed": [f"{kind.value} must decrease stock"]})
        if kind == TransactionType.ADJUSTMENT and self.quantity_changed == 0:
            raise ValidationError({"quantity_changed": ["Adjustment quantity cannot be zero"]})

    @property
    def kind(self) -> TransactionType:
        return TransactionType(self.transaction_type)

    @property
    def absolute_quantity(self) -> int:
        return abs(self.quantity_changed or 0)

    @property
    def is_stock_increase(self) -> bool:
        return (self.quantity_changed or 0) > 0

    @property
    def is_stock_decrease(self) -> bool:
        return (self.quantity_changed or 0) < 0

    @property
    def total_value(self) -> float | None:
        if self.unit_cost is None:
            return None
        return self.absolute_quantity * self.unit_cost

    @property
    def description(self) -> str:
        label = _LABELS[self.kind]
        if self.kind in RESERVATION_TYPES:
            direction = "increased" if self.reservation_delta > 0 else "decreased"
            return f"{label}: Reserved {direction} by {abs(self.reservation_delta)}"
        direction = "increased" if self.is_stock_increase else "decreased"
        return f"{label}: Stock {direction} by {self.absolute_quantity}"
