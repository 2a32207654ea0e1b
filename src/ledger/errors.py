"""Errors raised by the stock movement engine.

Each error is an expected outcome that the caller renders or acts on.
They extend protean's exception types so that API layers already mapping
``ValidationError``, ``ObjectNotFoundError`` and ``InvalidStateError`` keep
working, and carry the ledger key plus the counters that caused the
rejection. ``messages`` is set on every one of them, whatever the base.
"""

from protean.exceptions import InvalidStateError, ObjectNotFoundError, ValidationError


class StockLedgerError(Exception):
    """Structured context shared by every rejected stock operation."""

    field = "quantity"

    def __init__(self, message, product_id=None, warehouse_id=None, requested=None, **state):
        self.message = message
        self.product_id = product_id
        self.warehouse_id = warehouse_id
        self.requested = requested
        self.state = state
        super().__init__({self.field: [message]})
        self.messages = {self.field: [message]}

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "requested": self.requested,
            "state": dict(self.state),
        }


class InsufficientStockError(StockLedgerError, ValidationError):
    """An adjustment would drive on-hand quantity below zero."""

    field = "delta"


class InsufficientAvailableStockError(StockLedgerError, ValidationError):
    """A reservation or transfer asks for more than the unreserved quantity."""


class ReservationConflictError(StockLedgerError, ValidationError):
    """On-hand quantity would drop below what is already reserved."""

    field = "delta"


class OverReleaseError(StockLedgerError, ValidationError):
    """A release asks for more than is currently reserved."""


class NotFoundError(StockLedgerError, ObjectNotFoundError):
    """No stock record exists for a pair where one is required."""

    field = "stock_record"


class ConcurrencyConflictError(StockLedgerError, InvalidStateError):
    """The atomic unit was aborted by contention. Safe to retry verbatim."""

    field = "stock_record"
