"""Stock movement engine — the only writer of stock records and audit entries.

Each operation is one atomic unit scoped to the stock keys it touches:

    1. take the per-key locks (sorted order, bounded wait)
    2. read fresh records and validate the change
    3. write the records, then append the matching audit entries

If any write in step 3 fails, or the unit is interrupted, every record it
wrote is restored and every entry it appended is withdrawn before the
error propagates. Nothing is retried here: a ConcurrencyConflictError
reaches the caller, which may re-issue the same call verbatim.
"""

from contextlib import contextmanager
from datetime import UTC, datetime
from uuid import uuid4

import structlog
from protean.exceptions import ValidationError

from ledger.audit.log import AuditLog
from ledger.audit.transaction import StockTransaction, TransactionType
from ledger.engine.locking import KeyLocks
from ledger.engine.results import AdjustmentResult, ReservationResult, StockCountResult, TransferResult
from ledger.errors import InsufficientAvailableStockError, NotFoundError, StockLedgerError
from ledger.stock.record import StockRecord, stock_key
from ledger.stock.store import LedgerStore

logger = structlog.get_logger(__name__)

DEFAULT_LOCK_TIMEOUT = 5.0

_ADJUSTMENT_TYPES = (TransactionType.STOCK_IN, TransactionType.STOCK_OUT, TransactionType.ADJUSTMENT)


def _require_positive(field, value):
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError({field: ["Quantity must be a positive integer"]})


def _movement_type(delta, movement_type):
    if movement_type is None:
        return TransactionType.STOCK_IN if delta > 0 else TransactionType.STOCK_OUT

    try:
        kind = TransactionType(movement_type)
    except ValueError:
        raise ValidationError({"movement_type": [f"Unknown movement type: {movement_type}"]}) from None

    if kind not in _ADJUSTMENT_TYPES:
        raise ValidationError({"movement_type": [f"{kind.value} cannot be recorded as an adjustment"]})
    if kind == TransactionType.STOCK_IN and delta < 0:
        raise ValidationError({"movement_type": ["StockIn requires a positive delta"]})
    if kind == TransactionType.STOCK_OUT and delta > 0:
        raise ValidationError({"movement_type": ["StockOut requires a negative delta"]})
    return kind


class StockMovementEngine:
    """Adjust, reserve, release, transfer and count stock."""

    def __init__(
        self,
        ledger: LedgerStore,
        audit_log: AuditLog,
        locks: KeyLocks | None = None,
        clock=None,
        lock_timeout: float | None = DEFAULT_LOCK_TIMEOUT,
    ):
        self.ledger = ledger
        self.audit_log = audit_log
        self.locks = locks if locks is not None else KeyLocks()
        self.lock_timeout = lock_timeout
        self._clock = clock

    def _now(self):
        return self._clock() if self._clock else datetime.now(UTC)

    @contextmanager
    def _unit(self, operation, *keys, **context):
        """Lock ``keys`` for one operation and log it if it is rejected."""
        try:
            with self.locks.hold(keys, timeout=self.lock_timeout):
                yield
        except (StockLedgerError, ValidationError) as exc:
            logger.warning(
                "Stock operation rejected",
                operation=operation,
                keys=[key.record_id for key in keys],
                error=type(exc).__name__,
                detail=str(exc),
                **context,
            )
            raise

    def _fetch(self, key) -> StockRecord:
        record = self.ledger.get(key.product_id, key.warehouse_id)
        if record is None:
            raise NotFoundError(
                f"No stock record for product {key.product_id} at warehouse {key.warehouse_id}",
                product_id=key.product_id,
                warehouse_id=key.warehouse_id,
            )
        return record

    def _commit(self, records, entries) -> list[StockRecord]:
        """Write ``records`` then append ``entries``; undo all of it on failure."""
        written = []
        appended = []
        with self.ledger.guard, self.audit_log.guard:
            try:
                saved = []
                for record in records:
                    previous = self.ledger.get(record.product_id, record.warehouse_id)
                    saved.append(self.ledger.save(record))
                    written.append((record.key, previous))
                for entry in entries:
                    appended.append(self.audit_log.append(entry))
            except BaseException:
                for entry in reversed(appended):
                    self.audit_log.retract(entry)
                for key, previous in reversed(written):
                    self.ledger.restore(previous, key)
                logger.warning(
                    "Stock unit rolled back",
                    records=[record.record_id for record in records],
                    restored=len(written),
                    withdrawn=len(appended),
                )
                raise
        return saved

    # -------------------------------------------------------------------
    # Adjustments
    # -------------------------------------------------------------------
    def adjust_stock(
        self,
        product_id,
        warehouse_id,
        delta,
        reason=None,
        reference_number=None,
        actor_id=None,
        movement_type=None,
        unit_cost=None,
        notes=None,
    ) -> AdjustmentResult:
        """Change on-hand quantity by a signed ``delta``.

        The entry type defaults to StockIn/StockOut by sign; pass
        ``movement_type="Adjustment"`` for corrections. A positive delta on
        a pair that never held stock creates its record.
        """
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise ValidationError({"delta": ["Delta must be a non-zero integer"]})
        kind = _movement_type(delta, movement_type)
        key = stock_key(product_id, warehouse_id)

        with self._unit("adjust_stock", key, requested=delta, actor_id=actor_id):
            now = self._now()
            record = self.ledger.get(*key) or StockRecord.open(*key, now=now)
            previous, new = record.apply_delta(delta, now=now)
            entry = StockTransaction.record(
                record,
                kind,
                previous_quantity=previous,
                quantity_changed=delta,
                actor_id=actor_id,
                unit_cost=unit_cost,
                reason=reason,
                reference_number=reference_number,
                notes=notes,
                timestamp=now,
            )
            (saved,) = self._commit([record], [entry])

        logger.info(
            "Stock adjusted",
            product_id=key.product_id,
            warehouse_id=key.warehouse_id,
            movement_type=kind.value,
            delta=delta,
            previous_quantity=previous,
            new_quantity=new,
            actor_id=actor_id,
        )
        return AdjustmentResult(
            product_id=key.product_id,
            warehouse_id=key.warehouse_id,
            previous_quantity=previous,
            new_quantity=saved.quantity,
            available_quantity=saved.available_quantity,
            transaction_id=entry.transaction_id,
        )

    def record_stock_count(
        self,
        product_id,
        warehouse_id,
        counted_quantity,
        actor_id=None,
        reference_number=None,
    ) -> StockCountResult:
        """Record a physical count, adjusting on-hand to match when it differs."""
        if isinstance(counted_quantity, bool) or not isinstance(counted_quantity, int) or counted_quantity < 0:
            raise ValidationError({"counted_quantity": ["Counted quantity must be a non-negative integer"]})
        key = stock_key(product_id, warehouse_id)

        with self._unit("record_stock_count", key, requested=counted_quantity, actor_id=actor_id):
            now = self._now()
            record = self._fetch(key)
            expected = record.quantity
            discrepancy = record.record_count(counted_quantity, now=now)
            entries = []
            if discrepancy:
                entries.append(
                    StockTransaction.record(
                        record,
                        TransactionType.ADJUSTMENT,
                        previous_quantity=expected,
                        quantity_changed=discrepancy,
                        actor_id=actor_id,
                        reason=f"Stock count: counted {counted_quantity}, expected {expected}",
                        reference_number=reference_number,
                        timestamp=now,
                    )
                )
            self._commit([record], entries)

        logger.info(
            "Stock count recorded",
            product_id=key.product_id,
            warehouse_id=key.warehouse_id,
            expected_quantity=expected,
            counted_quantity=counted_quantity,
            discrepancy=discrepancy,
            actor_id=actor_id,
        )
        return StockCountResult(
            product_id=key.product_id,
            warehouse_id=key.warehouse_id,
            expected_quantity=expected,
            counted_quantity=counted_quantity,
            discrepancy=discrepancy,
            transaction_id=entries[0].transaction_id if entries else None,
        )

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def reserve_stock(self, product_id, warehouse_id, quantity, reference_number=None, actor_id=None) -> ReservationResult:
        """Earmark ``quantity`` units of available stock for pending demand."""
        _require_positive("quantity", quantity)
        key = stock_key(product_id, warehouse_id)

        with self._unit("reserve_stock", key, requested=quantity, actor_id=actor_id):
            now = self._now()
            record = self._fetch(key)
            previous_reserved = record.reserved_quantity
            record.reserve(quantity, now=now)
            entry = StockTransaction.record(
                record,
                TransactionType.RESERVATION,
                previous_quantity=record.quantity,
                reservation_delta=quantity,
                actor_id=actor_id,
                reference_number=reference_number,
                notes=f"Reserved {quantity}: reserved {previous_reserved} -> {record.reserved_quantity}",
                timestamp=now,
            )
            (saved,) = self._commit([record], [entry])

        logger.info(
            "Stock reserved",
            product_id=key.product_id,
            warehouse_id=key.warehouse_id,
            quantity=quantity,
            reserved_quantity=saved.reserved_quantity,
            available_quantity=saved.available_quantity,
            reference_number=reference_number,
        )
        return ReservationResult(
            product_id=key.product_id,
            warehouse_id=key.warehouse_id,
            reserved_quantity=saved.reserved_quantity,
            available_quantity=saved.available_quantity,
            transaction_id=entry.transaction_id,
        )

    def release_reserved_stock(
        self,
        product_id,
        warehouse_id,
        quantity,
        actor_id=None,
        reference_number=None,
        reason=None,
    ) -> ReservationResult:
        """Return reserved units to available. Over-release is rejected, never clamped."""
        _require_positive("quantity", quantity)
        key = stock_key(product_id, warehouse_id)

        with self._unit("release_reserved_stock", key, requested=quantity, actor_id=actor_id):
            now = self._now()
            record = self._fetch(key)
            previous_reserved = record.reserved_quantity
            record.release(quantity, now=now)
            entry = StockTransaction.record(
                record,
                TransactionType.RESERVATION_RELEASE,
                previous_quantity=record.quantity,
                reservation_delta=-quantity,
                actor_id=actor_id,
                reason=reason,
                reference_number=reference_number,
                notes=f"Released {quantity}: reserved {previous_reserved} -> {record.reserved_quantity}",
                timestamp=now,
            )
            (saved,) = self._commit([record], [entry])

        logger.info(
            "Reserved stock released",
            product_id=key.product_id,
            warehouse_id=key.warehouse_id,
            quantity=quantity,
            reserved_quantity=saved.reserved_quantity,
            available_quantity=saved.available_quantity,
        )
        return ReservationResult(
            product_id=key.product_id,
            warehouse_id=key.warehouse_id,
            reserved_quantity=saved.reserved_quantity,
            available_quantity=saved.available_quantity,
            transaction_id=entry.transaction_id,
        )

    # -------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------
    def transfer_stock(
        self,
        product_id,
        source_warehouse_id,
        destination_warehouse_id,
        quantity,
        reason=None,
        reference_number=None,
        actor_id=None,
        unit_cost=None,
    ) -> TransferResult:
        """Move unreserved stock between two warehouses, both sides or neither.

        The TransferOut and TransferIn entries share ``reference_number``;
        one is generated when the caller has none.
        """
        _require_positive("quantity", quantity)
        source_key = stock_key(product_id, source_warehouse_id)
        destination_key = stock_key(product_id, destination_warehouse_id)
        if source_key == destination_key:
            raise ValidationError(
                {"destination_warehouse_id": ["Source and destination warehouses cannot be the same"]}
            )
        reference_number = reference_number or f"TRF-{uuid4().hex[:12].upper()}"

        with self._unit(
            "transfer_stock",
            source_key,
            destination_key,
            requested=quantity,
            actor_id=actor_id,
            reference_number=reference_number,
        ):
            now = self._now()
            source = self._fetch(source_key)
            if not source.has_sufficient_stock(quantity):
                raise InsufficientAvailableStockError(
                    f"Insufficient stock in source warehouse: {source.available_quantity} available, "
                    f"{quantity} requested",
                    product_id=source_key.product_id,
                    warehouse_id=source_key.warehouse_id,
                    requested=quantity,
                    **source.levels(),
                )
            destination = self.ledger.get(*destination_key) or StockRecord.open(*destination_key, now=now)

            source_previous, _ = source.apply_delta(-quantity, now=now)
            destination_previous, _ = destination.apply_delta(quantity, now=now)

            transfer_out = StockTransaction.record(
                source,
                TransactionType.TRANSFER_OUT,
                previous_quantity=source_previous,
                quantity_changed=-quantity,
                actor_id=actor_id,
                unit_cost=unit_cost,
                reason=reason or f"Stock transfer to warehouse {destination_key.warehouse_id}",
                reference_number=reference_number,
                timestamp=now,
            )
            transfer_in = StockTransaction.record(
                destination,
                TransactionType.TRANSFER_IN,
                previous_quantity=destination_previous,
                quantity_changed=quantity,
                actor_id=actor_id,
                unit_cost=unit_cost,
                reason=reason or f"Stock transfer from warehouse {source_key.warehouse_id}",
                reference_number=reference_number,
                timestamp=now,
            )
            saved_source, saved_destination = self._commit([source, destination], [transfer_out, transfer_in])

        logger.info(
            "Stock transferred",
            product_id=source_key.product_id,
            source_warehouse_id=source_key.warehouse_id,
            destination_warehouse_id=destination_key.warehouse_id,
            quantity=quantity,
            source_quantity=saved_source.quantity,
            destination_quantity=saved_destination.quantity,
            reference_number=reference_number,
            actor_id=actor_id,
        )
        return TransferResult(
            product_id=source_key.product_id,
            source_warehouse_id=source_key.warehouse_id,
            destination_warehouse_id=destination_key.warehouse_id,
            source_quantity=saved_source.quantity,
            destination_quantity=saved_destination.quantity,
            reference_number=reference_number,
            out_transaction_id=transfer_out.transaction_id,
            in_transaction_id=transfer_in.transaction_id,
        )
