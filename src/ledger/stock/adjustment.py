"""Stock adjustment and physical count — commands and handler."""

from protean import handle
from protean.fields import Float, Identifier, Integer, String, Text

from ledger.domain import ledger
from ledger.services import get_engine
from ledger.stock.record import StockRecord


@ledger.command(part_of="StockRecord")
class AdjustStock:
    """Change on-hand quantity by a signed delta."""

    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    delta = Integer(required=True)  # Can be negative, never zero
    reason = String(max_length=200)
    reference_number = String(max_length=50)
    actor_id = String(max_length=100)
    movement_type = String()  # StockIn, StockOut, Adjustment; defaults by sign
    unit_cost = Float(min_value=0.0)
    notes = Text()


@ledger.command(part_of="StockRecord")
class RecordStockCount:
    """Record a physical stock count."""

    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    counted_quantity = Integer(required=True, min_value=0)
    actor_id = String(max_length=100)
    reference_number = String(max_length=50)


@ledger.command_handler(part_of=StockRecord)
class StockAdjustmentHandler:
    @handle(AdjustStock)
    def adjust_stock(self, command):
        result = get_engine().adjust_stock(
            product_id=command.product_id,
            warehouse_id=command.warehouse_id,
            delta=command.delta,
            reason=command.reason,
            reference_number=command.reference_number,
            actor_id=command.actor_id,
            movement_type=command.movement_type,
            unit_cost=command.unit_cost,
            notes=command.notes,
        )
        return result.to_dict()

    @handle(RecordStockCount)
    def record_stock_count(self, command):
        result = get_engine().record_stock_count(
            product_id=command.product_id,
            warehouse_id=command.warehouse_id,
            counted_quantity=command.counted_quantity,
            actor_id=command.actor_id,
            reference_number=command.reference_number,
        )
        return result.to_dict()
