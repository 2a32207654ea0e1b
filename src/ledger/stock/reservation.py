"""Stock reservation — commands and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String

from ledger.domain import ledger
from ledger.services import get_engine
from ledger.stock.record import StockRecord


@ledger.command(part_of="StockRecord")
class ReserveStock:
    """Earmark available stock for pending demand."""

    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    reference_number = String(max_length=50)  # Order or pick list number
    actor_id = String(max_length=100)


@ledger.command(part_of="StockRecord")
class ReleaseReservedStock:
    """Return reserved stock to available."""

    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    actor_id = String(max_length=100)
    reference_number = String(max_length=50)
    reason = String(max_length=200)  # order_cancelled, shipped, expired


@ledger.command_handler(part_of=StockRecord)
class ReservationHandler:
    @handle(ReserveStock)
    def reserve_stock(self, command):
        result = get_engine().reserve_stock(
            product_id=command.product_id,
            warehouse_id=command.warehouse_id,
            quantity=command.quantity,
            reference_number=command.reference_number,
            actor_id=command.actor_id,
        )
        return result.to_dict()

    @handle(ReleaseReservedStock)
    def release_reserved_stock(self, command):
        result = get_engine().release_reserved_stock(
            product_id=command.product_id,
            warehouse_id=command.warehouse_id,
            quantity=command.quantity,
            actor_id=command.actor_id,
            reference_number=command.reference_number,
            reason=command.reason,
        )
        return result.to_dict()
