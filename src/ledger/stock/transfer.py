"""Stock transfer between warehouses — command and handler."""

from protean import handle
from protean.fields import Float, Identifier, Integer, String

from ledger.domain import ledger
from ledger.services import get_engine
from ledger.stock.record import StockRecord


@ledger.command(part_of="StockRecord")
class TransferStock:
    """Move unreserved stock of one product from one warehouse to another."""

    product_id = Identifier(required=True)
    source_warehouse_id = Identifier(required=True)
    destination_warehouse_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    reason = String(max_length=200)
    reference_number = String(max_length=50)  # Generated when omitted
    actor_id = String(max_length=100)
    unit_cost = Float(min_value=0.0)


@ledger.command_handler(part_of=StockRecord)
class TransferStockHandler:
    @handle(TransferStock)
    def transfer_stock(self, command):
        result = get_engine().transfer_stock(
            product_id=command.product_id,
            source_warehouse_id=command.source_warehouse_id,
            destination_warehouse_id=command.destination_warehouse_id,
            quantity=command.quantity,
            reason=command.reason,
            reference_number=command.reference_number,
            actor_id=command.actor_id,
            unit_cost=command.unit_cost,
        )
        return result.to_dict()
