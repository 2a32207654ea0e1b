"""Results returned by the stock movement engine."""

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class AdjustmentResult:
    product_id: str
    warehouse_id: str
    previous_quantity: int
    new_quantity: int
    available_quantity: int
    transaction_id: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ReservationResult:
    product_id: str
    warehouse_id: str
    reserved_quantity: int
    available_quantity: int
    transaction_id: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TransferResult:
    product_id: str
    source_warehouse_id: str
    destination_warehouse_id: str
    source_quantity: int
    destination_quantity: int
    reference_number: str
    out_transaction_id: str
    in_transaction_id: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class StockCountResult:
    """Outcome of a physical count. ``transaction_id`` is None when the count matched."""

    product_id: str
    warehouse_id: str
    expected_quantity: int
    counted_quantity: int
    discrepancy: int
    transaction_id: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)
