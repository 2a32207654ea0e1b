"""Pydantic request/response schemas for the Ledger API.

These are external contracts, kept separate from the internal protean
commands and engine results.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class AdjustStockRequest(BaseModel):
    delta: int
    reason: str | None = None
    reference_number: str | None = None
    actor_id: str | None = None
    movement_type: str | None = None
    unit_cost: float | None = Field(default=None, ge=0)
    notes: str | None = None


class RecordStockCountRequest(BaseModel):
    counted_quantity: int = Field(ge=0)
    actor_id: str | None = None
    reference_number: str | None = None


class ReserveStockRequest(BaseModel):
    quantity: int = Field(ge=1)
    reference_number: str | None = None
    actor_id: str | None = None


class ReleaseReservedStockRequest(BaseModel):
    quantity: int = Field(ge=1)
    reason: str | None = None
    reference_number: str | None = None
    actor_id: str | None = None


class TransferStockRequest(BaseModel):
    product_id: str
    source_warehouse_id: str
    destination_warehouse_id: str
    quantity: int = Field(ge=1)
    reason: str | None = None
    reference_number: str | None = None
    actor_id: str | None = None
    unit_cost: float | None = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class AdjustmentResponse(BaseModel):
    product_id: str
    warehouse_id: str
    previous_quantity: int
    new_quantity: int
    available_quantity: int
    transaction_id: str


class StockCountResponse(BaseModel):
    product_id: str
    warehouse_id: str
    expected_quantity: int
    counted_quantity: int
    discrepancy: int
    transaction_id: str | None = None


class ReservationResponse(BaseModel):
    product_id: str
    warehouse_id: str
    reserved_quantity: int
    available_quantity: int
    transaction_id: str


class TransferResponse(BaseModel):
    product_id: str
    source_warehouse_id: str
    destination_warehouse_id: str
    source_quantity: int
    destination_quantity: int
    reference_number: str
    out_transaction_id: str
    in_transaction_id: str


class StockRecordResponse(BaseModel):
    product_id: str
    warehouse_id: str
    quantity: int
    reserved_quantity: int
    available_quantity: int
    status: str
    last_stock_count_at: datetime | None = None
    updated_at: datetime | None = None


class ProductTotalsResponse(BaseModel):
    product_id: str
    total_quantity: int
    total_available: int


class ValuationResponse(BaseModel):
    warehouse_id: str | None = None
    total_value: float


class UtilizationResponse(BaseModel):
    warehouse_id: str
    utilization: float | None = None


class TransactionResponse(BaseModel):
    transaction_id: str
    sequence: int
    product_id: str
    warehouse_id: str
    transaction_type: str
    quantity_changed: int
    reservation_delta: int
    previous_quantity: int
    new_quantity: int
    unit_cost: float | None = None
    reason: str | None = None
    reference_number: str | None = None
    actor_id: str | None = None
    timestamp: datetime
    description: str


class MovementSummaryResponse(BaseModel):
    stock_in_count: int
    stock_out_count: int
    adjustment_count: int
    total: int


class DashboardResponse(BaseModel):
    total_records: int
    total_value: float
    low_stock_count: int
    out_of_stock_count: int
    transactions_today: int
    transactions_this_month: int
    stock_in_today: int
    stock_out_today: int
