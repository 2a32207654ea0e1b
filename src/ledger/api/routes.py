"""FastAPI routes for the Ledger domain.

Writes go through protean commands processed synchronously; reads go
straight to the query layer.
"""

from datetime import datetime

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers
from protean.utils.globals import current_domain

from ledger.api.schemas import (
    AdjustmentResponse,
    AdjustStockRequest,
    DashboardResponse,
    MovementSummaryResponse,
    ProductTotalsResponse,
    RecordStockCountRequest,
    ReleaseReservedStockRequest,
    ReservationResponse,
    ReserveStockRequest,
    StockCountResponse,
    StockRecordResponse,
    TransactionResponse,
    TransferResponse,
    TransferStockRequest,
    UtilizationResponse,
    ValuationResponse,
)
from ledger.errors import ConcurrencyConflictError, NotFoundError
from ledger.services import get_queries
from ledger.stock.adjustment import AdjustStock, RecordStockCount
from ledger.stock.reservation import ReleaseReservedStock, ReserveStock
from ledger.stock.transfer import TransferStock

ledger_router = APIRouter(prefix="/ledger", tags=["ledger"])


def _record_response(record) -> StockRecordResponse:
    return StockRecordResponse(
        product_id=record.product_id,
        warehouse_id=record.warehouse_id,
        quantity=record.quantity,
        reserved_quantity=record.reserved_quantity,
        available_quantity=record.available_quantity,
        status=get_queries().stock_status(record),
        last_stock_count_at=record.last_stock_count_at,
        updated_at=record.updated_at,
    )


def _transaction_response(entry) -> TransactionResponse:
    return TransactionResponse(
        transaction_id=entry.transaction_id,
        sequence=entry.sequence,
        product_id=entry.product_id,
        warehouse_id=entry.warehouse_id,
        transaction_type=entry.transaction_type,
        quantity_changed=entry.quantity_changed,
        reservation_delta=entry.reservation_delta,
        previous_quantity=entry.previous_quantity,
        new_quantity=entry.new_quantity,
        unit_cost=entry.unit_cost,
        reason=entry.reason,
        reference_number=entry.reference_number,
        actor_id=entry.actor_id,
        timestamp=entry.timestamp,
        description=entry.description,
    )


# ---------------------------------------------------------------------------
# Stock movements
# ---------------------------------------------------------------------------
@ledger_router.put("/stock/{product_id}/{warehouse_id}/adjust", response_model=AdjustmentResponse)
async def adjust_stock(product_id: str, warehouse_id: str, body: AdjustStockRequest) -> AdjustmentResponse:
    command = AdjustStock(
        product_id=product_id,
        warehouse_id=warehouse_id,
        delta=body.delta,
        reason=body.reason,
        reference_number=body.reference_number,
        actor_id=body.actor_id,
        movement_type=body.movement_type,
        unit_cost=body.unit_cost,
        notes=body.notes,
    )
    result = current_domain.process(command, asynchronous=False)
    return AdjustmentResponse(**result)


@ledger_router.post("/stock/{product_id}/{warehouse_id}/count", response_model=StockCountResponse)
async def record_stock_count(product_id: str, warehouse_id: str, body: RecordStockCountRequest) -> StockCountResponse:
    command = RecordStockCount(
        product_id=product_id,
        warehouse_id=warehouse_id,
        counted_quantity=body.counted_quantity,
        actor_id=body.actor_id,
        reference_number=body.reference_number,
    )
    result = current_domain.process(command, asynchronous=False)
    return StockCountResponse(**result)


@ledger_router.post(
    "/stock/{product_id}/{warehouse_id}/reserve",
    status_code=201,
    response_model=ReservationResponse,
)
async def reserve_stock(product_id: str, warehouse_id: str, body: ReserveStockRequest) -> ReservationResponse:
    command = ReserveStock(
        product_id=product_id,
        warehouse_id=warehouse_id,
        quantity=body.quantity,
        reference_number=body.reference_number,
        actor_id=body.actor_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return ReservationResponse(**result)


@ledger_router.put("/stock/{product_id}/{warehouse_id}/release", response_model=ReservationResponse)
async def release_reserved_stock(
    product_id: str, warehouse_id: str, body: ReleaseReservedStockRequest
) -> ReservationResponse:
    command = ReleaseReservedStock(
        product_id=product_id,
        warehouse_id=warehouse_id,
        quantity=body.quantity,
        reason=body.reason,
        reference_number=body.reference_number,
        actor_id=body.actor_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return ReservationResponse(**result)


@ledger_router.post("/transfers", status_code=201, response_model=TransferResponse)
async def transfer_stock(body: TransferStockRequest) -> TransferResponse:
    command = TransferStock(
        product_id=body.product_id,
        source_warehouse_id=body.source_warehouse_id,
        destination_warehouse_id=body.destination_warehouse_id,
        quantity=body.quantity,
        reason=body.reason,
        reference_number=body.reference_number,
        actor_id=body.actor_id,
        unit_cost=body.unit_cost,
    )
    result = current_domain.process(command, asynchronous=False)
    return TransferResponse(**result)


# ---------------------------------------------------------------------------
# Stock levels
# ---------------------------------------------------------------------------
@ledger_router.get("/stock/{product_id}/{warehouse_id}", response_model=StockRecordResponse)
async def get_stock_record(product_id: str, warehouse_id: str) -> StockRecordResponse:
    record = get_queries().get(product_id, warehouse_id)
    if record is None:
        raise NotFoundError(
            f"No stock record for product {product_id} at warehouse {warehouse_id}",
            product_id=product_id,
            warehouse_id=warehouse_id,
        )
    return _record_response(record)


@ledger_router.get("/products/{product_id}/totals", response_model=ProductTotalsResponse)
async def product_totals(product_id: str) -> ProductTotalsResponse:
    queries = get_queries()
    return ProductTotalsResponse(
        product_id=product_id,
        total_quantity=queries.total_quantity(product_id),
        total_available=queries.total_available(product_id),
    )


@ledger_router.get("/low-stock", response_model=list[StockRecordResponse])
async def low_stock() -> list[StockRecordResponse]:
    return [_record_response(record) for record in get_queries().low_stock()]


@ledger_router.get("/out-of-stock", response_model=list[StockRecordResponse])
async def out_of_stock() -> list[StockRecordResponse]:
    return [_record_response(record) for record in get_queries().out_of_stock()]


@ledger_router.get("/valuation", response_model=ValuationResponse)
async def valuation(warehouse_id: str | None = None) -> ValuationResponse:
    return ValuationResponse(
        warehouse_id=warehouse_id,
        total_value=get_queries().valuation(warehouse_id=warehouse_id),
    )


@ledger_router.get("/warehouses/{warehouse_id}/utilization", response_model=UtilizationResponse)
async def capacity_utilization(warehouse_id: str) -> UtilizationResponse:
    return UtilizationResponse(
        warehouse_id=warehouse_id,
        utilization=get_queries().capacity_utilization(warehouse_id),
    )


# ---------------------------------------------------------------------------
# Movements
# ---------------------------------------------------------------------------
@ledger_router.get("/products/{product_id}/history", response_model=list[TransactionResponse])
async def movement_history(
    product_id: str,
    warehouse_id: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[TransactionResponse]:
    entries = get_queries().movement_history(product_id, warehouse_id=warehouse_id, start=start, end=end)
    return [_transaction_response(entry) for entry in entries]


@ledger_router.get("/transactions/recent", response_model=list[TransactionResponse])
async def recent_transactions(count: int = Query(default=10, ge=0, le=500)) -> list[TransactionResponse]:
    return [_transaction_response(entry) for entry in get_queries().recent(count)]


@ledger_router.get("/transactions/summary", response_model=MovementSummaryResponse)
async def movement_summary(start: datetime | None = None, end: datetime | None = None) -> MovementSummaryResponse:
    summary = get_queries().movement_summary(start, end)
    return MovementSummaryResponse(
        stock_in_count=summary.stock_in_count,
        stock_out_count=summary.stock_out_count,
        adjustment_count=summary.adjustment_count,
        total=summary.total,
    )


@ledger_router.get("/dashboard", response_model=DashboardResponse)
async def dashboard() -> DashboardResponse:
    summary = get_queries().dashboard_summary()
    return DashboardResponse(
        total_records=summary.total_records,
        total_value=summary.total_value,
        low_stock_count=summary.low_stock_count,
        out_of_stock_count=summary.out_of_stock_count,
        transactions_today=summary.transactions_today,
        transactions_this_month=summary.transactions_this_month,
        stock_in_today=summary.stock_in_today,
        stock_out_today=summary.stock_out_today,
    )


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
async def _concurrency_conflict(request: Request, exc: ConcurrencyConflictError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": exc.messages, "detail": exc.to_dict()})


def register_ledger_exception_handlers(app: FastAPI) -> None:
    """Protean's error mapping plus 409 for contention (safe to retry)."""
    register_exception_handlers(app)
    app.add_exception_handler(ConcurrencyConflictError, _concurrency_conflict)
