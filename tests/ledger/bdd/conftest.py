"""Shared BDD fixtures and step definitions for the Ledger domain."""

import pytest
from ledger.errors import (
    ConcurrencyConflictError,
    InsufficientAvailableStockError,
    InsufficientStockError,
    NotFoundError,
    OverReleaseError,
    ReservationConflictError,
)
from pytest_bdd import given, parsers, then

_ERROR_CLASSES = {
    "InsufficientStockError": InsufficientStockError,
    "InsufficientAvailableStockError": InsufficientAvailableStockError,
    "ReservationConflictError": ReservationConflictError,
    "OverReleaseError": OverReleaseError,
    "NotFoundError": NotFoundError,
    "ConcurrencyConflictError": ConcurrencyConflictError,
}


@pytest.fixture()
def error():
    """Container for exceptions raised by When steps."""
    return {"exc": None}


@pytest.fixture()
def product_id():
    return "P"


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('warehouse "{warehouse_id}" holds {quantity:d} units'))
def _(engine, product_id, warehouse_id, quantity):
    engine.adjust_stock(product_id, warehouse_id, quantity, reason="Opening balance")


@given(parsers.cfparse('{quantity:d} units are reserved at "{warehouse_id}"'))
def _(engine, product_id, warehouse_id, quantity):
    engine.reserve_stock(product_id, warehouse_id, quantity)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('warehouse "{warehouse_id}" has {quantity:d} on hand'))
def _(engine, product_id, warehouse_id, quantity):
    assert engine.ledger.get(product_id, warehouse_id).quantity == quantity


@then(parsers.cfparse('warehouse "{warehouse_id}" has {quantity:d} reserved'))
def _(engine, product_id, warehouse_id, quantity):
    assert engine.ledger.get(product_id, warehouse_id).reserved_quantity == quantity


@then(parsers.cfparse('warehouse "{warehouse_id}" has {quantity:d} available'))
def _(engine, product_id, warehouse_id, quantity):
    assert engine.ledger.get(product_id, warehouse_id).available_quantity == quantity


@then(parsers.cfparse("the operation fails with {error_name}"))
def _(error, error_name):
    assert isinstance(error["exc"], _ERROR_CLASSES[error_name]), repr(error["exc"])


@then(parsers.cfparse("the audit log holds {count:d} entries"))
def _(engine, count):
    assert len(engine.audit_log.entries()) == count


@then("every record matches the replay of its audit entries")
def _(queries):
    assert queries.inconsistent_records() == []
