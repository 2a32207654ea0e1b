from datetime import UTC, datetime, timedelta

import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ledger_bed():
    from ledger.domain import ledger

    bed = DomainFixture(ledger)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ledger_bed):
    with ledger_bed.domain_context():
        yield


class Clock:
    """Manually advanced clock so audit timestamps are predictable."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=UTC)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock():
    return Clock()


@pytest.fixture()
def ledger_store():
    from ledger.stock.store import InMemoryLedgerStore

    return InMemoryLedgerStore()


@pytest.fixture()
def audit_log():
    from ledger.audit.log import InMemoryAuditLog

    return InMemoryAuditLog()


@pytest.fixture()
def engine(ledger_store, audit_log, clock):
    from ledger.engine.engine import StockMovementEngine

    return StockMovementEngine(ledger_store, audit_log, clock=clock, lock_timeout=2.0)


@pytest.fixture()
def catalog():
    from ledger.metadata import StaticProductCatalog

    return StaticProductCatalog(
        {
            "prod-001": {"low_stock_threshold": 10, "unit_cost": 2.5},
            "prod-002": {"low_stock_threshold": 5, "unit_cost": 10.0},
        }
    )


@pytest.fixture()
def warehouses():
    from ledger.metadata import StaticWarehouseDirectory

    return StaticWarehouseDirectory({"wh-001": 1000, "wh-002": 200, "wh-zero": 0})


@pytest.fixture()
def queries(engine, catalog, warehouses):
    from ledger.queries.inventory import InventoryQueries

    return InventoryQueries(engine.ledger, engine.audit_log, catalog, warehouses)


@pytest.fixture()
def configured(engine, catalog, warehouses):
    """Install the test engine and metadata as the process-wide services."""
    from ledger import services

    services.configure(engine=engine, products=catalog, warehouses=warehouses)
    yield engine
    services.reset_services()
