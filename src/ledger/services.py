"""Process-wide ledger services — engine, queries and metadata providers.

Built lazily on first use. The storage adapter is chosen with the
LEDGER_STORE environment variable (only ``memory`` today) and the lock
wait with LEDGER_LOCK_TIMEOUT (seconds; zero or less waits forever).
"""

import os

from ledger.audit.log import InMemoryAuditLog
from ledger.engine.engine import DEFAULT_LOCK_TIMEOUT, StockMovementEngine
from ledger.metadata import StaticProductCatalog, StaticWarehouseDirectory
from ledger.queries.inventory import InventoryQueries
from ledger.stock.store import InMemoryLedgerStore

_engine = None
_queries = None
_products = None
_warehouses = None


def _lock_timeout():
    raw = os.environ.get("LEDGER_LOCK_TIMEOUT")
    if raw is None or raw == "":
        return DEFAULT_LOCK_TIMEOUT
    timeout = float(raw)
    return timeout if timeout > 0 else None


def _build_stores():
    adapter = os.environ.get("LEDGER_STORE", "memory")
    if adapter == "memory":
        return InMemoryLedgerStore(), InMemoryAuditLog()
    raise ValueError(f"Unknown ledger store: {adapter}")


def get_engine() -> StockMovementEngine:
    """Return the configured stock movement engine (singleton)."""
    global _engine
    if _engine is None:
        ledger_store, audit_log = _build_stores()
        _engine = StockMovementEngine(ledger_store, audit_log, lock_timeout=_lock_timeout())
    return _engine


def get_products():
    global _products
    if _products is None:
        _products = StaticProductCatalog()
    return _products


def get_warehouses():
    global _warehouses
    if _warehouses is None:
        _warehouses = StaticWarehouseDirectory()
    return _warehouses


def get_queries() -> InventoryQueries:
    """Return the read-side views over the configured engine's stores (singleton)."""
    global _queries
    if _queries is None:
        engine = get_engine()
        _queries = InventoryQueries(engine.ledger, engine.audit_log, get_products(), get_warehouses())
    return _queries


def configure(engine=None, products=None, warehouses=None):
    """Install specific collaborators. Anything left as None keeps its default."""
    global _engine, _queries, _products, _warehouses
    if engine is not None:
        _engine = engine
    if products is not None:
        _products = products
    if warehouses is not None:
        _warehouses = warehouses
    _queries = None


def reset_services():
    """Drop every singleton (useful for testing)."""
    global _engine, _queries, _products, _warehouses
    _engine = None
    _queries = None
    _products = None
    _warehouses = None
