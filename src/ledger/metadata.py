"""Product and warehouse metadata ports.

Thresholds, unit costs and capacities live with the master data, outside
the ledger. The query layer programs against these ports; the static
adapters serve tests and single-process deployments.
"""

from abc import ABC, abstractmethod


class ProductCatalog(ABC):
    """Product attributes the ledger reads but does not own."""

    @abstractmethod
    def low_stock_threshold(self, product_id: str) -> int | None:
        """Quantity at or below which the product counts as low stock."""
        ...

    @abstractmethod
    def unit_cost(self, product_id: str) -> float | None:
        """Cost of one unit, used for valuation."""
        ...

    def product_ids(self) -> list[str]:
        """Products known to the catalog. Empty when the catalog cannot enumerate."""
        return []


class WarehouseDirectory(ABC):
    """Warehouse attributes the ledger reads but does not own."""

    @abstractmethod
    def capacity(self, warehouse_id: str) -> int | None:
        """Total units the warehouse can hold, or None when unset."""
        ...


class StaticProductCatalog(ProductCatalog):
    """Catalog backed by a mapping of product_id -> {"low_stock_threshold", "unit_cost"}."""

    def __init__(self, products=None, default_threshold=None):
        self._products = {str(k): dict(v) for k, v in (products or {}).items()}
        self.default_threshold = default_threshold

    def register(self, product_id, low_stock_threshold=None, unit_cost=None):
        self._products[str(product_id)] = {
            "low_stock_threshold": low_stock_threshold,
            "unit_cost": unit_cost,
        }

    def low_stock_threshold(self, product_id):
        product = self._products.get(str(product_id), {})
        threshold = product.get("low_stock_threshold")
        return self.default_threshold if threshold is None else threshold

    def unit_cost(self, product_id):
        return self._products.get(str(product_id), {}).get("unit_cost")

    def product_ids(self):
        return sorted(self._products)


class StaticWarehouseDirectory(WarehouseDirectory):
    """Directory backed by a mapping of warehouse_id -> capacity."""

    def __init__(self, capacities=None):
        self._capacities = {str(k): v for k, v in (capacities or {}).items()}

    def register(self, warehouse_id, capacity):
        self._capacities[str(warehouse_id)] = capacity

    def capacity(self, warehouse_id):
        return self._capacities.get(str(warehouse_id))
