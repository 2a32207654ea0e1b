"""Tests for the read-side inventory views."""

from datetime import timedelta

import pytest
from ledger.queries.inventory import LOW_STOCK, NORMAL, OUT_OF_STOCK, ReplayMismatch
from ledger.stock.record import StockRecord


@pytest.fixture()
def stocked(engine):
    engine.adjust_stock("prod-001", "wh-001", 8, unit_cost=2.5)
    engine.adjust_stock("prod-001", "wh-002", 50)
    engine.adjust_stock("prod-002", "wh-001", 5)
    engine.adjust_stock("prod-002", "wh-001", -5)
    return engine


class TestLevels:
    def test_get(self, stocked, queries):
        assert queries.get("prod-001", "wh-001").quantity == 8
        assert queries.get("prod-404", "wh-001") is None

    def test_totals(self, stocked, queries):
        stocked.reserve_stock("prod-001", "wh-002", 10)
        assert queries.total_quantity("prod-001") == 58
        assert queries.total_available("prod-001") == 48

    def test_stock_status(self, stocked, queries):
        assert queries.stock_status(queries.get("prod-001", "wh-001")) == LOW_STOCK
        assert queries.stock_status(queries.get("prod-001", "wh-002")) == NORMAL
        assert queries.stock_status(queries.get("prod-002", "wh-001")) == OUT_OF_STOCK

    def test_low_stock_is_per_record_and_inclusive(self, stocked, queries):
        low = {(r.product_id, r.warehouse_id) for r in queries.low_stock()}
        assert low == {("prod-001", "wh-001"), ("prod-002", "wh-001")}

    def test_out_of_stock(self, stocked, queries):
        assert [(r.product_id, r.warehouse_id) for r in queries.out_of_stock()] == [("prod-002", "wh-001")]

    def test_low_stock_products_use_totals(self, stocked, queries):
        low = [level.product_id for level in queries.low_stock_products()]
        assert low == ["prod-002"]

    def test_out_of_stock_products_include_catalog_products_never_stocked(self, stocked, queries, catalog):
        catalog.register("prod-003", low_stock_threshold=1)
        out = [level.product_id for level in queries.out_of_stock_products()]
        assert out == ["prod-002", "prod-003"]


class TestValuationAndCapacity:
    def test_valuation_uses_catalog_cost(self, stocked, queries):
        # prod-001: 58 x 2.5, prod-002: 0 x 10.0
        assert queries.valuation() == pytest.approx(145.0)
        assert queries.valuation(warehouse_id="wh-001") == pytest.approx(20.0)

    def test_valuation_by_warehouse(self, stocked, queries):
        assert queries.valuation_by_warehouse() == pytest.approx({"wh-001": 20.0, "wh-002": 125.0})

    def test_capacity_utilization(self, stocked, queries):
        assert queries.capacity_utilization("wh-002") == pytest.approx(50 / 200)

    def test_capacity_utilization_undefined(self, stocked, queries):
        assert queries.capacity_utilization("wh-zero") is None
        assert queries.capacity_utilization("wh-unknown") is None


class TestMovements:
    def test_movement_history_and_recent(self, stocked, queries):
        assert len(queries.movement_history("prod-002")) == 2
        assert queries.recent(1)[0].quantity_changed == -5

    def test_movement_summary(self, stocked, queries):
        summary = queries.movement_summary()
        assert summary.stock_in_count == 3
        assert summary.stock_out_count == 1

    def test_product_movement_report(self, stocked, queries):
        stocked.transfer_stock("prod-001", "wh-002", "wh-001", 4)
        stocked.adjust_stock("prod-001", "wh-001", -1, movement_type="Adjustment")

        report = {row.product_id: row for row in queries.product_movement_report()}

        prod_001 = report["prod-001"]
        assert prod_001.total_stock_in == 58
        assert prod_001.total_stock_out == 0
        assert prod_001.total_transferred == 4
        assert prod_001.net_adjustment == -1
        assert prod_001.total_stock_in_value == pytest.approx(20.0)
        assert prod_001.transaction_count == 5
        assert prod_001.current_stock_level == 57
        assert prod_001.net_movement == 57
        assert report["prod-002"].total_stock_out == 5

    def test_dashboard_summary(self, stocked, queries, clock):
        summary = queries.dashboard_summary(now=clock.now + timedelta(minutes=1))
        assert summary.total_records == 3
        assert summary.low_stock_count == 2
        assert summary.out_of_stock_count == 1
        assert summary.transactions_today == 4
        assert summary.transactions_this_month == 4
        assert summary.stock_in_today == 3
        assert summary.stock_out_today == 1

    def test_dashboard_summary_reads_naive_now_as_utc(self, stocked, queries, clock):
        naive_now = (clock.now + timedelta(minutes=1)).replace(tzinfo=None)
        summary = queries.dashboard_summary(now=naive_now)
        assert summary.transactions_today == 4
        assert summary.transactions_this_month == 4


class TestReplay:
    def test_every_record_matches_its_replay(self, stocked, queries):
        stocked.reserve_stock("prod-001", "wh-002", 5)
        stocked.transfer_stock("prod-001", "wh-002", "wh-003", 20)
        stocked.record_stock_count("prod-001", "wh-001", 6)

        for record in stocked.ledger.records():
            assert queries.replayed_quantity(record.product_id, record.warehouse_id) == record.quantity
        assert queries.inconsistent_records() == []

    def test_tampered_record_is_reported(self, stocked, queries):
        record = stocked.ledger.get("prod-001", "wh-001")
        record.apply_delta(3)
        stocked.ledger.save(record)

        assert queries.inconsistent_records() == [
            ReplayMismatch(product_id="prod-001", warehouse_id="wh-001", ledger_quantity=11, replayed_quantity=8)
        ]

    def test_empty_record_without_entries_is_consistent(self, stocked, queries):
        stocked.ledger.save(StockRecord.open("prod-009", "wh-009"))
        assert queries.inconsistent_records() == []
