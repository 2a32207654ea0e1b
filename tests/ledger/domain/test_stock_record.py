"""Tests for StockRecord rules: levels, deltas, counts, reservations."""

from datetime import UTC, datetime

import pytest
from ledger.errors import (
    InsufficientAvailableStockError,
    InsufficientStockError,
    OverReleaseError,
    ReservationConflictError,
)
from ledger.stock.record import StockKey, StockRecord, stock_key
from protean.exceptions import ValidationError

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _make_record(quantity=100, reserved=0):
    record = StockRecord.open("prod-001", "wh-001", now=NOW)
    if quantity:
        record.apply_delta(quantity, now=NOW)
    if reserved:
        record.reserve(reserved, now=NOW)
    return record


class TestStockKey:
    def test_keys_are_strings(self):
        key = stock_key(1, 2)
        assert key == StockKey("1", "2")

    def test_record_id_combines_product_and_warehouse(self):
        assert stock_key("prod-001", "wh-001").record_id == "prod-001@wh-001"

    def test_keys_sort_by_product_then_warehouse(self):
        keys = [stock_key("b", "a"), stock_key("a", "b"), stock_key("a", "a")]
        assert sorted(keys) == [stock_key("a", "a"), stock_key("a", "b"), stock_key("b", "a")]


class TestOpen:
    def test_open_starts_at_zero(self):
        record = StockRecord.open("prod-001", "wh-001", now=NOW)
        assert record.quantity == 0
        assert record.reserved_quantity == 0
        assert record.available_quantity == 0
        assert record.revision == 0

    def test_open_sets_identity_and_timestamps(self):
        record = StockRecord.open("prod-001", "wh-001", now=NOW)
        assert record.record_id == "prod-001@wh-001"
        assert record.key == StockKey("prod-001", "wh-001")
        assert record.created_at == NOW
        assert record.updated_at == NOW
        assert record.last_stock_count_at is None


class TestLevels:
    def test_available_is_on_hand_minus_reserved(self):
        record = _make_record(quantity=100, reserved=30)
        assert record.available_quantity == 70

    def test_has_sufficient_stock_uses_available(self):
        record = _make_record(quantity=100, reserved=30)
        assert record.has_sufficient_stock(70)
        assert not record.has_sufficient_stock(71)

    def test_levels_snapshot(self):
        record = _make_record(quantity=100, reserved=30)
        assert record.levels() == {"quantity": 100, "reserved_quantity": 30, "available_quantity": 70}

    def test_reserved_cannot_exceed_on_hand(self):
        with pytest.raises(ValidationError) as exc_info:
            StockRecord(
                record_id="prod-001@wh-001",
                product_id="prod-001",
                warehouse_id="wh-001",
                quantity=5,
                reserved_quantity=6,
            )
        assert "reserved_quantity" in exc_info.value.messages

    def test_quantity_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            StockRecord(record_id="p@w", product_id="p", warehouse_id="w", quantity=-1)


class TestDetach:
    def test_detached_copy_is_independent(self):
        record = _make_record(quantity=100)
        copy = record.detach()
        copy.apply_delta(-10, now=NOW)
        assert record.quantity == 100
        assert copy.quantity == 90

    def test_detached_copy_keeps_revision(self):
        record = _make_record(quantity=100)
        record.revision = 4
        assert record.detach().revision == 4


class TestApplyDelta:
    def test_positive_delta_increases_quantity(self):
        record = _make_record(quantity=100)
        previous, new = record.apply_delta(25, now=NOW)
        assert (previous, new) == (100, 125)
        assert record.quantity == 125

    def test_negative_delta_to_zero_is_allowed(self):
        record = _make_record(quantity=100)
        record.apply_delta(-100, now=NOW)
        assert record.quantity == 0

    def test_negative_result_is_rejected(self):
        record = _make_record(quantity=5)
        with pytest.raises(InsufficientStockError) as exc_info:
            record.apply_delta(-10, now=NOW)
        assert record.quantity == 5
        assert exc_info.value.requested == -10
        assert exc_info.value.state["quantity"] == 5
        assert "delta" in exc_info.value.messages

    def test_drop_below_reserved_is_rejected(self):
        record = _make_record(quantity=50, reserved=40)
        with pytest.raises(ReservationConflictError) as exc_info:
            record.apply_delta(-20, now=NOW)
        assert record.quantity == 50
        assert exc_info.value.state["reserved_quantity"] == 40

    def test_apply_delta_touches_updated_at(self):
        record = _make_record(quantity=10)
        later = datetime(2026, 3, 3, tzinfo=UTC)
        record.apply_delta(1, now=later)
        assert record.updated_at == later


class TestRecordCount:
    def test_count_lower_than_on_hand(self):
        record = _make_record(quantity=100)
        assert record.record_count(95, now=NOW) == -5
        assert record.quantity == 95
        assert record.last_stock_count_at == NOW

    def test_count_matching_on_hand(self):
        record = _make_record(quantity=100)
        assert record.record_count(100, now=NOW) == 0
        assert record.quantity == 100
        assert record.last_stock_count_at == NOW

    def test_count_below_reserved_is_rejected(self):
        record = _make_record(quantity=100, reserved=60)
        with pytest.raises(ReservationConflictError):
            record.record_count(50, now=NOW)


class TestReserve:
    def test_reserve_moves_stock_out_of_available(self):
        record = _make_record(quantity=100)
        record.reserve(20, now=NOW)
        assert record.reserved_quantity == 20
        assert record.available_quantity == 80
        assert record.quantity == 100

    def test_reserve_all_available(self):
        record = _make_record(quantity=100, reserved=40)
        record.reserve(60, now=NOW)
        assert record.available_quantity == 0

    def test_reserve_more_than_available_is_rejected(self):
        record = _make_record(quantity=100, reserved=60)
        with pytest.raises(InsufficientAvailableStockError) as exc_info:
            record.reserve(41, now=NOW)
        assert record.reserved_quantity == 60
        assert exc_info.value.state["available_quantity"] == 40

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_reserve_non_positive_is_rejected(self, quantity):
        record = _make_record(quantity=100)
        with pytest.raises(ValidationError) as exc_info:
            record.reserve(quantity, now=NOW)
        assert "quantity" in exc_info.value.messages


class TestRelease:
    def test_release_returns_stock_to_available(self):
        record = _make_record(quantity=100, reserved=30)
        record.release(10, now=NOW)
        assert record.reserved_quantity == 20
        assert record.available_quantity == 80

    def test_over_release_is_rejected_not_clamped(self):
        record = _make_record(quantity=100, reserved=30)
        with pytest.raises(OverReleaseError) as exc_info:
            record.release(31, now=NOW)
        assert record.reserved_quantity == 30
        assert exc_info.value.requested == 31

    def test_release_non_positive_is_rejected(self):
        record = _make_record(quantity=100, reserved=30)
        with pytest.raises(ValidationError):
            record.release(0, now=NOW)
