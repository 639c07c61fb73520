"""
Tests for the StockLedger: derived stock status, atomic reserve/release,
low stock alerts and the no-oversell guarantee under concurrent buyers.
"""

import threading

import pytest

from app.data.database import SessionLocal
from app.domain.errors import InsufficientStock, NotFound, OutOfStock, StockConflict, ValidationError
from app.domain.stock import StockStatus, derive_stock_status
from app.services.stock_ledger import StockLedger

from conftest import RecordingNotifier, stock_of


# ============================================================================
# Derived status
# ============================================================================


class TestDerivedStatus:
    def test_zero_is_out_of_stock(self):
        assert derive_stock_status(0, 10) == StockStatus.OUT_OF_STOCK

    def test_at_threshold_is_low_stock(self):
        assert derive_stock_status(10, 10) == StockStatus.LOW_STOCK
        assert derive_stock_status(1, 10) == StockStatus.LOW_STOCK

    def test_above_threshold_is_in_stock(self):
        assert derive_stock_status(11, 10) == StockStatus.IN_STOCK

    def test_threshold_is_configurable(self, db, make_product, notifier):
        product = make_product(stock=8)

        assert StockLedger(db, notifier, low_stock_threshold=5).get_availability(product.id).status == StockStatus.IN_STOCK
        assert StockLedger(db, notifier, low_stock_threshold=10).get_availability(product.id).status == StockStatus.LOW_STOCK


# ============================================================================
# Reserve / release
# ============================================================================


class TestReserve:
    def test_reserve_decrements(self, db, ledger, make_product):
        product = make_product(stock=5)

        ledger.reserve(product.id, 2)

        assert stock_of(db, product.id) == 3
        availability = ledger.get_availability(product.id)
        assert availability.quantity == 3
        assert availability.status == StockStatus.LOW_STOCK

    def test_reserve_everything_left(self, db, ledger, make_product):
        product = make_product(stock=3)

        ledger.reserve(product.id, 3)

        assert ledger.get_availability(product.id).status == StockStatus.OUT_OF_STOCK

    def test_insufficient_reports_available(self, db, ledger, make_product):
        product = make_product(stock=2)

        with pytest.raises(InsufficientStock) as exc:
            ledger.reserve(product.id, 3)

        assert exc.value.available == 2
        assert stock_of(db, product.id) == 2

    def test_out_of_stock(self, db, ledger, make_product):
        product = make_product(stock=0)

        with pytest.raises(OutOfStock):
            ledger.reserve(product.id, 1)

    def test_unknown_product(self, ledger, db):
        with pytest.raises(NotFound):
            ledger.reserve(999, 1)

    def test_quantity_must_be_positive(self, ledger, make_product):
        product = make_product(stock=5)

        with pytest.raises(ValidationError):
            ledger.reserve(product.id, 0)

    def test_release_increments(self, db, ledger, make_product):
        product = make_product(stock=1)

        ledger.release(product.id, 3)

        assert stock_of(db, product.id) == 4

    def test_release_unknown_product_does_not_fail(self, ledger, db):
        ledger.release(12345, 1)

    def test_availability_of_unknown_product(self, ledger, db):
        with pytest.raises(NotFound):
            ledger.get_availability(42)


# ============================================================================
# Alerts
# ============================================================================


class TestLowStockAlerts:
    def test_no_alert_while_in_stock(self, ledger, make_product, notifier):
        product = make_product(stock=20)

        ledger.reserve(product.id, 1)

        assert notifier.sent == []

    def test_alert_when_running_low(self, ledger, make_product, notifier, pharmacy):
        product = make_product(stock=7)

        ledger.reserve(product.id, 3)

        assert notifier.titles("Pharmacy") == ["Low Stock Alert"]
        target_id, _, _, message = notifier.sent[0]
        assert target_id == pharmacy.id
        assert "4 remaining" in message

    def test_alert_when_sold_out(self, ledger, make_product, notifier):
        product = make_product(stock=2)

        ledger.reserve(product.id, 2)

        assert notifier.titles("Pharmacy") == ["Out of Stock"]

    def test_failing_alert_keeps_reservation(self, db, make_product):
        class BrokenNotifier:
            def notify(self, *args):
                raise RuntimeError("boom")

        product = make_product(stock=2)
        StockLedger(db, BrokenNotifier(), low_stock_threshold=5).reserve(product.id, 1)

        assert stock_of(db, product.id) == 1


# ============================================================================
# Concurrency
# ============================================================================


class TestNoOversell:
    def test_concurrent_buyers_never_exceed_stock(self, db, make_product):
        product = make_product(stock=4)
        product_id = product.id

        buyers = 10
        barrier = threading.Barrier(buyers)
        successes = []
        rejections = []
        unexpected = []

        def buy():
            session = SessionLocal()
            try:
                ledger = StockLedger(session, RecordingNotifier(), low_stock_threshold=5)
                barrier.wait()
                ledger.reserve(product_id, 1)
                successes.append(1)
            except StockConflict:
                rejections.append(1)
            except Exception as e:
                unexpected.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=buy) for _ in range(buyers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert unexpected == []
        assert len(successes) == 4
        assert len(rejections) == buyers - 4
        assert stock_of(db, product_id) == 0
