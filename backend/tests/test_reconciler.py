"""Tests for the reconciliation state machine."""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from conftest import FakeStore, make_record
from pricetrack.services.product_store import StoreError
from pricetrack.services.reconciler import ReconciliationEngine, UpsertResponse

D0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
D1 = D0 + timedelta(days=1)


class TestReconcile:
    def setup_method(self):
        self.engine = ReconciliationEngine()
        self.prior = self.engine.new_product(make_record("3.65", D0), D0)

    def test_new_product(self):
        scraped = make_record("3.65", D0, id="P1234", name="Milk 2L")
        result = self.engine.reconcile(None, scraped)
        assert result.outcome is UpsertResponse.NEW_PRODUCT
        assert len(result.product.price_history) == 1
        assert result.product.price_history[0].price == Decimal("3.65")
        assert result.product.last_updated == D0

    def test_same_scrape_twice_is_up_to_date(self):
        scraped = make_record("3.65", D0)
        first = self.engine.reconcile(None, scraped)
        second = self.engine.reconcile(first.product, scraped)
        assert second.outcome is UpsertResponse.ALREADY_UP_TO_DATE
        assert second.product.price_history == first.product.price_history

    def test_price_change_on_new_day(self):
        result = self.engine.reconcile(self.prior, make_record("5.20", D1))
        assert result.outcome is UpsertResponse.PRICE_UPDATED
        assert result.product.current_price == Decimal("5.20")
        assert len(result.product.price_history) == 2
        assert result.product.price_history[-1].date == D1
        assert result.product.last_updated == D1
        assert result.product.unit_price == Decimal("2.60")

    def test_same_day_price_change_suppressed(self):
        later_today = D0.replace(hour=18)
        result = self.engine.reconcile(self.prior, make_record("5.20", later_today))
        assert result.outcome is not UpsertResponse.PRICE_UPDATED
        assert result.product.current_price == Decimal("3.65")
        assert len(result.product.price_history) == 1
        assert result.product.last_checked == later_today

    def test_same_day_then_next_day(self):
        same_day = self.engine.reconcile(self.prior, make_record("5.20", D0.replace(hour=18)))
        next_day = self.engine.reconcile(same_day.product, make_record("5.20", D1))
        assert next_day.outcome is UpsertResponse.PRICE_UPDATED
        assert len(next_day.product.price_history) == 2
        assert next_day.product.last_updated == D1

    def test_threshold_is_exclusive(self):
        for price in ("3.70", "3.60", "3.65"):
            result = self.engine.reconcile(self.prior, make_record(price, D1))
            assert result.outcome is UpsertResponse.ALREADY_UP_TO_DATE, price
            assert len(result.product.price_history) == 1

    def test_above_threshold(self):
        assert self.engine.reconcile(self.prior, make_record("3.71", D1)).outcome is (
            UpsertResponse.PRICE_UPDATED
        )
        assert self.engine.reconcile(self.prior, make_record("3.59", D1)).outcome is (
            UpsertResponse.PRICE_UPDATED
        )

    def test_custom_threshold(self):
        engine = ReconciliationEngine(price_change_threshold="0.50")
        result = engine.reconcile(self.prior, make_record("4.00", D1))
        assert result.outcome is UpsertResponse.ALREADY_UP_TO_DATE

    def test_descriptive_change(self):
        scraped = make_record("3.65", D1, name="Anchor Blue Milk 2L", category=("milk",))
        result = self.engine.reconcile(self.prior, scraped)
        assert result.outcome is UpsertResponse.NON_PRICE_UPDATED
        assert result.product.name == "Anchor Blue Milk 2L"
        assert result.product.category == ("milk",)
        assert result.product.last_updated == D0
        assert result.product.last_checked == D1
        assert len(result.product.price_history) == 1

    def test_size_change_rederives_unit_price_at_kept_price(self):
        scraped = make_record("3.70", D1, size="1L")
        result = self.engine.reconcile(self.prior, scraped)
        assert result.outcome is UpsertResponse.NON_PRICE_UPDATED
        assert result.product.current_price == Decimal("3.65")
        assert result.product.unit_price == Decimal("3.65")
        assert result.product.size == "1L"

    def test_last_checked_never_moves_back(self):
        checked = self.engine.reconcile(self.prior, make_record("3.65", D1)).product
        result = self.engine.reconcile(checked, make_record("3.65", D0))
        assert result.product.last_checked == D1

    def test_history_one_point_per_day(self):
        scrapes = [
            (D0.replace(hour=12), "4.00"),
            (D1, "4.00"),
            (D1.replace(hour=10), "3.00"),
            (D1 + timedelta(days=1), "3.00"),
            (D1 + timedelta(days=2), "3.50"),
            (D1 + timedelta(days=2, hours=5), "3.80"),
        ]
        product = self.prior
        lengths = [len(product.price_history)]
        for at, price in scrapes:
            product = self.engine.reconcile(product, make_record(price, at)).product
            lengths.append(len(product.price_history))

        assert lengths == sorted(lengths)
        days = [point.date.date() for point in product.price_history]
        assert len(days) == len(set(days)) == 4
        assert [point.price for point in product.price_history] == [
            Decimal("3.65"),
            Decimal("4.00"),
            Decimal("3.00"),
            Decimal("3.50"),
        ]

    def test_price_change_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="pricetrack.services.reconciler"):
            self.engine.reconcile(self.prior, make_record("5.20", D1))
        assert "Price Increased" in caplog.text

        caplog.clear()
        with caplog.at_level(logging.INFO, logger="pricetrack.services.reconciler"):
            self.engine.reconcile(self.prior, make_record("2.00", D1))
        assert "Price Decreased" in caplog.text


class BrokenStore(FakeStore):
    def __init__(self, fail_read=False, fail_write=False, products=None):
        super().__init__(products)
        self.fail_read = fail_read
        self.fail_write = fail_write

    async def read_by_identifier(self, identifier, partition=None):
        if self.fail_read:
            raise StoreError("connection refused")
        return await super().read_by_identifier(identifier, partition)

    async def upsert(self, product):
        if self.fail_write:
            raise StoreError("write rejected")
        await super().upsert(product)


@pytest.mark.asyncio
async def test_upsert_new_product():
    store = FakeStore()
    result = await ReconciliationEngine().upsert(store, make_record("3.65", D0))
    assert result.outcome is UpsertResponse.NEW_PRODUCT
    assert store.products["P1234"].price_history == result.product.price_history


@pytest.mark.asyncio
async def test_upsert_up_to_date_still_writes():
    engine = ReconciliationEngine()
    store = FakeStore()
    await engine.upsert(store, make_record("3.65", D0))
    result = await engine.upsert(store, make_record("3.65", D1))
    assert result.outcome is UpsertResponse.ALREADY_UP_TO_DATE
    assert store.writes == 2
    assert store.products["P1234"].last_checked == D1


@pytest.mark.asyncio
async def test_upsert_read_failure():
    store = BrokenStore(fail_read=True)
    result = await ReconciliationEngine().upsert(store, make_record("3.65", D0))
    assert result.outcome is UpsertResponse.FAILED
    assert result.product is None
    assert store.writes == 0


@pytest.mark.asyncio
async def test_upsert_write_failure():
    store = BrokenStore(fail_write=True)
    result = await ReconciliationEngine().upsert(store, make_record("3.65", D0))
    assert result.outcome is UpsertResponse.FAILED
    assert store.products == {}
