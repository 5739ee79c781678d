"""Application tests for conditional stock and sales counters."""

import pytest
from marketplace.catalog.product import Product, ProductRepository
from marketplace.catalog.stock import release_stock, reserve_stock
from marketplace.exceptions import StockConflictError
from protean import current_domain
from protean.core.queryset import QuerySet
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError


def _repo():
    return current_domain.repository_for(Product)


class TestCounters:
    def test_decrement(self, catalog, product_stock):
        assert _repo().decrement_stock("prod-mug", 2) == 3
        assert product_stock("prod-mug") == (3, 0)

    def test_decrement_to_zero(self, catalog, product_stock):
        _repo().decrement_stock("prod-mug", 5)
        assert product_stock("prod-mug") == (0, 0)

    def test_never_goes_negative(self, catalog, product_stock):
        with pytest.raises(StockConflictError) as exc:
            _repo().decrement_stock("prod-scarf", 4)
        assert exc.value.details == {"product_id": "prod-scarf", "requested": 4, "available": 3}
        assert product_stock("prod-scarf") == (3, 0)

    def test_restore_and_record_sale(self, catalog, product_stock):
        _repo().restore_stock("prod-bowl", 2)
        _repo().record_sale("prod-bowl", 3)
        assert product_stock("prod-bowl") == (12, 3)

    def test_gives_up_when_attempts_run_out(self, catalog, monkeypatch, product_stock):
        monkeypatch.setattr(ProductRepository, "MAX_CAS_ATTEMPTS", 0)
        with pytest.raises(StockConflictError) as exc:
            _repo().decrement_stock("prod-mug", 1)
        assert exc.value.details == {"product_id": "prod-mug", "field": "stock"}
        assert product_stock("prod-mug") == (5, 0)

    def test_retries_after_concurrent_write(self, catalog, monkeypatch, product_stock):
        real_update = QuerySet.update
        calls = []

        def contended_update(self, *args, **kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                raise ExpectedVersionError("Wrong expected version")
            return real_update(self, *args, **kwargs)

        monkeypatch.setattr(QuerySet, "update", contended_update)

        assert _repo().decrement_stock("prod-mug", 1) == 4
        assert len(calls) == 2
        assert product_stock("prod-mug") == (4, 0)


class TestReservation:
    def test_reserves_every_line(self, catalog, product_stock):
        reserve_stock([{"product_id": "prod-mug", "quantity": 1}, {"product_id": "prod-scarf", "quantity": 3}])
        assert product_stock("prod-mug") == (4, 0)
        assert product_stock("prod-scarf") == (0, 0)

    def test_all_or_nothing(self, catalog, product_stock):
        with pytest.raises(StockConflictError):
            reserve_stock([{"product_id": "prod-mug", "quantity": 1}, {"product_id": "prod-scarf", "quantity": 4}])
        assert product_stock("prod-mug") == (5, 0)
        assert product_stock("prod-scarf") == (3, 0)

    def test_missing_product_rolls_back_earlier_lines(self, catalog, product_stock):
        with pytest.raises(ObjectNotFoundError):
            reserve_stock([{"product_id": "prod-mug", "quantity": 2}, {"product_id": "prod-gone", "quantity": 1}])
        assert product_stock("prod-mug") == (5, 0)

    def test_release_skips_missing_products(self, catalog, product_stock):
        release_stock([{"product_id": "prod-gone", "quantity": 1}, {"product_id": "prod-mug", "quantity": 1}])
        assert product_stock("prod-mug") == (6, 0)
