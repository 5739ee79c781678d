"""Application tests for the order repository's conditional updates."""

from marketplace.order.order import Order
from protean import current_domain
from protean.core.queryset import QuerySet
from protean.exceptions import ExpectedVersionError


def _repo():
    return current_domain.repository_for(Order)


class TestCompareAndSet:
    def test_applies_when_expected_values_match(self, place_order):
        order = place_order()

        assert _repo().compare_and_set(order.id, {"payment_status": "pending"}, payment_status="failed") is True
        assert _repo().get(order.id).payment_status == "failed"

    def test_lookups_in_expected(self, place_order):
        order = place_order()

        changed = _repo().compare_and_set(
            order.id,
            {"payment_status__in": ["pending", "failed"]},
            payment_status="completed",
        )

        assert changed is True
        assert _repo().get(order.id).payment_status == "completed"

    def test_mismatch_leaves_order_alone(self, place_order):
        order = place_order()

        assert _repo().compare_and_set(order.id, {"payment_status": "completed"}, payment_status="refund_pending") is False
        assert _repo().get(order.id).payment_status == "pending"

    def test_only_the_first_of_two_identical_claims_wins(self, place_order):
        order = place_order()
        claim = {"payment_attempts": 0}

        assert _repo().compare_and_set(order.id, claim, payment_attempts=1) is True
        assert _repo().compare_and_set(order.id, claim, payment_attempts=1) is False

    def test_concurrent_write_counts_as_lost(self, place_order, monkeypatch):
        order = place_order()

        def stale_update(self, *args, **kwargs):
            raise ExpectedVersionError("Wrong expected version")

        monkeypatch.setattr(QuerySet, "update", stale_update)

        assert _repo().compare_and_set(order.id, {"payment_status": "pending"}, payment_status="failed") is False
