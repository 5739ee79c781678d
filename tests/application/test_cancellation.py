"""Application tests for whole-order cancellation."""

import pytest
from marketplace.exceptions import AuthorizationError, StateConflictError
from marketplace.order.lifecycle import cancel_order, update_vendor_status
from marketplace.payment.reconciliation import apply_payment_confirmed


class TestCustomerCancellation:
    def test_owner_cancels_pending_order(self, place_order, customer, product_stock):
        order = place_order()
        cancelled = cancel_order(customer, order.id, reason="Ordered by mistake")

        assert cancelled.status == "cancelled"
        assert cancelled.cancel_reason == "Ordered by mistake"
        assert cancelled.cancelled_by == customer.user_id
        assert all(vo.status == "cancelled" for vo in cancelled.vendor_orders)
        assert product_stock("prod-mug") == (5, 0)
        assert product_stock("prod-scarf") == (3, 0)

    def test_other_customer_cannot_cancel(self, place_order, other_customer):
        order = place_order()
        with pytest.raises(AuthorizationError):
            cancel_order(other_customer, order.id)

    def test_vendor_cannot_cancel_whole_order(self, place_order, potter):
        order = place_order()
        with pytest.raises(AuthorizationError):
            cancel_order(potter, order.id)

    def test_second_cancel_is_rejected_without_double_restore(self, place_order, customer, product_stock):
        order = place_order()
        cancel_order(customer, order.id)
        with pytest.raises(StateConflictError):
            cancel_order(customer, order.id)
        assert product_stock("prod-mug") == (5, 0)


class TestAdminCancellation:
    def test_admin_cancels_any_order(self, place_order, admin):
        order = place_order()
        cancelled = cancel_order(admin, order.id, reason="Fraud check")
        assert cancelled.cancelled_by == admin.user_id

    def test_already_cancelled_sub_order_is_not_restored_again(
        self, place_order, admin, potter, weaver, product_stock
    ):
        order = place_order()
        apply_payment_confirmed(order.id, "pi_test")
        update_vendor_status(weaver, order.id, "cancelled")
        assert product_stock("prod-scarf") == (3, 0)

        cancelled = cancel_order(admin, order.id)

        assert cancelled.status == "cancelled"
        assert product_stock("prod-scarf") == (3, 0)
        assert product_stock("prod-mug") == (5, 0)

    def test_delivered_order_cannot_be_cancelled(self, place_order, admin, potter, weaver):
        order = place_order()
        apply_payment_confirmed(order.id, "pi_test")
        for vendor in (potter, weaver):
            update_vendor_status(vendor, order.id, "shipped")
            update_vendor_status(vendor, order.id, "delivered")
        with pytest.raises(StateConflictError):
            cancel_order(admin, order.id)

    def test_partially_fulfilled_order_keeps_delivered_part(self, place_order, admin, potter, product_stock):
        order = place_order()
        apply_payment_confirmed(order.id, "pi_test")
        update_vendor_status(potter, order.id, "shipped")
        update_vendor_status(potter, order.id, "delivered")

        cancelled = cancel_order(admin, order.id)

        assert cancelled.vendor_order_for(potter.user_id).status == "delivered"
        assert cancelled.vendor_order_for("vendor-weaver").status == "cancelled"
        assert product_stock("prod-mug") == (3, 2)
        assert product_stock("prod-scarf") == (3, 0)
