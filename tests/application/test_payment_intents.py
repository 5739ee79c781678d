"""Application tests for payment intent creation."""

import pytest
from marketplace.exceptions import AuthorizationError, ExternalPaymentError, StateConflictError
from marketplace.order.lifecycle import cancel_order
from marketplace.order.order import Order
from marketplace.payment.reconciliation import apply_payment_confirmed, apply_payment_failed, create_payment_intent
from protean import current_domain


class TestCreateIntent:
    def test_charges_total_with_commission_as_fee(self, place_order, customer, gateway):
        order = place_order()
        outcome = create_payment_intent(customer, order.id)

        (call,) = gateway.calls_to("create_intent")
        assert call["amount"] == 9000
        assert call["application_fee"] == 1100
        assert call["currency"] == "usd"
        assert call["metadata"] == {
            "order_id": str(order.id),
            "customer_id": customer.user_id,
            "order_number": order.order_number,
        }
        assert call["description"] == f"ArtisanMart Order #{order.order_number}"
        assert call["idempotency_key"] == f"order-{order.id}-attempt-1"
        assert outcome.reused is False
        assert outcome.intent.client_secret

    def test_attaches_intent_to_order(self, place_order, customer):
        order = place_order()
        outcome = create_payment_intent(customer, order.id)

        assert outcome.order.payment_intent_id == outcome.intent.intent_id
        assert outcome.order.payment_attempts == 1
        assert outcome.order.payment_status == "pending"

    def test_live_intent_is_reused(self, place_order, customer, gateway):
        order = place_order()
        first = create_payment_intent(customer, order.id)
        second = create_payment_intent(customer, order.id)

        assert second.reused is True
        assert second.intent.intent_id == first.intent.intent_id
        assert len(gateway.calls_to("create_intent")) == 1

    def test_cancelled_intent_is_replaced(self, place_order, customer, gateway):
        order = place_order()
        first = create_payment_intent(customer, order.id)
        gateway.set_intent_status(first.intent.intent_id, "canceled")

        second = create_payment_intent(customer, order.id)

        assert second.intent.intent_id != first.intent.intent_id
        assert second.order.payment_attempts == 2
        assert gateway.calls_to("create_intent")[-1]["idempotency_key"] == f"order-{order.id}-attempt-2"

    def test_captured_intent_is_not_replaced(self, place_order, customer, gateway):
        order = place_order()
        first = create_payment_intent(customer, order.id)
        gateway.complete_intent(first.intent.intent_id)

        with pytest.raises(StateConflictError) as exc:
            create_payment_intent(customer, order.id)
        assert exc.value.details == {"intent_status": "succeeded"}

    def test_failed_payment_can_be_retried(self, place_order, customer, gateway):
        order = place_order()
        first = create_payment_intent(customer, order.id)
        gateway.fail_intent(first.intent.intent_id)
        apply_payment_failed(order.id, first.intent.intent_id, "Your card was declined.")

        retry = create_payment_intent(customer, order.id)

        # a declined intent returns to requires_payment_method and stays usable
        assert retry.intent.intent_id == first.intent.intent_id
        assert retry.order.payment_status == "failed"


class TestCreateIntentRejections:
    def test_paid_order(self, place_order, customer):
        order = place_order()
        apply_payment_confirmed(order.id, "pi_elsewhere")
        with pytest.raises(StateConflictError):
            create_payment_intent(customer, order.id)

    def test_cancelled_order(self, place_order, customer):
        order = place_order()
        cancel_order(customer, order.id)
        with pytest.raises(StateConflictError):
            create_payment_intent(customer, order.id)

    def test_someone_elses_order(self, place_order, other_customer):
        order = place_order()
        with pytest.raises(AuthorizationError):
            create_payment_intent(other_customer, order.id)

    def test_processor_failure_leaves_order_untouched(self, place_order, customer, gateway):
        order = place_order()
        gateway.configure(should_succeed=False, failure_reason="Processor timeout")

        with pytest.raises(ExternalPaymentError) as exc:
            create_payment_intent(customer, order.id)

        assert exc.value.processor_message == "Processor timeout"
        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.payment_intent_id is None
        assert stored.payment_attempts == 0


class TestAttachmentRace:
    def test_loser_cancels_its_intent_and_returns_the_winner(self, place_order, customer, gateway):
        order = place_order()
        winner = gateway.create_intent(
            amount=9000,
            currency="usd",
            application_fee=1100,
            metadata={},
            description="concurrent request",
            idempotency_key="concurrent",
        )
        real_create = gateway.create_intent

        def racing_create(**kwargs):
            current_domain.repository_for(Order).compare_and_set(
                order.id,
                {"payment_attempts": 0},
                payment_attempts=1,
                payment_intent_id=winner.intent_id,
            )
            return real_create(**kwargs)

        gateway.create_intent = racing_create

        outcome = create_payment_intent(customer, order.id)

        assert outcome.intent.intent_id == winner.intent_id
        assert outcome.reused is True
        (cancelled,) = gateway.calls_to("cancel_intent")
        assert cancelled["intent_id"] != winner.intent_id
        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.payment_intent_id == winner.intent_id
        assert stored.payment_attempts == 1
