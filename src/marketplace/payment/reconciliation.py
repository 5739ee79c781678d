"""Payment reconciliation: intents, confirmation and processor webhooks.

The synchronous confirm call and the ``payment_intent.succeeded`` webhook
both end in ``apply_payment_confirmed``. It moves the payment columns from
``pending``/``failed`` to ``completed`` with one conditional update; only the
caller that makes that update fans the confirmation out to the order,
pays vendors and clears the cart. Everyone else gets the current state
back with no side effects, so duplicate or racing deliveries are harmless.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from protean.utils.globals import current_domain

from marketplace.access.policy import Action, Principal, authorize
from marketplace.cart.management import ClearCart
from marketplace.config import get_settings
from marketplace.exceptions import ExternalPaymentError, PaymentNotCompleted, StateConflictError
from marketplace.order.order import Order
from marketplace.order.payment import ConfirmOrderPayment
from marketplace.order.queries import get_order
from marketplace.order.status import FROZEN_ORDER_STATUSES, OrderStatus, PaymentStatus
from marketplace.payment.gateway import get_gateway
from marketplace.payment.gateway.port import (
    CAPTURED_INTENT_STATUSES,
    PAYMENT_FAILED,
    PAYMENT_SUCCEEDED,
    REUSABLE_INTENT_STATUSES,
    IntentResult,
)
from marketplace.payment.payouts import schedule_payouts
from marketplace.shared.money import to_minor_units
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)

# Payment statuses from which a payment may still be collected
_PAYABLE = [PaymentStatus.PENDING.value, PaymentStatus.FAILED.value]


@dataclass
class ConfirmationOutcome:
    order: Order
    applied: bool  # this call made the confirmation
    transfers: list = field(default_factory=list)


@dataclass
class IntentOutcome:
    order: Order
    intent: IntentResult
    reused: bool


def _repository():
    return current_domain.repository_for(Order)


# ---------------------------------------------------------------------------
# Intent creation
# ---------------------------------------------------------------------------
def create_payment_intent(principal: Principal, order_id) -> IntentOutcome:
    order = get_order(order_id)
    authorize(principal, Action.CREATE_PAYMENT_INTENT, order)

    if OrderStatus(order.status) in FROZEN_ORDER_STATUSES:
        raise StateConflictError(f"Cannot pay for a {order.status} order")
    if order.payment_status not in _PAYABLE:
        raise StateConflictError("Order has already been paid")

    gateway = get_gateway()
    if order.payment_intent_id:
        existing = None
        try:
            existing = gateway.retrieve_intent(order.payment_intent_id)
        except ExternalPaymentError as exc:
            logger.warning(
                "Could not retrieve existing payment intent, creating a new one",
                order_id=str(order.id),
                payment_intent_id=order.payment_intent_id,
                error=exc.processor_message,
            )

        if existing is not None:
            if existing.status in REUSABLE_INTENT_STATUSES:
                return IntentOutcome(order=order, intent=existing, reused=True)
            if existing.status in CAPTURED_INTENT_STATUSES:
                raise StateConflictError(
                    "Payment already captured, awaiting confirmation",
                    details={"intent_status": existing.status},
                )

    settings = get_settings()
    attempt = order.payment_attempts or 0
    intent = gateway.create_intent(
        amount=to_minor_units(order.summary.total),
        currency=order.summary.currency,
        application_fee=to_minor_units(order.summary.total_commission),
        metadata={
            "order_id": str(order.id),
            "customer_id": str(order.customer_id),
            "order_number": order.order_number,
        },
        description=f"{settings.STORE_NAME} Order #{order.order_number}",
        idempotency_key=f"order-{order.id}-attempt-{attempt + 1}",
    )

    attached = _repository().compare_and_set(
        order.id,
        {"payment_attempts": attempt, "payment_status__in": _PAYABLE},
        payment_attempts=attempt + 1,
        payment_intent_id=intent.intent_id,
        updated_at=datetime.now(UTC),
    )
    if attached:
        logger.info(
            "Payment intent created",
            order_id=str(order.id),
            payment_intent_id=intent.intent_id,
            amount=order.summary.total,
        )
        return IntentOutcome(order=get_order(order.id), intent=intent, reused=False)

    # Another request attached an intent first; keep theirs
    current = get_order(order.id)
    if current.payment_intent_id != intent.intent_id:
        logger.info(
            "Lost intent attachment race, cancelling surplus intent",
            order_id=str(order.id),
            payment_intent_id=intent.intent_id,
            winner_intent_id=current.payment_intent_id,
        )
        try:
            gateway.cancel_intent(intent.intent_id)
        except ExternalPaymentError as exc:
            logger.warning(
                "Could not cancel surplus payment intent",
                payment_intent_id=intent.intent_id,
                error=exc.processor_message,
            )

    if current.payment_status not in _PAYABLE or not current.payment_intent_id:
        raise StateConflictError("Order has already been paid")
    return IntentOutcome(order=current, intent=gateway.retrieve_intent(current.payment_intent_id), reused=True)


# ---------------------------------------------------------------------------
# Confirmation
# ---------------------------------------------------------------------------
def confirm_payment(principal: Principal, order_id, payment_intent_id: str) -> ConfirmationOutcome:
    order = get_order(order_id)
    authorize(principal, Action.CONFIRM_PAYMENT, order)

    if order.payment_intent_id != payment_intent_id:
        raise StateConflictError("Payment intent does not belong to this order")

    intent = get_gateway().retrieve_intent(payment_intent_id)
    if not intent.succeeded:
        raise PaymentNotCompleted(details={"intent_status": intent.status})

    return apply_payment_confirmed(order.id, intent.intent_id, intent.latest_charge_id)


def apply_payment_confirmed(order_id, payment_intent_id: str, transaction_id: str | None = None) -> ConfirmationOutcome:
    """Record a succeeded intent against the order, exactly once."""
    now = datetime.now(UTC)
    won = _repository().compare_and_set(
        order_id,
        {"payment_status__in": _PAYABLE},
        payment_status=PaymentStatus.COMPLETED.value,
        payment_intent_id=payment_intent_id,
        transaction_id=transaction_id,
        payment_failure_reason=None,
        paid_at=now,
        updated_at=now,
    )
    if not won:
        logger.info(
            "Payment already confirmed, nothing to apply",
            order_id=str(order_id),
            payment_intent_id=payment_intent_id,
        )
        return ConfirmationOutcome(order=get_order(order_id), applied=False)

    fanned_out = current_domain.process(
        ConfirmOrderPayment(
            order_id=str(order_id),
            payment_intent_id=payment_intent_id,
            transaction_id=transaction_id,
        ),
        asynchronous=False,
    )
    order = get_order(order_id)

    if not fanned_out:
        logger.warning(
            "Payment captured for a closed order, awaiting refund",
            order_id=str(order_id),
            order_status=order.status,
            payment_intent_id=payment_intent_id,
        )
        return ConfirmationOutcome(order=order, applied=True)

    transfers = schedule_payouts(order)
    current_domain.process(ClearCart(customer_id=str(order.customer_id)), asynchronous=False)

    logger.info(
        "Payment confirmed",
        order_id=str(order_id),
        payment_intent_id=payment_intent_id,
        amount=order.summary.total,
    )
    return ConfirmationOutcome(order=order, applied=True, transfers=transfers)


def apply_payment_failed(order_id, payment_intent_id: str, failure_message: str | None) -> bool:
    """Mark a pending payment as failed; a completed payment is never downgraded."""
    won = _repository().compare_and_set(
        order_id,
        {"payment_status": PaymentStatus.PENDING.value, "payment_intent_id": payment_intent_id},
        payment_status=PaymentStatus.FAILED.value,
        payment_failure_reason=(failure_message or "Payment failed")[:500],
        updated_at=datetime.now(UTC),
    )
    logger.info(
        "Payment failure recorded" if won else "Payment failure ignored",
        order_id=str(order_id),
        payment_intent_id=payment_intent_id,
        reason=failure_message,
    )
    return won


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------
def handle_webhook(payload: bytes, signature: str) -> dict:
    """Verify and apply a processor event.

    Unknown event types and events for unknown intents are acknowledged and
    ignored. Failures while applying a known event propagate so the
    processor retries the delivery.
    """
    event = get_gateway().parse_webhook(payload, signature)
    logger.info(
        "Webhook received",
        event_id=event.event_id,
        event_type=event.event_type,
        payment_intent_id=event.intent_id,
    )

    if event.event_type not in (PAYMENT_SUCCEEDED, PAYMENT_FAILED):
        logger.info("Unhandled webhook event type", event_type=event.event_type)
        return {"received": True, "handled": False}

    order = _repository().find_by_payment_intent(event.intent_id)
    if order is None:
        logger.warning(
            "Webhook for unknown payment intent",
            event_type=event.event_type,
            payment_intent_id=event.intent_id,
        )
        return {"received": True, "handled": False}

    try:
        if event.event_type == PAYMENT_SUCCEEDED:
            outcome = apply_payment_confirmed(order.id, event.intent_id, event.latest_charge_id)
            applied = outcome.applied
        else:
            applied = apply_payment_failed(order.id, event.intent_id, event.failure_message)
    except Exception:
        logger.exception(
            "Webhook processing failed",
            event_id=event.event_id,
            event_type=event.event_type,
            order_id=str(order.id),
        )
        raise

    return {"received": True, "handled": True, "applied": applied}


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------
def payment_status(principal: Principal, order_id) -> tuple[Order, str | None]:
    """The order plus the processor's live intent status (``None`` if unavailable)."""
    order = get_order(order_id)
    authorize(principal, Action.VIEW_PAYMENT_STATUS, order)

    intent_status = None
    if order.payment_intent_id:
        try:
            intent_status = get_gateway().retrieve_intent(order.payment_intent_id).status
        except ExternalPaymentError as exc:
            logger.warning(
                "Could not retrieve payment intent status",
                order_id=str(order.id),
                payment_intent_id=order.payment_intent_id,
                error=exc.processor_message,
            )
    return order, intent_status
