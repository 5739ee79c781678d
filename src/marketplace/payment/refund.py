"""Admin refunds against the payment processor.

A refund claims the payment first (``completed`` -> ``refund_pending``) so
two admins cannot refund the same payment twice. A definite processor
failure releases the claim. When the processor does not answer, the
refund may have gone through, so the order stays ``refund_pending`` for
manual reconciliation. Neither case is retried automatically.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from marketplace.access.policy import Action, Principal, authorize
from marketplace.exceptions import ExternalPaymentError, PaymentOutcomeUnknown, StateConflictError
from marketplace.order.order import Order
from marketplace.order.payment import RecordRefund
from marketplace.order.queries import get_order
from marketplace.order.status import PaymentStatus
from marketplace.payment.gateway import get_gateway
from marketplace.payment.gateway.port import RefundResult
from marketplace.shared.money import to_amount, to_minor_units
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


def refund_order(
    principal: Principal,
    order_id,
    amount: float | None = None,
    reason: str | None = None,
) -> tuple[Order, RefundResult]:
    order = get_order(order_id)
    authorize(principal, Action.REFUND_ORDER, order)

    if order.payment_status != PaymentStatus.COMPLETED.value:
        raise StateConflictError("Order payment not completed")
    if not order.payment_intent_id:
        raise StateConflictError("No payment intent found for this order")

    total = order.summary.total
    refund_amount = to_amount(total if amount is None else amount)
    if refund_amount <= 0 or refund_amount > total:
        raise ValidationError({"amount": [f"Refund amount must be greater than 0 and at most {total}"]})

    repo = current_domain.repository_for(Order)
    claimed = repo.compare_and_set(
        order.id,
        {"payment_status": PaymentStatus.COMPLETED.value},
        payment_status=PaymentStatus.REFUND_PENDING.value,
        updated_at=datetime.now(UTC),
    )
    if not claimed:
        raise StateConflictError("A refund is already in progress for this order")

    cents = to_minor_units(refund_amount)
    try:
        result = get_gateway().create_refund(
            intent_id=order.payment_intent_id,
            amount=cents,
            reason=reason,
            metadata={"order_id": str(order.id), "order_number": order.order_number},
            idempotency_key=f"refund-{order.id}-{cents}",
        )
    except PaymentOutcomeUnknown as exc:
        logger.error(
            "Refund outcome unknown, order left refund_pending",
            order_id=str(order.id),
            amount=refund_amount,
            error=exc.processor_message,
        )
        raise
    except ExternalPaymentError as exc:
        repo.compare_and_set(
            order.id,
            {"payment_status": PaymentStatus.REFUND_PENDING.value},
            payment_status=PaymentStatus.COMPLETED.value,
            updated_at=datetime.now(UTC),
        )
        logger.error(
            "Refund failed at the processor",
            order_id=str(order.id),
            amount=refund_amount,
            error=exc.processor_message,
        )
        raise

    current_domain.process(
        RecordRefund(
            order_id=str(order.id),
            refund_id=result.refund_id,
            amount=refund_amount,
            reason=reason,
        ),
        asynchronous=False,
    )
    logger.info(
        "Order refunded",
        order_id=str(order.id),
        refund_id=result.refund_id,
        amount=refund_amount,
    )
    return get_order(order.id), result
