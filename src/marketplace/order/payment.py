"""Order-side effects of payment outcomes: commands and handler.

These run only after the payment reconciliation service has won the
compare-and-set on the payment columns, so each runs at most once per
payment outcome.
"""

from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.order import Order


@marketplace.command(part_of="Order")
class ConfirmOrderPayment:
    order_id = Identifier(required=True)
    payment_intent_id = String(required=True, max_length=255)
    transaction_id = String(max_length=255)


@marketplace.command(part_of="Order")
class RecordRefund:
    order_id = Identifier(required=True)
    refund_id = String(required=True, max_length=255)
    amount = Float(required=True, min_value=0.0)
    reason = String(max_length=500)


@marketplace.command_handler(part_of=Order)
class OrderPaymentHandler:
    @handle(ConfirmOrderPayment)
    def confirm_order_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        applied = order.apply_payment_confirmed(
            payment_intent_id=command.payment_intent_id,
            transaction_id=command.transaction_id,
        )
        if applied:
            repo.add(order)
        return applied

    @handle(RecordRefund)
    def record_refund(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_refund(
            refund_id=command.refund_id,
            amount=command.amount,
            reason=command.reason,
        )
        repo.add(order)
