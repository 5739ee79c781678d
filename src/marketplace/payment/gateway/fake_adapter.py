"""Configurable fake payment processor for development and testing.

Simulates a processor without external calls. Intents live in memory and
behave like Stripe's: they start in ``requires_payment_method`` until the
customer's payment is simulated with ``complete_intent``/``fail_intent``
(or ``auto_complete`` is switched on). Useful for:
- Manual API testing via /payments/gateway/configure
- Automated tests with predictable outcomes
- Development without real processor credentials
"""

import json
from uuid import uuid4

from marketplace.exceptions import ExternalPaymentError, InvalidWebhookError, PaymentOutcomeUnknown
from marketplace.payment.gateway.port import (
    IntentResult,
    PaymentGateway,
    RefundResult,
    TransferResult,
    WebhookEvent,
)

TEST_SIGNATURE = "test-signature"


def build_webhook_payload(event_type: str, intent_id: str, failure_message: str | None = None) -> str:
    """A Stripe-shaped webhook body for ``intent_id``."""
    intent = {"id": intent_id, "object": "payment_intent"}
    if failure_message:
        intent["last_payment_error"] = {"message": failure_message}
    return json.dumps({"id": f"evt_fake_{uuid4().hex[:12]}", "type": event_type, "data": {"object": intent}})


class FakeGateway(PaymentGateway):
    """Configurable fake payment processor."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.auto_complete: bool = False
        # Refunds take effect, then the answer is lost
        self.time_out: bool = False
        self.calls: list[dict] = []
        self.intents: dict[str, dict] = {}
        self.refunds: dict[str, RefundResult] = {}
        self._idempotent: dict[str, str] = {}

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Card declined",
        auto_complete: bool = False,
        time_out: bool = False,
    ) -> None:
        """Configure processor behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.auto_complete = auto_complete
        self.time_out = time_out

    def calls_to(self, method: str) -> list[dict]:
        return [c for c in self.calls if c["method"] == method]

    # Simulated customer actions
    def complete_intent(self, intent_id: str) -> None:
        intent = self._intent(intent_id)
        intent["status"] = "succeeded"
        intent["latest_charge_id"] = f"ch_fake_{uuid4().hex[:12]}"

    def fail_intent(self, intent_id: str, message: str = "Your card was declined.") -> None:
        intent = self._intent(intent_id)
        intent["status"] = "requires_payment_method"
        intent["last_error"] = message

    def set_intent_status(self, intent_id: str, status: str) -> None:
        self._intent(intent_id)["status"] = status

    # Port
    def create_intent(
        self,
        amount: int,
        currency: str,
        application_fee: int,
        metadata: dict,
        description: str,
        idempotency_key: str,
    ) -> IntentResult:
        self.calls.append(
            {
                "method": "create_intent",
                "amount": amount,
                "currency": currency,
                "application_fee": application_fee,
                "metadata": metadata,
                "description": description,
                "idempotency_key": idempotency_key,
            }
        )
        self._fail_if_configured()

        if idempotency_key in self._idempotent:
            return self._result(self._idempotent[idempotency_key])

        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        self.intents[intent_id] = {
            "id": intent_id,
            "status": "requires_payment_method",
            "amount": amount,
            "currency": currency,
            "client_secret": f"{intent_id}_secret_{uuid4().hex[:8]}",
            "latest_charge_id": None,
            "last_error": None,
            "metadata": dict(metadata),
        }
        self._idempotent[idempotency_key] = intent_id
        if self.auto_complete:
            self.complete_intent(intent_id)
        return self._result(intent_id)

    def retrieve_intent(self, intent_id: str) -> IntentResult:
        self.calls.append({"method": "retrieve_intent", "intent_id": intent_id})
        self._fail_if_configured()
        return self._result(intent_id)

    def cancel_intent(self, intent_id: str) -> IntentResult:
        self.calls.append({"method": "cancel_intent", "intent_id": intent_id})
        self._intent(intent_id)["status"] = "canceled"
        return self._result(intent_id)

    def create_refund(
        self,
        intent_id: str,
        amount: int,
        reason: str | None,
        metadata: dict,
        idempotency_key: str,
    ) -> RefundResult:
        self.calls.append(
            {
                "method": "create_refund",
                "intent_id": intent_id,
                "amount": amount,
                "reason": reason,
                "metadata": metadata,
                "idempotency_key": idempotency_key,
            }
        )
        self._fail_if_configured()

        if idempotency_key not in self.refunds:
            self.refunds[idempotency_key] = RefundResult(
                refund_id=f"re_fake_{uuid4().hex[:12]}", status="succeeded", amount=amount
            )
        if self.time_out:
            raise PaymentOutcomeUnknown(processor_message="Read timed out")
        return self.refunds[idempotency_key]

    def create_transfer(
        self,
        destination: str,
        amount: int,
        currency: str,
        metadata: dict,
        idempotency_key: str,
    ) -> TransferResult:
        self.calls.append(
            {
                "method": "create_transfer",
                "destination": destination,
                "amount": amount,
                "currency": currency,
                "metadata": metadata,
                "idempotency_key": idempotency_key,
            }
        )
        self._fail_if_configured()
        return TransferResult(
            transfer_id=f"tr_fake_{uuid4().hex[:12]}",
            destination=destination,
            amount=amount,
            status="paid",
        )

    def parse_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        if signature != TEST_SIGNATURE:
            raise InvalidWebhookError()
        try:
            event = json.loads(payload)
        except ValueError as exc:
            raise InvalidWebhookError("Webhook payload is not valid JSON") from exc

        intent = event.get("data", {}).get("object", {})
        return WebhookEvent(
            event_id=event.get("id"),
            event_type=event.get("type", ""),
            intent_id=intent.get("id"),
            failure_message=(intent.get("last_payment_error") or {}).get("message"),
            latest_charge_id=intent.get("latest_charge"),
        )

    # Helpers
    def _fail_if_configured(self) -> None:
        if not self.should_succeed:
            raise ExternalPaymentError(processor_message=self.failure_reason)

    def _intent(self, intent_id: str) -> dict:
        if intent_id not in self.intents:
            raise ExternalPaymentError(processor_message=f"No such payment_intent: '{intent_id}'")
        return self.intents[intent_id]

    def _result(self, intent_id: str) -> IntentResult:
        intent = self._intent(intent_id)
        return IntentResult(
            intent_id=intent["id"],
            status=intent["status"],
            amount=intent["amount"],
            currency=intent["currency"],
            client_secret=intent["client_secret"],
            latest_charge_id=intent["latest_charge_id"],
            last_error=intent["last_error"],
            metadata=dict(intent["metadata"]),
        )
