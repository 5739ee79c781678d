"""Stripe payment processor adapter.

Uses stripe-python's ``StripeClient`` with an explicit HTTP timeout and no
automatic network retries: a timed-out call has an unknown outcome and is
reported as ``PaymentOutcomeUnknown``, never as success or failure.
Retries that are safe are made by the caller with the same idempotency key.
"""

import stripe

from marketplace.exceptions import ExternalPaymentError, InvalidWebhookError, PaymentOutcomeUnknown
from marketplace.payment.gateway.port import (
    IntentResult,
    PaymentGateway,
    RefundResult,
    TransferResult,
    WebhookEvent,
)
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


def _charge_id(charge) -> str | None:
    if charge is None or isinstance(charge, str):
        return charge
    return getattr(charge, "id", None)


class StripeGateway(PaymentGateway):
    """Production Stripe adapter."""

    def __init__(
        self,
        api_key: str,
        webhook_secret: str | None,
        timeout: float = 10.0,
        client: stripe.StripeClient | None = None,
    ) -> None:
        self.webhook_secret = webhook_secret
        self.timeout = timeout
        self._client = client or stripe.StripeClient(
            api_key,
            http_client=stripe.RequestsClient(timeout=timeout),
            max_network_retries=0,
        )

    def create_intent(
        self,
        amount: int,
        currency: str,
        application_fee: int,
        metadata: dict,
        description: str,
        idempotency_key: str,
    ) -> IntentResult:
        params = {
            "amount": amount,
            "currency": currency,
            "application_fee_amount": application_fee,
            "metadata": metadata,
            "description": description,
            "automatic_payment_methods": {"enabled": True},
        }
        intent = self._call(
            "create_intent",
            self._client.v1.payment_intents.create,
            params=params,
            options={"idempotency_key": idempotency_key},
        )
        return self._to_result(intent)

    def retrieve_intent(self, intent_id: str) -> IntentResult:
        intent = self._call("retrieve_intent", self._client.v1.payment_intents.retrieve, intent_id)
        return self._to_result(intent)

    def cancel_intent(self, intent_id: str) -> IntentResult:
        intent = self._call("cancel_intent", self._client.v1.payment_intents.cancel, intent_id)
        return self._to_result(intent)

    def create_refund(
        self,
        intent_id: str,
        amount: int,
        reason: str | None,
        metadata: dict,
        idempotency_key: str,
    ) -> RefundResult:
        params = {
            "payment_intent": intent_id,
            "amount": amount,
            "reason": "requested_by_customer",
            "metadata": {**metadata, "refund_reason": reason or ""},
        }
        refund = self._call(
            "create_refund",
            self._client.v1.refunds.create,
            params=params,
            options={"idempotency_key": idempotency_key},
        )
        return RefundResult(refund_id=refund.id, status=refund.status, amount=refund.amount)

    def create_transfer(
        self,
        destination: str,
        amount: int,
        currency: str,
        metadata: dict,
        idempotency_key: str,
    ) -> TransferResult:
        params = {
            "amount": amount,
            "currency": currency,
            "destination": destination,
            "metadata": metadata,
        }
        transfer = self._call(
            "create_transfer",
            self._client.v1.transfers.create,
            params=params,
            options={"idempotency_key": idempotency_key},
        )
        return TransferResult(
            transfer_id=transfer.id,
            destination=destination,
            amount=transfer.amount,
            status="paid",
        )

    def parse_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        if not self.webhook_secret:
            raise InvalidWebhookError("Webhook secret is not configured")
        try:
            event = self._client.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as exc:
            logger.warning("Webhook signature verification failed", error=str(exc))
            raise InvalidWebhookError() from exc
        except ValueError as exc:
            raise InvalidWebhookError("Webhook payload is not valid JSON") from exc

        intent = event.data.object
        error = getattr(intent, "last_payment_error", None)
        return WebhookEvent(
            event_id=event.id,
            event_type=event.type,
            intent_id=getattr(intent, "id", None),
            failure_message=getattr(error, "message", None) if error else None,
            latest_charge_id=_charge_id(getattr(intent, "latest_charge", None)),
        )

    def _call(self, operation: str, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except stripe.APIConnectionError as exc:
            logger.error(
                "Stripe call got no answer",
                operation=operation,
                error=str(exc),
            )
            raise PaymentOutcomeUnknown(processor_message=str(exc)) from exc
        except stripe.StripeError as exc:
            logger.error(
                "Stripe call failed",
                operation=operation,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise ExternalPaymentError(processor_message=exc.user_message or str(exc)) from exc

    @staticmethod
    def _to_result(intent) -> IntentResult:
        error = getattr(intent, "last_payment_error", None)
        metadata = getattr(intent, "metadata", None)
        if metadata is not None and hasattr(metadata, "to_dict"):
            metadata = metadata.to_dict()
        return IntentResult(
            intent_id=intent.id,
            status=intent.status,
            amount=intent.amount,
            currency=intent.currency,
            client_secret=getattr(intent, "client_secret", None),
            latest_charge_id=_charge_id(getattr(intent, "latest_charge", None)),
            last_error=getattr(error, "message", None) if error else None,
            metadata=dict(metadata) if metadata else {},
        )
