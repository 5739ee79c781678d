"""Payment processor port (abstract interface).

Defines the contract every processor adapter implements so the
reconciliation service works the same against FakeGateway (dev/test) and
StripeGateway (production). Amounts cross this boundary in minor units
(cents). Adapters raise ``ExternalPaymentError`` when the processor fails
or does not answer within the configured timeout.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

# Intent statuses that can still be paid without creating a new intent
REUSABLE_INTENT_STATUSES = frozenset({"requires_payment_method", "requires_confirmation", "requires_action"})

# Intent statuses that mean money is already captured or being captured
CAPTURED_INTENT_STATUSES = frozenset({"processing", "succeeded"})

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


@dataclass(frozen=True)
class IntentResult:
    intent_id: str
    status: str
    amount: int
    currency: str
    client_secret: str | None = None
    latest_charge_id: str | None = None
    last_error: str | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


@dataclass(frozen=True)
class RefundResult:
    refund_id: str
    status: str
    amount: int


@dataclass(frozen=True)
class TransferResult:
    transfer_id: str
    destination: str
    amount: int
    status: str


@dataclass(frozen=True)
class WebhookEvent:
    event_id: str | None
    event_type: str
    intent_id: str | None
    failure_message: str | None = None
    latest_charge_id: str | None = None


class PaymentGateway(ABC):
    """Abstract payment processor interface."""

    @abstractmethod
    def create_intent(
        self,
        amount: int,
        currency: str,
        application_fee: int,
        metadata: dict,
        description: str,
        idempotency_key: str,
    ) -> IntentResult:
        """Create a payment intent for ``amount`` cents."""
        ...

    @abstractmethod
    def retrieve_intent(self, intent_id: str) -> IntentResult:
        ...

    @abstractmethod
    def cancel_intent(self, intent_id: str) -> IntentResult:
        ...

    @abstractmethod
    def create_refund(
        self,
        intent_id: str,
        amount: int,
        reason: str | None,
        metadata: dict,
        idempotency_key: str,
    ) -> RefundResult:
        """Refund ``amount`` cents of a captured intent.

        Repeating a call with the same ``idempotency_key`` returns the first
        refund instead of issuing another.
        """
        ...

    @abstractmethod
    def create_transfer(
        self,
        destination: str,
        amount: int,
        currency: str,
        metadata: dict,
        idempotency_key: str,
    ) -> TransferResult:
        """Move ``amount`` cents to a vendor's connected account."""
        ...

    @abstractmethod
    def parse_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify the signature and decode the event.

        Raises ``InvalidWebhookError`` when the payload is not authentic.
        """
        ...
