"""Error taxonomy for the marketplace.

Every error carries the HTTP status it maps to and a stable machine code, so
the API layer can render a uniform envelope without inspecting types.
Field-level input errors use ``protean.exceptions.ValidationError``.
"""


class MarketplaceError(Exception):
    status_code = 400
    code = "marketplace_error"
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None, details=None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class OrderCreationError(MarketplaceError):
    code = "order_creation_failed"
    default_message = "Order could not be created"


class InsufficientStock(OrderCreationError):
    """Raised with one entry per short product in ``details``."""

    code = "insufficient_stock"
    default_message = "Insufficient stock"

    def __init__(self, shortfalls: list[dict]) -> None:
        names = ", ".join(s["product"] for s in shortfalls)
        super().__init__(f"Insufficient stock for: {names}", details=shortfalls)
        self.shortfalls = shortfalls


class AuthenticationError(MarketplaceError):
    status_code = 401
    code = "authentication_failed"
    default_message = "Not authorized"


class AuthorizationError(MarketplaceError):
    status_code = 403
    code = "access_denied"
    default_message = "Access denied"


class NotFoundError(MarketplaceError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class StateConflictError(MarketplaceError):
    code = "state_conflict"
    default_message = "Operation not allowed in the current state"


class PaymentNotCompleted(StateConflictError):
    code = "payment_not_completed"
    default_message = "Payment not completed"


class InvalidWebhookError(MarketplaceError):
    code = "invalid_webhook"
    default_message = "Webhook signature verification failed"


class StockConflictError(MarketplaceError):
    status_code = 409
    code = "stock_conflict"
    default_message = "Stock changed while reserving items"


class ExternalPaymentError(MarketplaceError):
    """The payment processor failed or did not answer in time.

    ``processor_message`` holds the raw processor text, shown to admins only.
    """

    status_code = 502
    code = "payment_processor_error"
    default_message = "Payment processor error"

    def __init__(self, message: str | None = None, processor_message: str | None = None) -> None:
        super().__init__(message)
        self.processor_message = processor_message


class PaymentOutcomeUnknown(ExternalPaymentError):
    """The processor did not answer (timeout or dropped connection).

    The request may or may not have taken effect at the processor.
    """

    status_code = 504
    code = "payment_outcome_unknown"
    default_message = "Payment processor did not answer; the outcome is unknown"
