"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """A checkout produced a new order split across one or more vendors."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    vendor_ids = Text(required=True)  # JSON: list of vendor ids
    total = Float(required=True)
    total_commission = Float(required=True)
    currency = String(default="usd")
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderPaymentConfirmed:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_intent_id = String(required=True)
    transaction_id = String()
    order_status = String(required=True)
    confirmed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class VendorOrderStatusChanged:
    """A vendor moved its own sub-order; ``order_status`` is the rolled-up result."""

    __version__ = 1

    order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    order_status = String(required=True)
    tracking_number = String()
    changed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    cancelled_by = String(required=True)
    cancelled_vendor_ids = Text(required=True)  # JSON: sub-orders cancelled by this action
    cancelled_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderRefunded:
    __version__ = 1

    order_id = Identifier(required=True)
    refund_id = String(required=True)
    amount = Float(required=True)
    reason = String()
    refunded_at = DateTime(required=True)
