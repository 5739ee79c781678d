"""Order, sub-order and payment statuses, and the rules that move them.

The overall order status is never set by vendors directly. It is a cached
value of ``derive_order_status`` over the sub-order statuses, except for the
statuses owned by an explicit action (payment confirmation, cancellation,
refund).
"""

from enum import Enum


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    PARTIALLY_SHIPPED = "partially_shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class VendorOrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUND_PENDING = "refund_pending"
    REFUNDED = "refunded"


# Forward-only sub-order moves; delivered and cancelled are terminal
_VENDOR_TRANSITIONS = {
    VendorOrderStatus.PENDING: {VendorOrderStatus.CONFIRMED, VendorOrderStatus.CANCELLED},
    VendorOrderStatus.CONFIRMED: {
        VendorOrderStatus.PROCESSING,
        VendorOrderStatus.SHIPPED,
        VendorOrderStatus.CANCELLED,
    },
    VendorOrderStatus.PROCESSING: {VendorOrderStatus.SHIPPED, VendorOrderStatus.CANCELLED},
    VendorOrderStatus.SHIPPED: {VendorOrderStatus.DELIVERED, VendorOrderStatus.CANCELLED},
    VendorOrderStatus.DELIVERED: set(),
    VendorOrderStatus.CANCELLED: set(),
}

# Statuses a vendor may request through the API
VENDOR_SETTABLE_STATUSES = {
    VendorOrderStatus.CONFIRMED,
    VendorOrderStatus.PROCESSING,
    VendorOrderStatus.SHIPPED,
    VendorOrderStatus.DELIVERED,
    VendorOrderStatus.CANCELLED,
}

# Overall statuses the roll-up never touches
FROZEN_ORDER_STATUSES = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}

NON_CANCELLABLE_ORDER_STATUSES = {
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
}

CLOSED_VENDOR_STATUSES = {VendorOrderStatus.DELIVERED, VendorOrderStatus.CANCELLED}


def can_transition(current: VendorOrderStatus, target: VendorOrderStatus) -> bool:
    return target in _VENDOR_TRANSITIONS[current]


def allowed_transitions(current: VendorOrderStatus) -> set[VendorOrderStatus]:
    return set(_VENDOR_TRANSITIONS[current])


def derive_order_status(vendor_statuses, current=None) -> OrderStatus:
    """Roll the sub-order statuses up into an overall order status.

    Rules apply in order and the first match wins:

    1. A cancelled or refunded order keeps its status.
    2. Every sub-order delivered -> delivered.
    3. Any sub-order delivered or shipped -> partially_shipped.
    4. Every sub-order confirmed or processing -> processing.
    5. Every sub-order cancelled -> cancelled.
    6. Anything else -> pending.
    """
    if current is not None:
        current = OrderStatus(current)
        if current in FROZEN_ORDER_STATUSES:
            return current

    statuses = [VendorOrderStatus(s) for s in vendor_statuses]
    if not statuses:
        return OrderStatus.PENDING

    if all(s == VendorOrderStatus.DELIVERED for s in statuses):
        return OrderStatus.DELIVERED
    if any(s in (VendorOrderStatus.DELIVERED, VendorOrderStatus.SHIPPED) for s in statuses):
        return OrderStatus.PARTIALLY_SHIPPED
    if all(s in (VendorOrderStatus.CONFIRMED, VendorOrderStatus.PROCESSING) for s in statuses):
        return OrderStatus.PROCESSING
    if all(s == VendorOrderStatus.CANCELLED for s in statuses):
        return OrderStatus.CANCELLED
    return OrderStatus.PENDING
