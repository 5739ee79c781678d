"""Order aggregate: one customer checkout split into per-vendor sub-orders.

The Order is a plain CQRS aggregate. Vendors own their ``VendorOrder`` and
move it through the fulfilment state machine; the overall ``status`` is
re-derived from the sub-orders after every change.

Payment fields are flat columns on the root rather than a value object so
the payment reconciliation service can move them with compare-and-set
updates (see ``OrderRepository``) instead of command round-trips.
"""

import json
import random
import time
from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from marketplace.domain import marketplace
from marketplace.exceptions import NotFoundError, StateConflictError
from marketplace.order.events import (
    OrderCancelled,
    OrderPaymentConfirmed,
    OrderPlaced,
    OrderRefunded,
    VendorOrderStatusChanged,
)
from marketplace.order.pricing import price_vendor_lines, summarize
from marketplace.order.status import (
    CLOSED_VENDOR_STATUSES,
    FROZEN_ORDER_STATUSES,
    NON_CANCELLABLE_ORDER_STATUSES,
    VENDOR_SETTABLE_STATUSES,
    OrderStatus,
    PaymentStatus,
    VendorOrderStatus,
    can_transition,
    derive_order_status,
)
from marketplace.shared.money import to_amount

# Amounts are stored rounded to the cent; comparisons allow float noise
_TOLERANCE = 0.005


def generate_order_number() -> str:
    """``AM`` + last 6 digits of the epoch milliseconds + 3 random digits."""
    millis = str(int(time.time() * 1000))[-6:]
    return f"AM{millis}{random.randint(0, 999):03d}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class Address:
    """A shipping or billing address captured at checkout.

    Immutable once on the order, whatever happens to the customer's profile.
    """

    full_name = String(required=True, max_length=255)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    zip_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)
    phone = String(max_length=30)


@marketplace.value_object(part_of="Order")
class OrderSummary:
    """Totals locked at checkout. ``total`` is what gets charged and refunded."""

    subtotal = Float(default=0.0)
    shipping_total = Float(default=0.0)
    tax = Float(default=0.0)
    total = Float(default=0.0)
    total_commission = Float(default=0.0)
    currency = String(max_length=3, default="usd")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order")
class VendorOrder:
    """One vendor's share of an order, fulfilled independently."""

    vendor_id = Identifier(required=True)
    items = Text(required=True)  # JSON: [{product_id, name, image, price, quantity, customization}]
    subtotal = Float(required=True, min_value=0.0)
    shipping_cost = Float(default=0.0)
    commission_rate = Float(required=True, min_value=0.0)
    commission_amount = Float(required=True, min_value=0.0)
    vendor_earnings = Float(required=True)
    status = String(choices=VendorOrderStatus, default=VendorOrderStatus.PENDING.value)
    tracking_number = String(max_length=255)
    estimated_delivery = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()

    @invariant.post
    def earnings_and_commission_make_up_subtotal(self):
        if None in (self.subtotal, self.commission_amount, self.vendor_earnings):
            return
        if abs(self.vendor_earnings + self.commission_amount - self.subtotal) > _TOLERANCE:
            raise ValidationError({"vendor_earnings": ["Vendor earnings and commission must add up to the subtotal"]})

    def line_items(self) -> list[dict]:
        return json.loads(self.items) if self.items else []


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Order:
    order_number = String(required=True, max_length=20, unique=True)
    customer_id = Identifier(required=True)
    vendor_orders = HasMany(VendorOrder)
    vendor_ids = Text()  # "|v1|v2|" lookup index for vendor-scoped queries
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    summary = ValueObject(OrderSummary)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    customer_notes = String(max_length=1000)

    # Payment info
    payment_method = String(max_length=50, default="stripe")
    payment_intent_id = String(max_length=255)
    transaction_id = String(max_length=255)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_attempts = Integer(default=0)
    payment_failure_reason = String(max_length=500)
    paid_at = DateTime()
    refunded_at = DateTime()
    refund_amount = Float()
    refund_id = String(max_length=255)
    refund_reason = String(max_length=500)

    cancel_reason = String(max_length=500)
    cancelled_by = String(max_length=50)
    created_at = DateTime()
    updated_at = DateTime()
    cancelled_at = DateTime()
    completed_at = DateTime()

    @invariant.post
    def vendor_orders_must_belong_to_distinct_vendors(self):
        vendor_ids = [str(vo.vendor_id) for vo in self.vendor_orders or []]
        if len(vendor_ids) != len(set(vendor_ids)):
            raise ValidationError({"vendor_orders": ["Each vendor may hold only one sub-order"]})

    @invariant.post
    def refund_cannot_exceed_total(self):
        if self.refund_amount is None or self.summary is None:
            return
        if self.refund_amount > self.summary.total + _TOLERANCE:
            raise ValidationError({"refund_amount": ["Refund cannot exceed the order total"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id,
        vendor_groups,
        shipping_address,
        billing_address=None,
        customer_notes=None,
        currency="usd",
        order_number=None,
    ):
        """Build a new order from lines already grouped by vendor.

        ``vendor_groups`` is a list of ``{"vendor_id", "commission_rate",
        "items"}`` in first-appearance order; each item carries the price and
        name snapshot taken from the catalog.
        """
        if not vendor_groups:
            raise ValidationError({"items": ["An order needs at least one item"]})

        vendor_orders = []
        pricings = []
        for group in vendor_groups:
            pricing = price_vendor_lines(group["items"], group["commission_rate"])
            pricings.append(pricing)
            vendor_orders.append(
                VendorOrder(
                    vendor_id=group["vendor_id"],
                    items=json.dumps(group["items"]),
                    subtotal=to_amount(pricing.subtotal),
                    shipping_cost=to_amount(pricing.shipping_cost),
                    commission_rate=pricing.commission_rate,
                    commission_amount=to_amount(pricing.commission_amount),
                    vendor_earnings=to_amount(pricing.vendor_earnings),
                    status=VendorOrderStatus.PENDING.value,
                )
            )

        now = datetime.now(UTC)
        vendor_ids = [str(g["vendor_id"]) for g in vendor_groups]
        order = cls(
            order_number=order_number or generate_order_number(),
            customer_id=customer_id,
            vendor_orders=vendor_orders,
            vendor_ids="|" + "|".join(vendor_ids) + "|",
            shipping_address=Address(**shipping_address),
            billing_address=Address(**(billing_address or shipping_address)),
            summary=OrderSummary(**summarize(pricings, currency=currency)),
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_attempts=0,
            customer_notes=customer_notes,
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=str(customer_id),
                vendor_ids=json.dumps(vendor_ids),
                total=order.summary.total,
                total_commission=order.summary.total_commission,
                currency=currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def vendor_order_for(self, vendor_id):
        return next((vo for vo in self.vendor_orders if str(vo.vendor_id) == str(vendor_id)), None)

    def has_vendor(self, vendor_id) -> bool:
        return self.vendor_order_for(vendor_id) is not None

    # -------------------------------------------------------------------
    # Status roll-up
    # -------------------------------------------------------------------
    def refresh_status(self, now=None):
        """Re-derive the overall status from the sub-orders."""
        now = now or datetime.now(UTC)
        derived = derive_order_status([vo.status for vo in self.vendor_orders], self.status)
        if derived.value == self.status:
            return

        self.status = derived.value
        if derived == OrderStatus.DELIVERED:
            self.completed_at = now
        elif derived == OrderStatus.CANCELLED:
            self.cancelled_at = now

    # -------------------------------------------------------------------
    # Fulfilment
    # -------------------------------------------------------------------
    def update_vendor_status(self, vendor_id, new_status, tracking_number=None, estimated_delivery=None):
        """Move ``vendor_id``'s sub-order to ``new_status``.

        Repeating the current status only updates the tracking number or the
        estimated delivery, and needs at least one of them.

        Returns the sub-order and its previous status.
        """
        if OrderStatus(self.status) in FROZEN_ORDER_STATUSES:
            raise StateConflictError(f"Cannot update a {self.status} order")

        vendor_order = self.vendor_order_for(vendor_id)
        if vendor_order is None:
            raise NotFoundError("No vendor order found for this vendor")

        current = VendorOrderStatus(vendor_order.status)
        target = VendorOrderStatus(new_status)
        if target not in VENDOR_SETTABLE_STATUSES:
            raise ValidationError({"status": [f"Vendors cannot set a sub-order to {target.value}"]})

        # Same status: only tracking or delivery details may change
        details_only = target == current
        if details_only:
            if current == VendorOrderStatus.CANCELLED or not (tracking_number or estimated_delivery):
                raise StateConflictError(
                    f"Vendor order is already {current.value}",
                    details={"from": current.value, "to": target.value},
                )
        elif not can_transition(current, target):
            raise StateConflictError(
                f"Cannot change vendor order from {current.value} to {target.value}",
                details={"from": current.value, "to": target.value},
            )

        now = datetime.now(UTC)
        vendor_order.status = target.value
        if tracking_number:
            vendor_order.tracking_number = tracking_number
        if estimated_delivery:
            vendor_order.estimated_delivery = estimated_delivery

        if not details_only:
            if target == VendorOrderStatus.SHIPPED:
                vendor_order.shipped_at = now
            elif target == VendorOrderStatus.DELIVERED:
                vendor_order.delivered_at = now
            elif target == VendorOrderStatus.CANCELLED:
                vendor_order.cancelled_at = now
            self.refresh_status(now)
        self.updated_at = now

        self.raise_(
            VendorOrderStatusChanged(
                order_id=str(self.id),
                vendor_id=str(vendor_id),
                previous_status=current.value,
                new_status=target.value,
                order_status=self.status,
                tracking_number=vendor_order.tracking_number,
                changed_at=now,
            )
        )
        return vendor_order, current

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def apply_payment_confirmed(self, payment_intent_id, transaction_id=None) -> bool:
        """Fan a confirmed payment out to the order and its sub-orders.

        The payment fields themselves are already set by the compare-and-set
        that decided this confirmation. A cancelled or refunded order keeps
        its status; the captured payment waits for an admin refund.
        """
        if OrderStatus(self.status) in FROZEN_ORDER_STATUSES:
            return False

        now = datetime.now(UTC)
        for vendor_order in self.vendor_orders:
            if vendor_order.status == VendorOrderStatus.PENDING.value:
                vendor_order.status = VendorOrderStatus.CONFIRMED.value

        if self.status == OrderStatus.PENDING.value:
            self.status = OrderStatus.CONFIRMED.value
        else:
            self.refresh_status(now)
        self.updated_at = now

        self.raise_(
            OrderPaymentConfirmed(
                order_id=str(self.id),
                payment_intent_id=payment_intent_id,
                transaction_id=transaction_id,
                order_status=self.status,
                confirmed_at=now,
            )
        )
        return True

    def record_refund(self, refund_id, amount, reason=None):
        if self.payment_status != PaymentStatus.REFUND_PENDING.value:
            raise StateConflictError("Refund was not claimed for this order")

        now = datetime.now(UTC)
        self.status = OrderStatus.REFUNDED.value
        self.payment_status = PaymentStatus.REFUNDED.value
        self.refunded_at = now
        self.refund_amount = to_amount(amount)
        self.refund_id = refund_id
        self.refund_reason = reason
        self.updated_at = now

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                refund_id=refund_id,
                amount=self.refund_amount,
                reason=reason,
                refunded_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, reason, cancelled_by):
        """Cancel the order and every open sub-order.

        Returns the sub-orders this call cancelled; only their stock goes back.
        """
        if OrderStatus(self.status) in NON_CANCELLABLE_ORDER_STATUSES:
            raise StateConflictError(f"Cannot cancel a {self.status} order")

        now = datetime.now(UTC)
        newly_cancelled = []
        for vendor_order in self.vendor_orders:
            if VendorOrderStatus(vendor_order.status) not in CLOSED_VENDOR_STATUSES:
                vendor_order.status = VendorOrderStatus.CANCELLED.value
                vendor_order.cancelled_at = now
                newly_cancelled.append(vendor_order)

        self.status = OrderStatus.CANCELLED.value
        self.cancel_reason = reason
        self.cancelled_by = cancelled_by
        self.cancelled_at = now
        self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_vendor_ids=json.dumps([str(vo.vendor_id) for vo in newly_cancelled]),
                cancelled_at=now,
            )
        )
        return newly_cancelled
