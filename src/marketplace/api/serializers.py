"""Order representations returned by the API."""

from marketplace.access.policy import Principal, Role


def _timestamp(value):
    return value.isoformat() if value else None


def _address(address) -> dict | None:
    if address is None:
        return None
    return {
        "full_name": address.full_name,
        "street": address.street,
        "city": address.city,
        "state": address.state,
        "zip_code": address.zip_code,
        "country": address.country,
        "phone": address.phone,
    }


def serialize_vendor_order(vendor_order) -> dict:
    return {
        "id": str(vendor_order.id),
        "vendor_id": str(vendor_order.vendor_id),
        "items": vendor_order.line_items(),
        "subtotal": vendor_order.subtotal,
        "shipping_cost": vendor_order.shipping_cost,
        "commission_rate": vendor_order.commission_rate,
        "commission_amount": vendor_order.commission_amount,
        "vendor_earnings": vendor_order.vendor_earnings,
        "status": vendor_order.status,
        "tracking_number": vendor_order.tracking_number,
        "estimated_delivery": _timestamp(vendor_order.estimated_delivery),
        "shipped_at": _timestamp(vendor_order.shipped_at),
        "delivered_at": _timestamp(vendor_order.delivered_at),
        "cancelled_at": _timestamp(vendor_order.cancelled_at),
    }


def serialize_payment_info(order) -> dict:
    return {
        "method": order.payment_method,
        "payment_intent_id": order.payment_intent_id,
        "transaction_id": order.transaction_id,
        "status": order.payment_status,
        "attempts": order.payment_attempts,
        "failure_reason": order.payment_failure_reason,
        "paid_at": _timestamp(order.paid_at),
        "refunded_at": _timestamp(order.refunded_at),
        "refund_amount": order.refund_amount,
        "refund_id": order.refund_id,
        "refund_reason": order.refund_reason,
    }


def serialize_order(order, principal: Principal | None = None) -> dict:
    """Render an order; a vendor only sees their own sub-order."""
    vendor_orders = order.vendor_orders
    if principal is not None and principal.role == Role.VENDOR:
        vendor_orders = [vo for vo in vendor_orders if str(vo.vendor_id) == principal.user_id]

    summary = order.summary
    return {
        "id": str(order.id),
        "order_number": order.order_number,
        "customer_id": str(order.customer_id),
        "status": order.status,
        "vendor_orders": [serialize_vendor_order(vo) for vo in vendor_orders],
        "shipping_address": _address(order.shipping_address),
        "billing_address": _address(order.billing_address),
        "summary": {
            "subtotal": summary.subtotal,
            "shipping_total": summary.shipping_total,
            "tax": summary.tax,
            "total": summary.total,
            "total_commission": summary.total_commission,
            "currency": summary.currency,
        },
        "payment_info": serialize_payment_info(order),
        "customer_notes": order.customer_notes,
        "cancel_reason": order.cancel_reason,
        "cancelled_by": order.cancelled_by,
        "created_at": _timestamp(order.created_at),
        "updated_at": _timestamp(order.updated_at),
        "cancelled_at": _timestamp(order.cancelled_at),
        "completed_at": _timestamp(order.completed_at),
    }
