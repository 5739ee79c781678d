"""Vendor status updates and cancellations, with their stock bookkeeping.

The order change runs as a command in its own unit of work; the product
counters move afterwards through compare-and-set updates. Stock goes back
only for sub-orders a call actually cancelled, so it is restored once.
"""

from protean.utils.globals import current_domain

from marketplace.access.policy import Action, Principal, authorize
from marketplace.catalog.stock import record_sales, release_stock
from marketplace.order.cancellation import CancelOrder
from marketplace.order.fulfillment import UpdateVendorStatus
from marketplace.order.order import Order
from marketplace.order.queries import get_order
from marketplace.order.status import VendorOrderStatus
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


def update_vendor_status(
    principal: Principal,
    order_id,
    status: str,
    tracking_number: str | None = None,
    estimated_delivery=None,
) -> Order:
    authorize(principal, Action.UPDATE_VENDOR_STATUS)
    get_order(order_id)

    change = current_domain.process(
        UpdateVendorStatus(
            order_id=str(order_id),
            vendor_id=principal.user_id,
            status=status,
            tracking_number=tracking_number,
            estimated_delivery=estimated_delivery,
        ),
        asynchronous=False,
    )

    if not change["status_changed"]:
        return get_order(order_id)

    if change["new_status"] == VendorOrderStatus.DELIVERED.value:
        record_sales(change["items"])
    elif change["new_status"] == VendorOrderStatus.CANCELLED.value:
        release_stock(change["items"])
        logger.info("Stock restored for cancelled vendor order", order_id=str(order_id), vendor_id=principal.user_id)

    return get_order(order_id)


def cancel_order(principal: Principal, order_id, reason: str | None = None) -> Order:
    order = get_order(order_id)
    authorize(principal, Action.CANCEL_ORDER, order)

    closed = current_domain.process(
        CancelOrder(
            order_id=str(order_id),
            reason=reason,
            cancelled_by=principal.user_id,
        ),
        asynchronous=False,
    )
    for vendor_order in closed:
        release_stock(vendor_order["items"])

    logger.info(
        "Stock restored for cancelled order",
        order_id=str(order_id),
        vendor_orders=len(closed),
    )
    return get_order(order_id)
