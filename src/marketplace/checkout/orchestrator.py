"""Checkout orchestrator: turns a customer's items into a placed order.

Steps, in order:

1. ``PlaceOrder`` validates availability and stock, prices every vendor
   group and writes the order. Nothing else happens if it fails.
2. Stock is reserved with conditional decrements.
3. The customer's cart is cleared.

Step 2 can still lose a race with another checkout after the order is
written. The compensation releases whatever was already reserved and
cancels the order as ``system``, so the order never exists without its
stock and stock never goes negative.
"""

import json

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.access.policy import Action, Principal, authorize
from marketplace.cart.management import ClearCart
from marketplace.catalog.stock import reserve_stock
from marketplace.exceptions import StockConflictError
from marketplace.order.cancellation import CancelOrder
from marketplace.order.creation import PlaceOrder
from marketplace.order.order import Order
from marketplace.order.queries import get_order
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)

STOCK_FAILURE_REASON = "Stock reservation failed"


def checkout(
    principal: Principal,
    items: list[dict],
    shipping_address: dict,
    billing_address: dict | None = None,
    customer_notes: str | None = None,
) -> Order:
    authorize(principal, Action.PLACE_ORDER)

    order_id = current_domain.process(
        PlaceOrder(
            customer_id=principal.user_id,
            items=json.dumps(items),
            shipping_address=json.dumps(shipping_address),
            billing_address=json.dumps(billing_address) if billing_address else None,
            customer_notes=customer_notes,
        ),
        asynchronous=False,
    )

    try:
        reserve_stock(items)
    except (StockConflictError, ObjectNotFoundError):
        # Reservation already released its partial decrements; only the order remains
        current_domain.process(
            CancelOrder(order_id=order_id, reason=STOCK_FAILURE_REASON, cancelled_by="system"),
            asynchronous=False,
        )
        logger.warning("Checkout compensated after stock conflict", order_id=order_id)
        raise

    current_domain.process(ClearCart(customer_id=principal.user_id), asynchronous=False)
    return get_order(order_id)
