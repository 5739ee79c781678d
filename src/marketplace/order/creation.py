"""Order placement: command and handler.

The handler validates availability and stock against a catalog snapshot,
prices each vendor's share and persists the order in one write. It has no
side effects when validation fails. Stock is reserved afterwards by the
checkout orchestrator.
"""

import json

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.catalog.reader import commission_rate_for, load_active_products
from marketplace.catalog.stock import requested_quantities
from marketplace.config import get_settings
from marketplace.domain import marketplace
from marketplace.exceptions import InsufficientStock, OrderCreationError
from marketplace.order.order import Order, generate_order_number
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)

MAX_ORDER_NUMBER_ATTEMPTS = 5


@marketplace.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: [{product_id, quantity, customization?}]
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict, defaults to shipping
    customer_notes = String(max_length=1000)


def group_by_vendor(lines: list[dict], products: dict) -> list[dict]:
    """Snapshot each line and partition by vendor, keeping first-appearance order."""
    groups: dict[str, dict] = {}
    for line in lines:
        product = products[str(line["product_id"])]
        group = groups.setdefault(
            product.vendor_id,
            {"vendor_id": product.vendor_id, "items": []},
        )
        group["items"].append(
            {
                "product_id": product.product_id,
                "name": product.name,
                "image": product.image,
                "price": product.price,
                "quantity": int(line["quantity"]),
                "customization": line.get("customization"),
            }
        )
    return list(groups.values())


def _unique_order_number(repo) -> str:
    for _ in range(MAX_ORDER_NUMBER_ATTEMPTS):
        number = generate_order_number()
        if repo.find_by_number(number) is None:
            return number
    raise OrderCreationError("Could not allocate an order number")


@marketplace.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        lines = json.loads(command.items) if isinstance(command.items, str) else command.items
        shipping_address = (
            json.loads(command.shipping_address)
            if isinstance(command.shipping_address, str)
            else command.shipping_address
        )
        billing_address = (
            json.loads(command.billing_address) if isinstance(command.billing_address, str) else command.billing_address
        )

        quantities = requested_quantities(lines)
        products = load_active_products(quantities.keys())

        missing = [pid for pid in quantities if pid not in products]
        if missing:
            raise OrderCreationError(
                "Some products are not available",
                details={"product_ids": missing},
            )

        shortfalls = [
            {
                "product_id": pid,
                "product": products[pid].name,
                "requested": qty,
                "available": products[pid].stock,
            }
            for pid, qty in quantities.items()
            if products[pid].stock < qty
        ]
        if shortfalls:
            raise InsufficientStock(shortfalls)

        vendor_groups = group_by_vendor(lines, products)
        for group in vendor_groups:
            group["commission_rate"] = commission_rate_for(group["vendor_id"])

        repo = current_domain.repository_for(Order)
        order = Order.place(
            customer_id=command.customer_id,
            vendor_groups=vendor_groups,
            shipping_address=shipping_address,
            billing_address=billing_address,
            customer_notes=command.customer_notes,
            currency=get_settings().CURRENCY,
            order_number=_unique_order_number(repo),
        )
        repo.add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=str(command.customer_id),
            vendor_count=len(vendor_groups),
            total=order.summary.total,
        )
        return str(order.id)
