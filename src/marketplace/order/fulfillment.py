"""Vendor fulfilment: command and handler."""

from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.order import Order
from marketplace.order.status import VendorOrderStatus
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


@marketplace.command(part_of="Order")
class UpdateVendorStatus:
    order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    status = String(required=True, choices=VendorOrderStatus)
    tracking_number = String(max_length=255)
    estimated_delivery = DateTime()


@marketplace.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(UpdateVendorStatus)
    def update_vendor_status(self, command):
        """Returns what stock bookkeeping the change needs, if any."""
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        vendor_order, previous = order.update_vendor_status(
            vendor_id=command.vendor_id,
            new_status=command.status,
            tracking_number=command.tracking_number,
            estimated_delivery=command.estimated_delivery,
        )
        repo.add(order)

        logger.info(
            "Vendor order status updated",
            order_id=str(order.id),
            vendor_id=str(command.vendor_id),
            previous_status=previous.value,
            new_status=vendor_order.status,
            order_status=order.status,
        )
        return {
            "previous_status": previous.value,
            "new_status": vendor_order.status,
            "status_changed": previous.value != vendor_order.status,
            "order_status": order.status,
            "items": vendor_order.line_items(),
        }
