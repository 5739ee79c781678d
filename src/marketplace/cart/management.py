"""Cart clearing: command and handler."""

from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.domain import marketplace
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


@marketplace.command(part_of="Cart")
class ClearCart:
    customer_id = Identifier(required=True)


@marketplace.command_handler(part_of=Cart)
class CartCommandHandler:
    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.find_for_customer(command.customer_id)
        if cart is None or not cart.items:
            return False

        cart.clear()
        repo.add(cart)
        logger.info("Cart cleared", customer_id=str(command.customer_id))
        return True
