"""Order reads, scoped by the caller's role."""

from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.access.policy import Action, Principal, Role, authorize
from marketplace.exceptions import NotFoundError
from marketplace.order.order import Order

MAX_PAGE_SIZE = 50


@dataclass
class OrderPage:
    orders: list
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.total else 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1


def get_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError as exc:
        raise NotFoundError("Order not found") from exc


def view_order(principal: Principal, order_id) -> Order:
    order = get_order(order_id)
    authorize(principal, Action.VIEW_ORDER, order)
    return order


def list_orders(principal: Principal, page: int = 1, limit: int = 10, status: str | None = None) -> OrderPage:
    """Customers see their orders, vendors the orders they hold a sub-order in, admins all."""
    authorize(principal, Action.LIST_ORDERS)
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    scope = {}
    if principal.role == Role.CUSTOMER:
        scope["customer_id"] = principal.user_id
    elif principal.role == Role.VENDOR:
        scope["vendor_id"] = principal.user_id

    result = current_domain.repository_for(Order).search(
        status=status,
        offset=(page - 1) * limit,
        limit=limit,
        **scope,
    )
    return OrderPage(orders=list(result.items), total=result.total, page=page, limit=limit)
