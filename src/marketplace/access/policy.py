"""Role and ownership checks for order and payment operations.

Access is a table keyed by ``(role, action)``. A missing entry means the
role may never perform the action; a present entry names what the caller
must be to the order in question.
"""

from dataclasses import dataclass
from enum import Enum

from marketplace.exceptions import AuthorizationError


class Role(Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"
    ADMIN = "admin"


class Action(Enum):
    PLACE_ORDER = "place_order"
    LIST_ORDERS = "list_orders"
    VIEW_ORDER = "view_order"
    UPDATE_VENDOR_STATUS = "update_vendor_status"
    CANCEL_ORDER = "cancel_order"
    CREATE_PAYMENT_INTENT = "create_payment_intent"
    CONFIRM_PAYMENT = "confirm_payment"
    VIEW_PAYMENT_STATUS = "view_payment_status"
    REFUND_ORDER = "refund_order"


class Ownership(Enum):
    ANY = "any"
    OWNER = "owner"  # the customer who placed the order
    VENDOR_PARTY = "vendor_party"  # a vendor holding a sub-order in it


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


POLICY: dict[tuple[Role, Action], Ownership] = {
    (Role.CUSTOMER, Action.PLACE_ORDER): Ownership.ANY,
    (Role.CUSTOMER, Action.LIST_ORDERS): Ownership.ANY,
    (Role.VENDOR, Action.LIST_ORDERS): Ownership.ANY,
    (Role.ADMIN, Action.LIST_ORDERS): Ownership.ANY,
    (Role.CUSTOMER, Action.VIEW_ORDER): Ownership.OWNER,
    (Role.VENDOR, Action.VIEW_ORDER): Ownership.VENDOR_PARTY,
    (Role.ADMIN, Action.VIEW_ORDER): Ownership.ANY,
    # The handler scopes the change to the caller's own sub-order
    (Role.VENDOR, Action.UPDATE_VENDOR_STATUS): Ownership.ANY,
    (Role.CUSTOMER, Action.CANCEL_ORDER): Ownership.OWNER,
    (Role.ADMIN, Action.CANCEL_ORDER): Ownership.ANY,
    (Role.CUSTOMER, Action.CREATE_PAYMENT_INTENT): Ownership.OWNER,
    (Role.CUSTOMER, Action.CONFIRM_PAYMENT): Ownership.OWNER,
    (Role.CUSTOMER, Action.VIEW_PAYMENT_STATUS): Ownership.OWNER,
    (Role.ADMIN, Action.VIEW_PAYMENT_STATUS): Ownership.ANY,
    (Role.ADMIN, Action.REFUND_ORDER): Ownership.ANY,
}


def is_allowed(principal: Principal, action: Action, order=None) -> bool:
    ownership = POLICY.get((principal.role, action))
    if ownership is None:
        return False
    if ownership == Ownership.ANY:
        return True
    if order is None:
        return False
    if ownership == Ownership.OWNER:
        return str(order.customer_id) == str(principal.user_id)
    return order.has_vendor(principal.user_id)


def authorize(principal: Principal, action: Action, order=None) -> None:
    """Raise ``AuthorizationError`` unless ``principal`` may perform ``action``."""
    if not is_allowed(principal, action, order):
        raise AuthorizationError(details={"action": action.value, "role": principal.role.value})
