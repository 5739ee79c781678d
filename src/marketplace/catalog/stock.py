"""Stock reservation and release for order lines."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.catalog.product import Product
from marketplace.exceptions import StockConflictError
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


def requested_quantities(lines) -> dict[str, int]:
    """Total quantity per product, in first-appearance order."""
    totals: dict[str, int] = {}
    for line in lines:
        product_id = str(line["product_id"])
        totals[product_id] = totals.get(product_id, 0) + int(line["quantity"])
    return totals


def reserve_stock(lines) -> None:
    """Decrement stock for every line, or for none of them.

    On a failed decrement, or a product that has gone missing, every
    decrement already applied is restored before the error propagates.
    """
    repo = current_domain.repository_for(Product)
    reserved: list[tuple[str, int]] = []
    try:
        for product_id, quantity in requested_quantities(lines).items():
            repo.decrement_stock(product_id, quantity)
            reserved.append((product_id, quantity))
    except (StockConflictError, ObjectNotFoundError):
        for product_id, quantity in reserved:
            repo.restore_stock(product_id, quantity)
        logger.warning(
            "Stock reservation failed, released partial reservation",
            released=len(reserved),
        )
        raise


def release_stock(lines) -> None:
    repo = current_domain.repository_for(Product)
    for product_id, quantity in requested_quantities(lines).items():
        try:
            repo.restore_stock(product_id, quantity)
        except ObjectNotFoundError:
            logger.warning("Cannot restore stock for missing product", product_id=product_id, quantity=quantity)


def record_sales(lines) -> None:
    repo = current_domain.repository_for(Product)
    for product_id, quantity in requested_quantities(lines).items():
        try:
            repo.record_sale(product_id, quantity)
        except ObjectNotFoundError:
            logger.warning("Cannot record sale for missing product", product_id=product_id, quantity=quantity)
