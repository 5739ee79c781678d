"""Read-only snapshots of catalog data taken at checkout."""

from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.catalog.product import Product
from marketplace.catalog.vendor import Vendor
from marketplace.config import get_settings


@dataclass(frozen=True)
class ProductSnapshot:
    product_id: str
    vendor_id: str
    name: str
    image: str | None
    price: float
    stock: int


def load_active_products(product_ids) -> dict[str, ProductSnapshot]:
    """Active products among ``product_ids``, keyed by id. Missing or inactive ids are absent."""
    products = current_domain.repository_for(Product).find_active(set(product_ids))
    return {
        str(p.id): ProductSnapshot(
            product_id=str(p.id),
            vendor_id=str(p.vendor_id),
            name=p.name,
            image=p.image,
            price=p.price,
            stock=p.stock or 0,
        )
        for p in products
    }


def _find_vendor(vendor_id: str) -> Vendor | None:
    try:
        return current_domain.repository_for(Vendor).get(str(vendor_id))
    except ObjectNotFoundError:
        return None


def commission_rate_for(vendor_id: str) -> float:
    vendor = _find_vendor(vendor_id)
    if vendor is None or vendor.commission_rate is None:
        return get_settings().DEFAULT_COMMISSION_RATE
    return vendor.commission_rate


def payout_account_for(vendor_id: str) -> str | None:
    vendor = _find_vendor(vendor_id)
    return vendor.payout_account_id if vendor else None
