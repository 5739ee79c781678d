"""Product aggregate and its stock counters.

Checkout and fulfilment never load-modify-save a product. Stock and sales
move through compare-and-set updates on the repository so two concurrent
checkouts cannot both take the last unit.
"""

from protean.exceptions import ExpectedVersionError
from protean.fields import Boolean, Float, Identifier, Integer, String

from marketplace.domain import marketplace
from marketplace.exceptions import StockConflictError
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


@marketplace.aggregate
class Product:
    vendor_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    image = String(max_length=500)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)
    sales = Integer(default=0, min_value=0)
    is_active = Boolean(default=True)


@marketplace.repository(part_of=Product)
class ProductRepository:
    MAX_CAS_ATTEMPTS = 5

    def find_active(self, product_ids) -> list[Product]:
        ids = [str(pid) for pid in product_ids]
        if not ids:
            return []
        return self._dao.query.filter(id__in=ids, is_active=True).limit(len(ids)).all().items

    def decrement_stock(self, product_id: str, quantity: int) -> int:
        """Take ``quantity`` units; fails rather than letting stock go negative."""
        return self._compare_and_set(product_id, "stock", -quantity)

    def restore_stock(self, product_id: str, quantity: int) -> int:
        return self._compare_and_set(product_id, "stock", quantity)

    def record_sale(self, product_id: str, quantity: int) -> int:
        return self._compare_and_set(product_id, "sales", quantity)

    def _compare_and_set(self, product_id: str, field_name: str, delta: int) -> int:
        for _ in range(self.MAX_CAS_ATTEMPTS):
            product = self._dao.get(product_id)
            current = getattr(product, field_name) or 0
            new_value = current + delta
            if new_value < 0:
                raise StockConflictError(
                    f"Not enough stock for {product.name}",
                    details={"product_id": str(product_id), "requested": -delta, "available": current},
                )

            try:
                updated = self._dao.query.filter(id=str(product_id), **{field_name: current}).update(
                    **{field_name: new_value}
                )
            except ExpectedVersionError:
                updated = 0
            if updated:
                return new_value

            logger.info(
                "Counter changed concurrently, retrying",
                product_id=str(product_id),
                field=field_name,
            )

        raise StockConflictError(
            "Product counter kept changing, giving up",
            details={"product_id": str(product_id), "field": field_name},
        )
