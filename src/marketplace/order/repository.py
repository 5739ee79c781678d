"""Repository for the Order aggregate.

Besides lookups, it exposes ``compare_and_set``: a single conditional
update on the order's root columns. It only writes when the row still
holds the expected values, which is how payment confirmation, payment
failure, refund claims and intent attachment stay exactly-once under
concurrent requests and webhook retries.
"""

from protean.exceptions import ExpectedVersionError

from marketplace.domain import marketplace
from marketplace.order.order import Order


@marketplace.repository(part_of=Order)
class OrderRepository:
    def find_by_number(self, order_number: str) -> Order | None:
        return self._dao.query.filter(order_number=order_number).all().first

    def find_by_payment_intent(self, payment_intent_id: str) -> Order | None:
        if not payment_intent_id:
            return None
        return self._dao.query.filter(payment_intent_id=payment_intent_id).all().first

    def compare_and_set(self, order_id: str, expected: dict, **changes) -> bool:
        """Apply ``changes`` only if the order currently matches ``expected``.

        ``expected`` takes query lookups, e.g. ``{"payment_status__in": [...]}``.
        Returns whether this call made the change.
        """
        try:
            updated = self._dao.query.filter(id=str(order_id), **expected).update(**changes)
        except ExpectedVersionError:
            # A concurrent write landed between the read and the save
            return False
        return bool(updated)

    def search(self, customer_id=None, vendor_id=None, status=None, offset=0, limit=10):
        """Newest first. Returns the protean ResultSet (``items``, ``total``)."""
        query = self._dao.query
        if customer_id:
            query = query.filter(customer_id=str(customer_id))
        if vendor_id:
            query = query.filter(vendor_ids__contains=f"|{vendor_id}|")
        if status:
            query = query.filter(status=status)
        return query.order_by("-created_at").offset(offset).limit(limit).all()

