"""Marketplace bounded context: multi-vendor orders and payment reconciliation.

A customer checkout produces one Order split into per-vendor sub-orders.
Payments are reconciled against an external processor, vendors fulfil
their own sub-orders, and the overall order status is rolled up from them.
"""

from protean.domain import Domain

from marketplace.utils.logging import configure_logging

configure_logging()

marketplace = Domain(name="marketplace")
