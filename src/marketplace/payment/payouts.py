"""Vendor payouts after a confirmed payment.

Each open sub-order's ``vendor_earnings`` goes to its vendor. Vendors with a
connected payout account get a processor transfer; the rest are recorded
as simulated transfers. A failed transfer is logged and reported in the
result; it never undoes the payment confirmation.
"""

from marketplace.catalog.reader import payout_account_for
from marketplace.exceptions import ExternalPaymentError
from marketplace.order.status import VendorOrderStatus
from marketplace.payment.gateway import get_gateway
from marketplace.shared.money import to_minor_units
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


def schedule_payouts(order) -> list[dict]:
    gateway = get_gateway()
    currency = order.summary.currency
    transfers = []

    for vendor_order in order.vendor_orders:
        if vendor_order.status == VendorOrderStatus.CANCELLED.value:
            continue

        vendor_id = str(vendor_order.vendor_id)
        amount = vendor_order.vendor_earnings
        destination = payout_account_for(vendor_id)

        if not destination:
            logger.info(
                "Simulated vendor payout",
                order_id=str(order.id),
                vendor_id=vendor_id,
                amount=amount,
            )
            transfers.append({"vendor_id": vendor_id, "amount": amount, "status": "simulated"})
            continue

        try:
            result = gateway.create_transfer(
                destination=destination,
                amount=to_minor_units(amount),
                currency=currency,
                metadata={
                    "order_id": str(order.id),
                    "order_number": order.order_number,
                    "vendor_id": vendor_id,
                },
                idempotency_key=f"payout-{order.id}-{vendor_id}",
            )
        except ExternalPaymentError as exc:
            logger.error(
                "Vendor payout failed",
                order_id=str(order.id),
                vendor_id=vendor_id,
                amount=amount,
                error=exc.processor_message,
            )
            transfers.append({"vendor_id": vendor_id, "amount": amount, "status": "failed"})
            continue

        logger.info(
            "Vendor payout sent",
            order_id=str(order.id),
            vendor_id=vendor_id,
            transfer_id=result.transfer_id,
            amount=amount,
        )
        transfers.append(
            {
                "vendor_id": vendor_id,
                "amount": amount,
                "status": result.status,
                "transfer_id": result.transfer_id,
            }
        )

    return transfers
