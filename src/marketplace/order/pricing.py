"""Per-vendor pricing and the order summary.

Shipping and tax are zero until vendor shipping policies and tax rules
exist; the summary keeps the fields so totals are computed the same way
once they do.
"""

from dataclasses import dataclass
from decimal import Decimal

from marketplace.shared.money import commission_for, quantize, to_amount, to_decimal


@dataclass(frozen=True)
class VendorPricing:
    subtotal: Decimal
    shipping_cost: Decimal
    commission_rate: float
    commission_amount: Decimal
    vendor_earnings: Decimal


def price_vendor_lines(lines: list[dict], commission_rate: float, shipping_cost=0) -> VendorPricing:
    """Price one vendor's lines. Each line needs ``price`` and ``quantity``."""
    subtotal = quantize(sum((to_decimal(line["price"]) * int(line["quantity"]) for line in lines), Decimal(0)))
    commission = commission_for(subtotal, commission_rate)
    return VendorPricing(
        subtotal=subtotal,
        shipping_cost=quantize(shipping_cost),
        commission_rate=commission_rate,
        commission_amount=commission,
        vendor_earnings=subtotal - commission,
    )


def summarize(pricings: list[VendorPricing], tax=0, currency: str = "usd") -> dict:
    subtotal = sum((p.subtotal for p in pricings), Decimal(0))
    shipping_total = sum((p.shipping_cost for p in pricings), Decimal(0))
    total_commission = sum((p.commission_amount for p in pricings), Decimal(0))
    tax = quantize(tax)
    return {
        "subtotal": to_amount(subtotal),
        "shipping_total": to_amount(shipping_total),
        "tax": to_amount(tax),
        "total": to_amount(subtotal + shipping_total + tax),
        "total_commission": to_amount(total_commission),
        "currency": currency,
    }
