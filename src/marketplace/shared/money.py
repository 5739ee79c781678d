"""Currency arithmetic helpers.

Amounts are stored as floats rounded to the cent; all arithmetic goes
through ``Decimal`` so sums and commission splits are exact to the cent.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


def quantize(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_amount(value) -> float:
    """Round to currency precision and return the stored float form."""
    return float(quantize(value))


def to_minor_units(value) -> int:
    """Convert a currency amount to integer cents for the processor."""
    return int((quantize(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(cents: int) -> float:
    return float((Decimal(cents) / 100).quantize(CENT))


def commission_for(subtotal, rate_percent) -> Decimal:
    """Commission on ``subtotal`` at ``rate_percent`` (e.g. 10 for 10%)."""
    return quantize(to_decimal(subtotal) * to_decimal(rate_percent) / Decimal(100))
