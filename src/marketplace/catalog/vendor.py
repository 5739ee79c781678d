"""Vendor profile: the parts checkout and payouts need."""

from protean.fields import Float, String

from marketplace.domain import marketplace


@marketplace.aggregate
class Vendor:
    """A shop selling on the marketplace. Its id is the vendor user's id.

    ``commission_rate`` is a percentage kept by the marketplace; when unset
    the configured default applies. ``payout_account_id`` is the processor's
    connected-account id used for transfers; vendors without one get
    simulated payouts.
    """

    shop_name = String(required=True, max_length=255)
    commission_rate = Float(min_value=0.0, max_value=100.0)
    payout_account_id = String(max_length=255)
