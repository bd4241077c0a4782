"""Referral eligibility — whether a purchase earns its buyer's referrer a commission.

A purchase qualifies when the buyer signed up through a referral code,
the link is still inside the configured window (0 days means no limit) and
the buyer has never paid for an order or ticket before.
"""

from dataclasses import dataclass
from datetime import timedelta

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.referrals.referral import Referral, ReferralLink
from marketplace.settings.setting import int_setting
from marketplace.utils.clock import as_utc


@dataclass(frozen=True)
class ReferralCapture:
    referral_id: str
    rate: float


def has_paid_purchase(buyer_id):
    from marketplace.orders.order import Order, PAID_STATUSES
    from marketplace.tickets.ticket import PAID_TICKET_STATUSES, Ticket

    orders = current_domain.repository_for(Order)._dao.query.filter(buyer_id=str(buyer_id)).all().items
    if any(o.status in PAID_STATUSES for o in orders):
        return True
    tickets = current_domain.repository_for(Ticket)._dao.query.filter(buyer_id=str(buyer_id)).all().items
    return any(t.status in PAID_TICKET_STATUSES for t in tickets)


def eligible_referral(buyer_id, now):
    """Return the referral and rate to capture for a purchase, or None."""
    try:
        link = current_domain.repository_for(ReferralLink).get(buyer_id)
    except ObjectNotFoundError:
        return None

    window_days = int_setting("referral_window_days")
    if window_days and as_utc(now) > as_utc(link.linked_at) + timedelta(days=window_days):
        return None

    if has_paid_purchase(buyer_id):
        return None

    try:
        referral = current_domain.repository_for(Referral).get(link.referral_id)
    except ObjectNotFoundError:
        return None
    return ReferralCapture(referral_id=str(referral.id), rate=referral.commission_rate)
