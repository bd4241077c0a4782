"""Commission read-model — who is owed money, and how much.

Grouping rules:
    * artist and customization commissions are owed to the artist
      (payee type ``artist``, payee id = artist id);
    * referral commissions are owed to the referral (payee type
      ``referral``, payee id = referral id).
Payees are listed by descending pending amount, ties broken by payee id.
"""

from collections import defaultdict

from protean.utils.globals import current_domain

from marketplace.commissions.commission import BeneficiaryType, Commission, CommissionStatus
from marketplace.shared.money import ZERO, to_amount, to_decimal
from marketplace.utils.clock import as_utc, resolve_as_of


def payee_of(commission):
    if commission.beneficiary_type == BeneficiaryType.REFERRAL.value:
        return BeneficiaryType.REFERRAL.value, str(commission.beneficiary_id)
    return BeneficiaryType.ARTIST.value, str(commission.beneficiary_id)


def _all_commissions():
    return current_domain.repository_for(Commission)._dao.query.all().items


def beneficiaries_with_pending():
    """Payees with money pending, with a breakdown by commission type."""
    payees = {}
    for commission in _all_commissions():
        key = payee_of(commission)
        entry = payees.setdefault(
            key,
            {
                "pending": ZERO,
                "paid": ZERO,
                "pending_count": 0,
                "breakdown": defaultdict(lambda: ZERO),
            },
        )
        amount = to_decimal(commission.amount)
        if commission.status == CommissionStatus.PENDING.value:
            entry["pending"] += amount
            entry["pending_count"] += 1
            entry["breakdown"][commission.beneficiary_type] += amount
        elif commission.status == CommissionStatus.PAID.value:
            entry["paid"] += amount

    rows = [
        {
            "payee_type": payee_type,
            "payee_id": payee_id,
            "pending_amount": to_amount(entry["pending"]),
            "paid_amount": to_amount(entry["paid"]),
            "pending_count": entry["pending_count"],
            "breakdown": {k: to_amount(v) for k, v in sorted(entry["breakdown"].items())},
        }
        for (payee_type, payee_id), entry in payees.items()
        if entry["pending"] > 0
    ]
    rows.sort(key=lambda row: (-to_decimal(row["pending_amount"]), row["payee_id"]))
    return rows


def commissions_overview(as_of=None):
    """Totals by status and by type, plus what was paid out in the current month."""
    now = resolve_as_of(as_of)
    by_status = defaultdict(lambda: ZERO)
    by_type = defaultdict(lambda: ZERO)
    paid_this_month = ZERO

    for commission in _all_commissions():
        amount = to_decimal(commission.amount)
        by_status[commission.status] += amount
        if commission.status != CommissionStatus.CANCELLED.value:
            by_type[commission.beneficiary_type] += amount
        if commission.status == CommissionStatus.PAID.value and commission.paid_at:
            paid_at = as_utc(commission.paid_at)
            if (paid_at.year, paid_at.month) == (now.year, now.month):
                paid_this_month += amount

    return {
        "pending": to_amount(by_status[CommissionStatus.PENDING.value]),
        "paid": to_amount(by_status[CommissionStatus.PAID.value]),
        "cancelled": to_amount(by_status[CommissionStatus.CANCELLED.value]),
        "by_type": {t.value: to_amount(by_type[t.value]) for t in BeneficiaryType},
        "paid_this_month": to_amount(paid_this_month),
    }


def referral_dashboard(owner_id):
    """The referral owner's code, traffic and earnings; None if they have no code."""
    from marketplace.referrals.management import find_referral_by_owner

    referral = find_referral_by_owner(owner_id)
    if referral is None:
        return None

    commissions = (
        current_domain.repository_for(Commission)
        ._dao.query.filter(beneficiary_type=BeneficiaryType.REFERRAL.value, beneficiary_id=str(referral.id))
        .all()
        .items
    )
    live = [c for c in commissions if c.status != CommissionStatus.CANCELLED.value]
    recent = sorted(live, key=lambda c: as_utc(c.created_at), reverse=True)[:20]

    return {
        "referral_id": str(referral.id),
        "code": referral.code,
        "commission_rate": referral.commission_rate,
        "total_clicks": referral.total_clicks,
        "referred_count": referral.referred_count,
        "total_earnings": to_amount(sum((to_decimal(c.amount) for c in live), ZERO)),
        "pending_earnings": to_amount(
            sum((to_decimal(c.amount) for c in live if c.status == CommissionStatus.PENDING.value), ZERO)
        ),
        "recent_commissions": [
            {
                "commission_id": c.commission_id,
                "source_type": c.source_type,
                "source_id": str(c.source_id),
                "amount": c.amount,
                "status": c.status,
            }
            for c in recent
        ],
    }
