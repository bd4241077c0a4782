"""Application tests for commission payouts and the commission read-model."""

from datetime import UTC, datetime

import pytest
from marketplace.commissions.commission import Commission, CommissionStatus
from marketplace.commissions.payout import MarkCommissionPaid, MarkCommissionsPaid
from marketplace.commissions.summary import beneficiaries_with_pending, commissions_overview, referral_dashboard
from marketplace.errors import InvalidTransition
from marketplace.orders.payment import confirm_order_payment
from marketplace.referrals.management import TrackReferralClick
from marketplace.referrals.referral import Referral
from protean import current_domain


@pytest.fixture()
def settled_orders(register_listing, add_to_cart, place_order, referred_buyer):
    """Two paid orders: artist-001 earns 10 + 5 customization, artist-002 earns 20, referral 2.5."""
    referral_id = referred_buyer("buyer-001")

    framed = register_listing(sale_price=50.0, customization_prices={"frame": 5.0})
    add_to_cart("buyer-001", framed, 1, customizations=["frame"])
    first = place_order("buyer-001")
    confirm_order_payment(first, "pay-001")

    plain = register_listing(artist_id="artist-002", title="Huacachina dunes", sale_price=100.0)
    add_to_cart("buyer-002", plain)
    second = place_order("buyer-002")
    confirm_order_payment(second, "pay-002")

    return {"first": first, "second": second, "referral_id": referral_id}


def _commission(commission_id):
    return current_domain.repository_for(Commission).get(commission_id)


class TestBeneficiaries:
    def test_sorted_by_pending_amount(self, settled_orders):
        rows = beneficiaries_with_pending()
        assert [(r["payee_type"], r["payee_id"], r["pending_amount"]) for r in rows] == [
            ("artist", "artist-002", 20.0),
            ("artist", "artist-001", 15.0),
            ("referral", settled_orders["referral_id"], 2.5),
        ]

    def test_artist_breakdown_includes_customizations(self, settled_orders):
        row = next(r for r in beneficiaries_with_pending() if r["payee_id"] == "artist-001")
        assert row["breakdown"] == {"artist": 10.0, "customization": 5.0}
        assert row["pending_count"] == 2

    def test_fully_paid_payees_are_not_listed(self, settled_orders):
        current_domain.process(MarkCommissionsPaid(payee_type="artist", payee_id="artist-002"), asynchronous=False)
        assert "artist-002" not in {r["payee_id"] for r in beneficiaries_with_pending()}


class TestPayout:
    def test_mark_single_commission_paid(self, settled_orders):
        commission_id = f"order:{settled_orders['second']}:artist:artist-002"
        returned = current_domain.process(MarkCommissionPaid(commission_id=commission_id), asynchronous=False)
        assert returned == commission_id

        commission = _commission(commission_id)
        assert commission.status == CommissionStatus.PAID.value
        assert commission.paid_at is not None

    def test_paying_twice_is_rejected(self, settled_orders):
        commission_id = f"order:{settled_orders['second']}:artist:artist-002"
        current_domain.process(MarkCommissionPaid(commission_id=commission_id), asynchronous=False)
        with pytest.raises(InvalidTransition):
            current_domain.process(MarkCommissionPaid(commission_id=commission_id), asynchronous=False)

    def test_pay_out_artist(self, settled_orders):
        paid = current_domain.process(
            MarkCommissionsPaid(payee_type="artist", payee_id="artist-001"), asynchronous=False
        )
        assert sorted(paid) == [
            f"order:{settled_orders['first']}:artist:artist-001",
            f"order:{settled_orders['first']}:customization:artist-001",
        ]
        referral = f"order:{settled_orders['first']}:referral:{settled_orders['referral_id']}"
        assert _commission(referral).status == CommissionStatus.PENDING.value

    def test_pay_out_referral(self, settled_orders):
        paid = current_domain.process(
            MarkCommissionsPaid(payee_type="referral", payee_id=settled_orders["referral_id"]), asynchronous=False
        )
        assert len(paid) == 1


class TestOverview:
    def test_totals(self, settled_orders):
        overview = commissions_overview()
        assert overview["pending"] == 37.5
        assert overview["paid"] == 0.0
        assert overview["by_type"] == {"artist": 30.0, "referral": 2.5, "customization": 5.0}

    def test_paid_this_month(self, settled_orders):
        now = datetime.now(UTC)
        current_domain.process(
            MarkCommissionsPaid(payee_type="artist", payee_id="artist-002", as_of=now), asynchronous=False
        )
        overview = commissions_overview(as_of=now)
        assert overview["paid"] == 20.0
        assert overview["paid_this_month"] == 20.0
        assert commissions_overview(as_of=now.replace(year=now.year + 1))["paid_this_month"] == 0.0


class TestReferralDashboard:
    def test_dashboard(self, settled_orders):
        code = current_domain.repository_for(Referral).get(settled_orders["referral_id"]).code
        current_domain.process(TrackReferralClick(code=code), asynchronous=False)

        dashboard = referral_dashboard("ref-owner-001")
        assert dashboard["code"] == code
        assert dashboard["total_clicks"] == 1
        assert dashboard["referred_count"] == 1
        assert dashboard["total_earnings"] == 2.5
        assert dashboard["pending_earnings"] == 2.5
        assert len(dashboard["recent_commissions"]) == 1

    def test_no_referral_code(self):
        assert referral_dashboard("nobody") is None
