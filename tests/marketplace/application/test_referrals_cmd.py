"""Application tests for referral codes and buyer linkage via domain.process()."""

import pytest
from marketplace.errors import Conflict
from marketplace.referrals.management import (
    GenerateReferralCode,
    LinkReferredBuyer,
    TrackReferralClick,
    validate_referral_code,
)
from marketplace.referrals.referral import Referral, ReferralLink
from marketplace.settings.management import UpdatePlatformSetting
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


def _generate(owner_id="ref-owner-001", owner_name="Lucia"):
    referral_id = current_domain.process(
        GenerateReferralCode(owner_id=owner_id, owner_name=owner_name), asynchronous=False
    )
    return current_domain.repository_for(Referral).get(referral_id)


class TestGenerateReferralCode:
    def test_code_uses_owner_name(self):
        referral = _generate()
        assert referral.code.startswith("LUCI")
        assert len(referral.code) == 8

    def test_rate_is_captured_at_generation(self):
        current_domain.process(UpdatePlatformSetting(key="referral_commission_rate", value="7"), asynchronous=False)
        referral = _generate()
        current_domain.process(UpdatePlatformSetting(key="referral_commission_rate", value="3"), asynchronous=False)

        assert current_domain.repository_for(Referral).get(referral.id).commission_rate == 7.0

    def test_one_code_per_owner(self):
        assert _generate().id == _generate().id


class TestReferralCodeLookup:
    def test_validate_known_code(self):
        referral = _generate()
        assert validate_referral_code(referral.code.lower()) == {"valid": True, "code": referral.code}

    def test_validate_unknown_code(self):
        assert validate_referral_code("NOPE1234") == {"valid": False}

    def test_track_click(self):
        referral = _generate()
        current_domain.process(TrackReferralClick(code=referral.code), asynchronous=False)
        current_domain.process(TrackReferralClick(code=referral.code), asynchronous=False)
        assert current_domain.repository_for(Referral).get(referral.id).total_clicks == 2

    def test_track_click_unknown_code(self):
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(TrackReferralClick(code="NOPE1234"), asynchronous=False)


class TestLinkReferredBuyer:
    def test_link(self):
        referral = _generate()
        current_domain.process(LinkReferredBuyer(buyer_id="buyer-001", code=referral.code), asynchronous=False)

        link = current_domain.repository_for(ReferralLink).get("buyer-001")
        assert link.referral_id == referral.id
        assert current_domain.repository_for(Referral).get(referral.id).referred_count == 1

    def test_own_code_is_rejected(self):
        referral = _generate()
        with pytest.raises(ValidationError):
            current_domain.process(
                LinkReferredBuyer(buyer_id="ref-owner-001", code=referral.code), asynchronous=False
            )

    def test_buyer_links_once(self):
        referral = _generate()
        other = _generate(owner_id="ref-owner-002", owner_name="Mateo")
        current_domain.process(LinkReferredBuyer(buyer_id="buyer-001", code=referral.code), asynchronous=False)
        with pytest.raises(Conflict):
            current_domain.process(LinkReferredBuyer(buyer_id="buyer-001", code=other.code), asynchronous=False)
