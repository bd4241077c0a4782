"""Domain events for referrals."""

from protean.fields import DateTime, Float, Identifier, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Referral")
class ReferralCodeGenerated:
    __version__ = 1

    referral_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    code = String(required=True)
    commission_rate = Float(required=True)
    generated_at = DateTime(required=True)


@marketplace.event(part_of="ReferralLink")
class ReferredBuyerLinked:
    """A buyer signed up through someone's referral code."""

    __version__ = 1

    buyer_id = Identifier(required=True)
    referral_id = Identifier(required=True)
    linked_at = DateTime(required=True)
