"""Referral aggregates — referral codes and the buyers they brought in.

``Referral`` is the code a user shares; its commission rate is captured
from the platform settings when the code is generated. ``ReferralLink``
records which referral a buyer signed up through (one per buyer).
"""

import random
import string
from datetime import UTC, datetime

from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace
from marketplace.referrals.events import ReferralCodeGenerated, ReferredBuyerLinked

_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_code(owner_name):
    prefix = "".join(ch for ch in (owner_name or "").upper() if ch.isalnum())[:4] or "REF"
    return prefix + "".join(random.choices(_CODE_ALPHABET, k=4))


@marketplace.aggregate(limit=None)
class Referral:
    code = String(required=True, unique=True, max_length=20)
    owner_id = Identifier(required=True, unique=True)
    commission_rate = Float(required=True, min_value=0.0, max_value=100.0)
    total_clicks = Integer(default=0)
    referred_count = Integer(default=0)
    created_at = DateTime()

    @classmethod
    def generate(cls, owner_id, owner_name, commission_rate):
        now = datetime.now(UTC)
        referral = cls(
            code=generate_code(owner_name),
            owner_id=owner_id,
            commission_rate=commission_rate,
            total_clicks=0,
            referred_count=0,
            created_at=now,
        )
        referral.raise_(
            ReferralCodeGenerated(
                referral_id=str(referral.id),
                owner_id=str(owner_id),
                code=referral.code,
                commission_rate=commission_rate,
                generated_at=now,
            )
        )
        return referral

    def track_click(self):
        self.total_clicks += 1

    def record_referred_buyer(self):
        self.referred_count += 1


@marketplace.aggregate(limit=None)
class ReferralLink:
    buyer_id = Identifier(identifier=True)
    referral_id = Identifier(required=True)
    linked_at = DateTime(required=True)

    @classmethod
    def link(cls, buyer_id, referral_id, now=None):
        now = now or datetime.now(UTC)
        link = cls(buyer_id=buyer_id, referral_id=referral_id, linked_at=now)
        link.raise_(ReferredBuyerLinked(buyer_id=str(buyer_id), referral_id=str(referral_id), linked_at=now))
        return link
