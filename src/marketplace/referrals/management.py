"""Referral management — code generation, click tracking and buyer linkage."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import Conflict
from marketplace.referrals.referral import Referral, ReferralLink
from marketplace.settings.setting import decimal_setting
from marketplace.utils.clock import resolve_as_of

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Referral")
class GenerateReferralCode:
    owner_id = Identifier(required=True)
    owner_name = String(max_length=255)


@marketplace.command(part_of="Referral")
class TrackReferralClick:
    code = String(required=True, max_length=20)


@marketplace.command(part_of="ReferralLink")
class LinkReferredBuyer:
    buyer_id = Identifier(required=True)
    code = String(required=True, max_length=20)
    as_of = DateTime()


def find_referral_by_code(code):
    referrals = current_domain.repository_for(Referral)._dao.query.filter(code=(code or "").strip().upper()).all().items
    if not referrals:
        raise ObjectNotFoundError({"_entity": f"Referral code {code} not found"})
    return referrals[0]


def find_referral_by_owner(owner_id):
    referrals = current_domain.repository_for(Referral)._dao.query.filter(owner_id=str(owner_id)).all().items
    return referrals[0] if referrals else None


def validate_referral_code(code):
    """Report whether ``code`` is a known referral code."""
    try:
        referral = find_referral_by_code(code)
    except ObjectNotFoundError:
        return {"valid": False}
    return {"valid": True, "code": referral.code}


@marketplace.command_handler(part_of=Referral)
class ManageReferralHandler:
    @handle(GenerateReferralCode)
    def generate_referral_code(self, command):
        existing = find_referral_by_owner(command.owner_id)
        if existing is not None:
            return str(existing.id)

        referral = Referral.generate(
            owner_id=command.owner_id,
            owner_name=command.owner_name,
            commission_rate=float(decimal_setting("referral_commission_rate")),
        )
        current_domain.repository_for(Referral).add(referral)
        logger.info("Referral code generated", owner_id=str(command.owner_id), code=referral.code)
        return str(referral.id)

    @handle(TrackReferralClick)
    def track_referral_click(self, command):
        referral = find_referral_by_code(command.code)
        referral.track_click()
        current_domain.repository_for(Referral).add(referral)
        return referral.code


@marketplace.command_handler(part_of=ReferralLink)
class LinkReferredBuyerHandler:
    @handle(LinkReferredBuyer)
    def link_referred_buyer(self, command):
        referral = find_referral_by_code(command.code)
        if str(referral.owner_id) == str(command.buyer_id):
            raise ValidationError({"code": ["You cannot use your own referral code"]})

        link_repo = current_domain.repository_for(ReferralLink)
        if link_repo._dao.query.filter(buyer_id=str(command.buyer_id)).all().items:
            raise Conflict({"buyer_id": ["Buyer is already linked to a referral"]})

        link_repo.add(ReferralLink.link(command.buyer_id, referral.id, now=resolve_as_of(command.as_of)))
        referral.record_referred_buyer()
        current_domain.repository_for(Referral).add(referral)

        logger.info("Referred buyer linked", buyer_id=str(command.buyer_id), referral_id=str(referral.id))
        return str(referral.id)
