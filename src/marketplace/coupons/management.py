"""Coupon management — commands and handler."""

import structlog
from protean import handle
from protean.fields import DateTime, Float, Integer, String
from protean.utils.globals import current_domain

from marketplace.coupons.coupon import Coupon, DiscountType, normalize_code
from marketplace.domain import marketplace
from marketplace.errors import Conflict

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=50)
    discount_type = String(choices=DiscountType, required=True)
    discount_value = Float(required=True, min_value=0.0)
    min_purchase = Float(default=0.0, min_value=0.0)
    max_uses = Integer(min_value=1)
    expires_at = DateTime()


@marketplace.command(part_of="Coupon")
class DeactivateCoupon:
    code = String(required=True, max_length=50)


@marketplace.command_handler(part_of=Coupon)
class ManageCouponHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        code = normalize_code(command.code)
        if repo._dao.query.filter(code=code).all().items:
            raise Conflict({"code": [f"Coupon {code} already exists"]})

        coupon = Coupon.create(
            code=code,
            discount_type=command.discount_type,
            discount_value=command.discount_value,
            min_purchase=command.min_purchase,
            max_uses=command.max_uses,
            expires_at=command.expires_at,
        )
        repo.add(coupon)
        logger.info("Coupon created", code=code, discount_type=command.discount_type)
        return coupon.code

    @handle(DeactivateCoupon)
    def deactivate_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.get(normalize_code(command.code))
        coupon.deactivate()
        repo.add(coupon)
