"""Coupon aggregate — promotional discount codes.

Codes are case-insensitive; the upper-cased code is the coupon's identity.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from marketplace.domain import marketplace
from marketplace.errors import CouponInvalid
from marketplace.pricing.engine import CouponTerms
from marketplace.shared.money import to_decimal


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def normalize_code(code):
    return (code or "").strip().upper()


@marketplace.aggregate(limit=None)
class Coupon:
    code = String(identifier=True, max_length=50)
    discount_type = String(choices=DiscountType, required=True)
    discount_value = Float(required=True, min_value=0.0)
    min_purchase = Float(default=0.0, min_value=0.0)
    max_uses = Integer(min_value=1)  # None means unlimited
    used_count = Integer(default=0, min_value=0)
    expires_at = DateTime()
    is_active = Boolean(default=True)
    created_at = DateTime()

    @classmethod
    def create(cls, code, discount_type, discount_value, min_purchase=0.0, max_uses=None, expires_at=None):
        if discount_type == DiscountType.PERCENTAGE.value and discount_value > 100:
            raise ValidationError({"discount_value": ["Percentage discounts cannot exceed 100"]})
        return cls(
            code=normalize_code(code),
            discount_type=discount_type,
            discount_value=discount_value,
            min_purchase=min_purchase or 0.0,
            max_uses=max_uses,
            used_count=0,
            expires_at=expires_at,
            is_active=True,
            created_at=datetime.now(UTC),
        )

    def terms(self) -> CouponTerms:
        return CouponTerms(
            code=self.code,
            discount_type=self.discount_type,
            discount_value=to_decimal(self.discount_value),
            min_purchase=to_decimal(self.min_purchase),
            max_uses=self.max_uses,
            used_count=self.used_count or 0,
            expires_at=self.expires_at,
            is_active=self.is_active,
        )

    def record_use(self):
        if self.max_uses is not None and self.used_count >= self.max_uses:
            raise CouponInvalid({"coupon_code": ["Coupon usage limit reached"]})
        self.used_count += 1

    def deactivate(self):
        self.is_active = False
