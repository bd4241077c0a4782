"""Tests for the Coupon aggregate."""

import pytest
from marketplace.coupons.coupon import Coupon, DiscountType
from marketplace.errors import CouponInvalid
from protean.exceptions import ValidationError


class TestCoupon:
    def test_code_is_upper_cased(self):
        coupon = Coupon.create(code=" summer10 ", discount_type=DiscountType.PERCENTAGE.value, discount_value=10)
        assert coupon.code == "SUMMER10"

    def test_percentage_above_hundred_rejected(self):
        with pytest.raises(ValidationError):
            Coupon.create(code="TOOMUCH", discount_type=DiscountType.PERCENTAGE.value, discount_value=120)

    def test_terms_carry_usage(self):
        coupon = Coupon.create(code="ONCE", discount_type=DiscountType.FIXED.value, discount_value=5, max_uses=1)
        coupon.record_use()
        terms = coupon.terms()
        assert terms.used_count == 1
        assert terms.max_uses == 1

    def test_record_use_beyond_limit(self):
        coupon = Coupon.create(code="ONCE", discount_type=DiscountType.FIXED.value, discount_value=5, max_uses=1)
        coupon.record_use()
        with pytest.raises(CouponInvalid):
            coupon.record_use()

    def test_deactivate(self):
        coupon = Coupon.create(code="GONE", discount_type=DiscountType.FIXED.value, discount_value=5)
        coupon.deactivate()
        assert coupon.terms().is_active is False
