"""Pricing engine — pure computation of a cart or order breakdown.

One function prices everything: the cart view, checkout and coupon
validation all call ``price_lines``, so the number a buyer sees is the
number the order stores.

Rules:
    line total        = unit_price * quantity + sum(customization prices)
                        (customizations are charged once per line, not per unit)
    discount          = coupon applied to the goods subtotal only, clamped to it
    shipping          = flat rate when there is at least one line
    tax               = (subtotal + customizations - discount + shipping) * rate / 100
    total             = subtotal + customizations - discount + shipping + tax

Components are kept at full precision; only ``total`` is rounded.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from marketplace.errors import CouponInvalid
from marketplace.shared.money import ZERO, percent_of, quantize, to_amount, to_decimal
from marketplace.utils.clock import as_utc, resolve_as_of


@dataclass(frozen=True)
class PricingLine:
    unit_price: Decimal
    quantity: int
    customization_prices: tuple = ()

    @property
    def goods(self) -> Decimal:
        return to_decimal(self.unit_price) * self.quantity

    @property
    def customizations(self) -> Decimal:
        return sum((to_decimal(p) for p in self.customization_prices), ZERO)


@dataclass(frozen=True)
class CouponTerms:
    code: str
    discount_type: str  # "percentage" | "fixed"
    discount_value: Decimal
    min_purchase: Decimal = ZERO
    max_uses: int | None = None
    used_count: int = 0
    expires_at: datetime | None = None
    is_active: bool = True


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal = ZERO
    customizations_total: Decimal = ZERO
    discount: Decimal = ZERO
    shipping_cost: Decimal = ZERO
    tax: Decimal = ZERO
    total: Decimal = ZERO
    coupon_code: str | None = None
    coupon_rejection: str | None = None
    lines: tuple = field(default=())

    @property
    def commissionable_total(self) -> Decimal:
        return self.subtotal + self.customizations_total

    def as_dict(self) -> dict:
        return {
            "subtotal": to_amount(self.subtotal),
            "customizations_total": to_amount(self.customizations_total),
            "discount": to_amount(self.discount),
            "shipping_cost": to_amount(self.shipping_cost),
            "tax": to_amount(self.tax),
            "total": to_amount(self.total),
            "coupon_code": self.coupon_code,
            "coupon_rejection": self.coupon_rejection,
        }


def evaluate_coupon(terms: CouponTerms, subtotal, now: datetime) -> Decimal:
    """Return the discount ``terms`` grant on ``subtotal``.

    Raises ``CouponInvalid`` when the coupon is inactive, expired, exhausted
    or the subtotal is below its minimum purchase. The discount never
    exceeds the subtotal.
    """
    subtotal = to_decimal(subtotal)

    if not terms.is_active:
        raise CouponInvalid({"coupon_code": ["Coupon is not active"]})
    if terms.expires_at is not None and as_utc(terms.expires_at) <= resolve_as_of(now):
        raise CouponInvalid({"coupon_code": ["Coupon has expired"]})
    if terms.max_uses is not None and terms.used_count >= terms.max_uses:
        raise CouponInvalid({"coupon_code": ["Coupon usage limit reached"]})
    if subtotal < to_decimal(terms.min_purchase):
        raise CouponInvalid(
            {"coupon_code": [f"Minimum purchase of {quantize(terms.min_purchase)} required for this coupon"]}
        )

    if terms.discount_type == "percentage":
        discount = percent_of(subtotal, terms.discount_value)
    else:
        discount = to_decimal(terms.discount_value)

    return max(ZERO, min(discount, subtotal))


def price_lines(lines, coupon: CouponTerms | None = None, shipping_rate=ZERO, tax_rate=ZERO, now=None) -> PriceBreakdown:
    """Price ``lines`` with an optional coupon.

    A rejected coupon does not fail pricing: the breakdown carries a zero
    discount and the rejection reason, so a cart view can still render.
    Callers that must refuse an invalid coupon use ``evaluate_coupon``.
    """
    lines = tuple(lines)
    subtotal = sum((line.goods for line in lines), ZERO)
    customizations_total = sum((line.customizations for line in lines), ZERO)

    discount = ZERO
    rejection = None
    if coupon is not None:
        try:
            discount = evaluate_coupon(coupon, subtotal, now)
        except CouponInvalid as exc:
            rejection = exc.messages["coupon_code"][0]

    shipping_cost = to_decimal(shipping_rate) if lines else ZERO
    taxable = subtotal + customizations_total - discount + shipping_cost
    tax = percent_of(taxable, tax_rate)
    total = quantize(taxable + tax)

    return PriceBreakdown(
        subtotal=subtotal,
        customizations_total=customizations_total,
        discount=discount,
        shipping_cost=shipping_cost,
        tax=tax,
        total=total,
        coupon_code=coupon.code if coupon is not None else None,
        coupon_rejection=rejection,
        lines=lines,
    )
