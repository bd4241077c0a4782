"""Coupon lookup and validation shared by the cart view, checkout and the API."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.coupons.coupon import Coupon, normalize_code
from marketplace.errors import CouponInvalid
from marketplace.pricing.engine import evaluate_coupon
from marketplace.utils.clock import resolve_as_of


def find_coupon(code):
    """Return the coupon for ``code`` or raise ``CouponInvalid``."""
    try:
        return current_domain.repository_for(Coupon).get(normalize_code(code))
    except ObjectNotFoundError as exc:
        raise CouponInvalid({"coupon_code": ["Invalid coupon code"]}) from exc


def ensure_not_reused(coupon_code, buyer_id):
    """A buyer may use a coupon once, on any order that was not cancelled or refunded."""
    from marketplace.orders.order import Order, OrderStatus

    orders = (
        current_domain.repository_for(Order)._dao.query.filter(buyer_id=buyer_id, coupon_code=coupon_code).all().items
    )
    spent = [o for o in orders if o.status not in (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value)]
    if spent:
        raise CouponInvalid({"coupon_code": ["You have already used this coupon"]})


def validate_coupon(code, subtotal, buyer_id=None, as_of=None):
    """Validate ``code`` for a purchase of ``subtotal`` and return ``(coupon, discount)``."""
    coupon = find_coupon(code)
    if buyer_id:
        ensure_not_reused(coupon.code, buyer_id)
    discount = evaluate_coupon(coupon.terms(), subtotal, resolve_as_of(as_of))
    return coupon, discount
