"""Cart view — the cart re-priced against current listing data.

Nothing here is cached: every call reads the listings and runs the pricing
engine, so a price change is visible on the next view.
"""

from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.cart.cart import ShoppingCart
from marketplace.catalogue.listing import Listing
from marketplace.errors import CouponInvalid
from marketplace.pricing.engine import PricingLine, price_lines
from marketplace.settings.setting import current_setting, decimal_setting
from marketplace.shared.money import to_amount, to_decimal


@dataclass
class ResolvedLine:
    item: object
    listing: Listing | None
    pricing_line: PricingLine | None
    customizations: list  # [{"type": ..., "price": ...}]

    @property
    def available(self):
        return self.listing is not None and self.listing.is_active


def resolve_lines(cart):
    """Pair each cart item with its listing and current prices."""
    repo = current_domain.repository_for(Listing)
    resolved = []
    for item in cart.items:
        try:
            listing = repo.get(item.listing_id)
        except ObjectNotFoundError:
            resolved.append(ResolvedLine(item=item, listing=None, pricing_line=None, customizations=[]))
            continue

        customizations = [
            {"type": c, "price": to_decimal(listing.customization_price_for(c))} for c in item.customization_types
        ]
        line = PricingLine(
            unit_price=to_decimal(listing.sale_price),
            quantity=item.quantity,
            customization_prices=tuple(c["price"] for c in customizations),
        )
        resolved.append(ResolvedLine(item=item, listing=listing, pricing_line=line, customizations=customizations))
    return resolved


def view_cart(buyer_id, coupon_code=None, as_of=None):
    """Return the buyer's cart lines and price breakdown as plain data."""
    from marketplace.coupons.validation import find_coupon

    try:
        cart = current_domain.repository_for(ShoppingCart).get(buyer_id)
        lines = resolve_lines(cart)
    except ObjectNotFoundError:
        lines = []

    coupon_terms = None
    coupon_error = None
    if coupon_code:
        try:
            coupon_terms = find_coupon(coupon_code).terms()
        except CouponInvalid as exc:
            coupon_error = exc.messages["coupon_code"][0]

    priced = [line.pricing_line for line in lines if line.available]
    breakdown = price_lines(
        priced,
        coupon=coupon_terms,
        shipping_rate=decimal_setting("shipping_flat_rate"),
        tax_rate=decimal_setting("tax_rate"),
        now=as_of,
    )

    summary = breakdown.as_dict()
    if coupon_error:
        summary["coupon_code"] = coupon_code
        summary["coupon_rejection"] = coupon_error

    return {
        "buyer_id": str(buyer_id),
        "items": [
            {
                "item_id": str(line.item.id),
                "listing_id": str(line.item.listing_id),
                "title": line.listing.title if line.listing else None,
                "quantity": line.item.quantity,
                "variant_selection": line.item.selection,
                "personalization": line.item.personalization,
                "customizations": [{"type": c["type"], "price": to_amount(c["price"])} for c in line.customizations],
                "unit_price": to_amount(line.listing.sale_price) if line.listing else None,
                "line_total": to_amount(line.pricing_line.goods + line.pricing_line.customizations)
                if line.pricing_line
                else None,
                "available": line.available,
            }
            for line in lines
        ],
        "pricing": summary,
        "currency": current_setting("currency"),
    }
