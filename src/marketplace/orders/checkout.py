"""Checkout — turning a buyer's cart into a PENDING order.

Everything the order will need later is captured here: current prices,
each listing's artist commission rate, the customization fulfiller rate,
the referral (if the purchase qualifies) and the reservation deadline.
Stock, coupon usage and the cart are updated in the same unit of work as
the order itself.
"""

import json
from collections import OrderedDict
from datetime import timedelta

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.cart.cart import ShoppingCart
from marketplace.cart.view import resolve_lines
from marketplace.catalogue.listing import Listing
from marketplace.coupons.coupon import Coupon
from marketplace.coupons.validation import validate_coupon
from marketplace.domain import marketplace
from marketplace.errors import ListingUnavailable
from marketplace.orders.order import Order
from marketplace.pricing.engine import price_lines
from marketplace.referrals.eligibility import eligible_referral
from marketplace.settings.setting import current_setting, decimal_setting, int_setting
from marketplace.shared.money import to_amount
from marketplace.utils.clock import resolve_as_of

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class PlaceOrder:
    buyer_id = Identifier(required=True)
    shipping_address = Text(required=True)  # JSON: {name, address, city, state, zip_code, phone}
    coupon_code = String(max_length=50)
    invoice_type = String(max_length=20)
    ruc = String(max_length=20)
    as_of = DateTime()  # Optional: defaults to now


@marketplace.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        now = resolve_as_of(command.as_of)

        try:
            cart = current_domain.repository_for(ShoppingCart).get(command.buyer_id)
        except ObjectNotFoundError:
            cart = None
        if cart is None or not cart.items:
            raise ValidationError({"cart": ["Cart is empty"]})

        lines = resolve_lines(cart)
        listings = OrderedDict()
        for line in lines:
            if line.listing is None:
                raise ListingUnavailable({"listing_id": [f"Listing {line.item.listing_id} no longer exists"]})
            listing, quantity = listings.get(str(line.listing.id), (line.listing, 0))
            listings[str(listing.id)] = (listing, quantity + line.item.quantity)
        for listing, quantity in listings.values():
            listing.ensure_available(quantity)

        pricing_lines = [line.pricing_line for line in lines]
        coupon = None
        if command.coupon_code:
            subtotal = sum((pl.goods for pl in pricing_lines), 0)
            coupon, _ = validate_coupon(command.coupon_code, subtotal, buyer_id=command.buyer_id, as_of=now)

        breakdown = price_lines(
            pricing_lines,
            coupon=coupon.terms() if coupon else None,
            shipping_rate=decimal_setting("shipping_flat_rate"),
            tax_rate=decimal_setting("tax_rate"),
            now=now,
        )

        fulfiller_rate = float(decimal_setting("customization_fulfiller_rate"))
        items_data = [
            {
                "listing_id": str(line.listing.id),
                "artist_id": str(line.listing.artist_id),
                "title": line.listing.title,
                "quantity": line.item.quantity,
                "unit_price": line.listing.sale_price,
                "manufacturing_cost": line.listing.manufacturing_cost or 0.0,
                "artist_commission_rate": line.listing.artist_commission_rate,
                "variant_selection": line.item.selection,
                "personalization": line.item.personalization,
                "customizations": [
                    {
                        "type": c["type"],
                        "price": to_amount(c["price"]),
                        "fulfiller_id": str(line.listing.artist_id),
                        "fulfiller_rate": fulfiller_rate,
                    }
                    for c in line.customizations
                ],
            }
            for line in lines
        ]

        pricing = breakdown.as_dict()
        referral = eligible_referral(command.buyer_id, now)
        order = Order.place(
            buyer_id=command.buyer_id,
            items_data=items_data,
            pricing={
                "subtotal": pricing["subtotal"],
                "customizations_total": pricing["customizations_total"],
                "discount": pricing["discount"],
                "shipping_cost": pricing["shipping_cost"],
                "tax": pricing["tax"],
                "total": pricing["total"],
                "currency": current_setting("currency"),
            },
            shipping_address=json.loads(command.shipping_address),
            expires_at=now + timedelta(minutes=int_setting("order_reservation_minutes")),
            coupon_code=coupon.code if coupon else None,
            referral_id=referral.referral_id if referral else None,
            referral_rate=referral.rate if referral else None,
            invoice_type=command.invoice_type,
            ruc=command.ruc,
            now=now,
        )

        listing_repo = current_domain.repository_for(Listing)
        for listing, quantity in listings.values():
            listing.reserve_stock(quantity)
            listing_repo.add(listing)

        if coupon is not None:
            coupon.record_use()
            current_domain.repository_for(Coupon).add(coupon)

        cart.clear(reason="checkout")
        current_domain.repository_for(ShoppingCart).add(cart)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            buyer_id=str(command.buyer_id),
            total=order.pricing.total,
            coupon_code=order.coupon_code,
            referral_id=order.referral_id,
            expires_at=order.expires_at.isoformat(),
        )
        return str(order.id)
