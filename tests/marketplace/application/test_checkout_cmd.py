"""Application tests for checkout — turning a cart into a PENDING order."""

from datetime import UTC, datetime, timedelta

import pytest
from marketplace.cart.cart import ShoppingCart
from marketplace.catalogue.listing import Listing
from marketplace.catalogue.management import DeactivateListing
from marketplace.coupons.coupon import Coupon
from marketplace.coupons.management import CreateCoupon
from marketplace.errors import CouponInvalid, ListingUnavailable
from marketplace.orders.order import Order, OrderStatus
from marketplace.settings.management import UpdatePlatformSetting
from protean import current_domain
from protean.exceptions import ValidationError


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


def _create_coupon(**overrides):
    defaults = {"code": "WELCOME10", "discount_type": "percentage", "discount_value": 10.0}
    defaults.update(overrides)
    return current_domain.process(CreateCoupon(**defaults), asynchronous=False)


class TestPlaceOrder:
    def test_order_is_pending_with_priced_breakdown(self, register_listing, add_to_cart, place_order):
        add_to_cart("buyer-001", register_listing(), 2)
        order = _order(place_order("buyer-001"))

        assert order.status == OrderStatus.PENDING.value
        assert order.pricing.subtotal == 100.0
        assert order.pricing.shipping_cost == 15.0
        assert order.pricing.tax == 20.7
        assert order.pricing.total == 135.7
        assert order.pricing.currency == "PEN"
        assert order.shipping_address.city == "Lima"

    def test_reservation_deadline(self, register_listing, add_to_cart, place_order):
        add_to_cart("buyer-001", register_listing())
        placed_at = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        order = _order(place_order("buyer-001", as_of=placed_at))
        assert order.expires_at.replace(tzinfo=UTC) == placed_at + timedelta(minutes=60)

    def test_stock_is_reserved_and_cart_cleared(self, register_listing, add_to_cart, place_order):
        listing_id = register_listing(stock=5)
        add_to_cart("buyer-001", listing_id, 2)
        place_order("buyer-001")

        assert current_domain.repository_for(Listing).get(listing_id).stock == 3
        assert len(current_domain.repository_for(ShoppingCart).get("buyer-001").items) == 0

    def test_prices_and_rates_are_captured(self, register_listing, add_to_cart, place_order):
        listing_id = register_listing(artist_commission_rate=25.0, customization_prices={"frame": 20.0})
        add_to_cart("buyer-001", listing_id, customizations=["frame"])
        order = _order(place_order("buyer-001"))

        item = order.items[0]
        assert item.unit_price == 50.0
        assert item.artist_commission_rate == 25.0
        assert item.customization_lines == [
            {"type": "frame", "price": 20.0, "fulfiller_id": "artist-001", "fulfiller_rate": 100.0}
        ]

    def test_empty_cart_is_rejected(self, place_order):
        with pytest.raises(ValidationError) as exc:
            place_order("buyer-001")
        assert exc.value.messages["cart"] == ["Cart is empty"]

    def test_inactive_listing_blocks_checkout(self, register_listing, add_to_cart, place_order):
        listing_id = register_listing()
        add_to_cart("buyer-001", listing_id)
        current_domain.process(DeactivateListing(listing_id=listing_id), asynchronous=False)
        with pytest.raises(ListingUnavailable):
            place_order("buyer-001")

    def test_stock_is_checked_across_variants(self, register_listing, add_to_cart, place_order):
        listing_id = register_listing(stock=5)
        add_to_cart("buyer-001", listing_id, 3, variant_selection={"size": "M"})
        add_to_cart("buyer-001", listing_id, 3, variant_selection={"size": "L"})
        with pytest.raises(ListingUnavailable):
            place_order("buyer-001")
        assert current_domain.repository_for(Listing).get(listing_id).stock == 5

    def test_new_settings_apply_to_new_orders(self, register_listing, add_to_cart, place_order):
        current_domain.process(UpdatePlatformSetting(key="shipping_flat_rate", value="0"), asynchronous=False)
        current_domain.process(UpdatePlatformSetting(key="tax_rate", value="0"), asynchronous=False)
        add_to_cart("buyer-001", register_listing(), 2)
        order = _order(place_order("buyer-001"))
        assert order.pricing.total == 100.0


class TestCheckoutCoupons:
    def test_coupon_discount_and_usage(self, register_listing, add_to_cart, place_order):
        _create_coupon()
        add_to_cart("buyer-001", register_listing(), 2)
        order = _order(place_order("buyer-001", coupon_code="welcome10"))

        assert order.coupon_code == "WELCOME10"
        assert order.pricing.discount == 10.0
        assert order.pricing.tax == 18.9
        assert order.pricing.total == 123.9
        assert current_domain.repository_for(Coupon).get("WELCOME10").used_count == 1

    def test_invalid_coupon_fails_checkout(self, register_listing, add_to_cart, place_order):
        _create_coupon(code="BIG", discount_type="fixed", discount_value=50.0, min_purchase=200.0)
        listing_id = register_listing()
        add_to_cart("buyer-001", listing_id)
        with pytest.raises(CouponInvalid):
            place_order("buyer-001", coupon_code="BIG")
        assert current_domain.repository_for(Listing).get(listing_id).stock == 10

    def test_coupon_cannot_be_reused_by_same_buyer(self, register_listing, add_to_cart, place_order):
        _create_coupon()
        listing_id = register_listing()
        add_to_cart("buyer-001", listing_id)
        place_order("buyer-001", coupon_code="WELCOME10")

        add_to_cart("buyer-001", listing_id)
        with pytest.raises(CouponInvalid) as exc:
            place_order("buyer-001", coupon_code="WELCOME10")
        assert exc.value.messages["coupon_code"] == ["You have already used this coupon"]


class TestCheckoutReferral:
    def test_first_purchase_captures_referral(self, register_listing, add_to_cart, place_order, referred_buyer):
        referral_id = referred_buyer("buyer-001")
        add_to_cart("buyer-001", register_listing())
        order = _order(place_order("buyer-001"))
        assert order.referral_id == referral_id
        assert order.referral_rate == 5.0

    def test_unreferred_buyer_has_no_referral(self, register_listing, add_to_cart, place_order):
        add_to_cart("buyer-001", register_listing())
        order = _order(place_order("buyer-001"))
        assert order.referral_id is None
