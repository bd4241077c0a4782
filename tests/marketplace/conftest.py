import json
import os

import pytest


@pytest.fixture(scope="session")
def _marketplace_domain(request):
    """Initialize the marketplace domain once per session."""
    os.environ["PROTEAN_ENV"] = request.config.option.env

    from marketplace.domain import marketplace

    marketplace.init()
    return marketplace


@pytest.fixture(autouse=True)
def run_around_tests(_marketplace_domain):
    """Push domain context before each test, cleanup after."""
    ctx = _marketplace_domain.domain_context()
    ctx.push()

    yield

    from marketplace.payments.gateway import reset_gateway
    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    current_domain.event_store.store._data_reset()
    reset_gateway()
    ctx.pop()


# ---------------------------------------------------------------------------
# Command helpers shared by application, integration and BDD tests
# ---------------------------------------------------------------------------
SHIPPING = {"name": "Ana Torres", "address": "Av. Larco 123", "city": "Lima", "state": "Lima", "phone": "999000111"}


@pytest.fixture()
def register_listing():
    from marketplace.catalogue.management import RegisterListing
    from protean import current_domain

    def _register(**overrides):
        defaults = {
            "artist_id": "artist-001",
            "title": "Sunset over Paracas",
            "sale_price": 50.0,
            "manufacturing_cost": 0.0,
            "stock": 10,
        }
        prices = overrides.pop("customization_prices", None)
        defaults.update(overrides)
        if prices is not None:
            defaults["customization_prices"] = json.dumps(prices)
        return current_domain.process(RegisterListing(**defaults), asynchronous=False)

    return _register


@pytest.fixture()
def add_to_cart():
    from marketplace.cart.items import AddToCart
    from protean import current_domain

    def _add(buyer_id, listing_id, quantity=1, customizations=None, variant_selection=None, personalization=None):
        return current_domain.process(
            AddToCart(
                buyer_id=buyer_id,
                listing_id=listing_id,
                quantity=quantity,
                customizations=json.dumps(customizations or []),
                variant_selection=json.dumps(variant_selection) if variant_selection else None,
                personalization=personalization,
            ),
            asynchronous=False,
        )

    return _add


@pytest.fixture()
def place_order():
    from marketplace.orders.checkout import PlaceOrder
    from protean import current_domain

    def _place(buyer_id, coupon_code=None, as_of=None):
        return current_domain.process(
            PlaceOrder(
                buyer_id=buyer_id,
                shipping_address=json.dumps(SHIPPING),
                coupon_code=coupon_code,
                as_of=as_of,
            ),
            asynchronous=False,
        )

    return _place


@pytest.fixture()
def referred_buyer():
    """Link ``buyer_id`` to a referral owned by ``owner_id`` and return the referral id."""
    from marketplace.referrals.management import GenerateReferralCode, LinkReferredBuyer
    from marketplace.referrals.referral import Referral
    from protean import current_domain

    def _link(buyer_id, owner_id="ref-owner-001", owner_name="Lucia"):
        referral_id = current_domain.process(
            GenerateReferralCode(owner_id=owner_id, owner_name=owner_name), asynchronous=False
        )
        code = current_domain.repository_for(Referral).get(referral_id).code
        current_domain.process(LinkReferredBuyer(buyer_id=buyer_id, code=code), asynchronous=False)
        return referral_id

    return _link
