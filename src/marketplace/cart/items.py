"""Cart item management — commands and handler.

Carts are created lazily: the first command for a buyer creates the cart.
"""

import json

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from marketplace.cart.cart import ShoppingCart
from marketplace.catalogue.listing import Listing
from marketplace.domain import marketplace
from marketplace.errors import Forbidden, ListingUnavailable


@marketplace.command(part_of="ShoppingCart")
class AddToCart:
    buyer_id = Identifier(required=True)
    listing_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    variant_selection = Text()  # JSON: {"attribute": "choice"}
    personalization = Text()
    customizations = Text()  # JSON list of customization types


@marketplace.command(part_of="ShoppingCart")
class UpdateCartQuantity:
    buyer_id = Identifier(required=True)
    item_id = Identifier(required=True)
    new_quantity = Integer(required=True)


@marketplace.command(part_of="ShoppingCart")
class RemoveFromCart:
    buyer_id = Identifier(required=True)
    item_id = Identifier(required=True)


def load_cart(buyer_id):
    """Return the buyer's cart, creating an empty one on first access."""
    repo = current_domain.repository_for(ShoppingCart)
    try:
        return repo.get(buyer_id)
    except ObjectNotFoundError:
        return ShoppingCart.create(buyer_id=buyer_id)


def _assert_owns_item(cart, item_id):
    if any(str(i.id) == str(item_id) for i in cart.items):
        return
    for other in current_domain.repository_for(ShoppingCart)._dao.query.all().items:
        if any(str(i.id) == str(item_id) for i in other.items):
            raise Forbidden({"item_id": ["Cart item belongs to another buyer"]})
    raise ObjectNotFoundError({"_entity": f"Cart item {item_id} not found"})


@marketplace.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        try:
            listing = current_domain.repository_for(Listing).get(command.listing_id)
        except ObjectNotFoundError as exc:
            raise ListingUnavailable({"listing_id": ["Listing not found"]}) from exc
        if not listing.is_active:
            raise ListingUnavailable({"listing_id": [f"{listing.title} is no longer available"]})

        customizations = json.loads(command.customizations) if command.customizations else []
        for customization_type in customizations:
            listing.customization_price_for(customization_type)

        cart = load_cart(command.buyer_id)
        item = cart.add_item(
            listing_id=command.listing_id,
            quantity=command.quantity,
            variant_selection=json.loads(command.variant_selection) if command.variant_selection else None,
            personalization=command.personalization,
            customizations=customizations,
        )
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(item.id)

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        cart = load_cart(command.buyer_id)
        _assert_owns_item(cart, command.item_id)
        cart.update_item_quantity(item_id=command.item_id, new_quantity=command.new_quantity)
        current_domain.repository_for(ShoppingCart).add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = load_cart(command.buyer_id)
        _assert_owns_item(cart, command.item_id)
        cart.remove_item(item_id=command.item_id)
        current_domain.repository_for(ShoppingCart).add(cart)
