"""Domain events for the ShoppingCart aggregate."""

from protean.fields import Identifier, Integer, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="ShoppingCart")
class CartItemAdded:
    """A listing was added to the cart, or merged into an existing line."""

    __version__ = 1

    buyer_id = Identifier(required=True)
    item_id = Identifier(required=True)
    listing_id = Identifier(required=True)
    variant_key = String()
    quantity = Integer(required=True)
    merged = String(required=True)  # "true" when an existing line absorbed the quantity


@marketplace.event(part_of="ShoppingCart")
class CartQuantityUpdated:
    """A cart line's quantity was changed."""

    __version__ = 1

    buyer_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@marketplace.event(part_of="ShoppingCart")
class CartItemRemoved:
    """A cart line was removed explicitly or by setting its quantity to zero."""

    __version__ = 1

    buyer_id = Identifier(required=True)
    item_id = Identifier(required=True)


@marketplace.event(part_of="ShoppingCart")
class CartCleared:
    """All lines were dropped, by the buyer or because checkout consumed them."""

    __version__ = 1

    buyer_id = Identifier(required=True)
    item_ids = Text(required=True)  # JSON list
    reason = String(required=True)
