"""Cart management — clearing the cart."""

from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from marketplace.cart.cart import ShoppingCart
from marketplace.cart.items import load_cart
from marketplace.domain import marketplace


@marketplace.command(part_of="ShoppingCart")
class ClearCart:
    """Drop every line from a buyer's cart."""

    buyer_id = Identifier(required=True)


@marketplace.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(ClearCart)
    def clear_cart(self, command):
        cart = load_cart(command.buyer_id)
        cart.clear()
        current_domain.repository_for(ShoppingCart).add(cart)
