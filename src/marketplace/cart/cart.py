"""Shopping Cart aggregate — one cart per buyer, priced live from the catalog.

The cart stores what was chosen, never what it costs: prices are looked up
from the listings every time the cart is viewed or checked out. Lines are
keyed by (listing, variant selection); adding the same pair again merges
into the existing line.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text

from marketplace.cart.events import CartCleared, CartItemAdded, CartItemRemoved, CartQuantityUpdated
from marketplace.domain import marketplace

NO_VARIANT = ""


def variant_key(selection):
    """Canonical key for a variant selection; empty and missing selections share one key."""
    if not selection:
        return NO_VARIANT
    return json.dumps({str(k): str(v) for k, v in selection.items()}, sort_keys=True, separators=(",", ":"))


@marketplace.entity(part_of="ShoppingCart")
class CartItem:
    listing_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    variant_key = String(max_length=500, default=NO_VARIANT)
    variant_selection = Text()  # JSON: {"attribute": "choice"}
    personalization = Text()
    customizations = Text()  # JSON list of customization types
    added_at = DateTime()

    @property
    def customization_types(self):
        return json.loads(self.customizations) if self.customizations else []

    @property
    def selection(self):
        return json.loads(self.variant_selection) if self.variant_selection else {}


@marketplace.aggregate(limit=None)
class ShoppingCart:
    buyer_id = Identifier(identifier=True)
    items = HasMany(CartItem)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, buyer_id):
        now = datetime.now(UTC)
        return cls(buyer_id=buyer_id, created_at=now, updated_at=now)

    def find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ObjectNotFoundError({"_entity": f"Cart item {item_id} not found"})
        return item

    def add_item(self, listing_id, quantity, variant_selection=None, personalization=None, customizations=None):
        """Add ``quantity`` of a listing, merging into an existing line with the same variant."""
        key = variant_key(variant_selection)
        now = datetime.now(UTC)
        customizations_json = json.dumps(list(dict.fromkeys(customizations or [])))

        existing = next(
            (i for i in self.items if str(i.listing_id) == str(listing_id) and (i.variant_key or NO_VARIANT) == key),
            None,
        )
        if existing:
            existing.quantity += quantity
            existing.customizations = customizations_json
            if personalization is not None:
                existing.personalization = personalization
            item = existing
        else:
            item = CartItem(
                listing_id=listing_id,
                quantity=quantity,
                variant_key=key,
                variant_selection=json.dumps(variant_selection or {}, sort_keys=True),
                personalization=personalization,
                customizations=customizations_json,
                added_at=now,
            )
            self.add_items(item)

        self.updated_at = now
        self.raise_(
            CartItemAdded(
                buyer_id=str(self.buyer_id),
                item_id=str(item.id),
                listing_id=str(listing_id),
                variant_key=key,
                quantity=item.quantity,
                merged="true" if existing else "false",
            )
        )
        return item

    def update_item_quantity(self, item_id, new_quantity):
        """Set a line's quantity; zero or less removes the line."""
        item = self.find_item(item_id)
        if new_quantity <= 0:
            self.remove_item(item_id)
            return

        previous = item.quantity
        item.quantity = new_quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CartQuantityUpdated(
                buyer_id=str(self.buyer_id),
                item_id=str(item_id),
                previous_quantity=previous,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, item_id):
        item = self.find_item(item_id)
        self.remove_items(item)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartItemRemoved(buyer_id=str(self.buyer_id), item_id=str(item_id)))

    def clear(self, reason="cleared"):
        item_ids = [str(i.id) for i in self.items]
        for item in list(self.items):
            self.remove_items(item)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartCleared(buyer_id=str(self.buyer_id), item_ids=json.dumps(item_ids), reason=reason))
