"""Domain events for the Listing aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Listing")
class ListingRegistered:
    """An artist put a new piece up for sale."""

    __version__ = 1

    listing_id = Identifier(required=True)
    artist_id = Identifier(required=True)
    title = String(required=True)
    sale_price = Float(required=True)
    artist_commission_rate = Float(required=True)
    stock = Integer(required=True)
    registered_at = DateTime(required=True)


@marketplace.event(part_of="Listing")
class ListingDeactivated:
    """A listing was withdrawn and can no longer be bought."""

    __version__ = 1

    listing_id = Identifier(required=True)
    deactivated_at = DateTime(required=True)


@marketplace.event(part_of="Listing")
class ListingStockChanged:
    """Stock moved because of a checkout, a cancellation or a restock."""

    __version__ = 1

    listing_id = Identifier(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    reason = String(required=True)
