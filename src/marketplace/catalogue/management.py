"""Listing management — commands and handler."""

import json

from protean import handle
from protean.fields import Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from marketplace.catalogue.listing import Listing
from marketplace.domain import marketplace
from marketplace.settings.setting import decimal_setting


@marketplace.command(part_of="Listing")
class RegisterListing:
    artist_id: Identifier(required=True)
    title: String(required=True, max_length=255)
    sale_price: Float(required=True, min_value=0.0)
    manufacturing_cost: Float(default=0.0, min_value=0.0)
    artist_commission_rate: Float(min_value=0.0, max_value=100.0)
    stock: Integer(default=0, min_value=0)
    customization_prices: Text()  # JSON: {"type": price}


@marketplace.command(part_of="Listing")
class DeactivateListing:
    listing_id: Identifier(required=True)


@marketplace.command(part_of="Listing")
class RestockListing:
    listing_id: Identifier(required=True)
    quantity: Integer(required=True, min_value=1)


@marketplace.command_handler(part_of=Listing)
class ManageListingHandler:
    @handle(RegisterListing)
    def register_listing(self, command):
        rate = command.artist_commission_rate
        if rate is None:
            rate = float(decimal_setting("artist_commission_rate"))

        listing = Listing.register(
            artist_id=command.artist_id,
            title=command.title,
            sale_price=command.sale_price,
            manufacturing_cost=command.manufacturing_cost or 0.0,
            artist_commission_rate=rate,
            stock=command.stock or 0,
            customization_prices=json.loads(command.customization_prices) if command.customization_prices else None,
        )
        current_domain.repository_for(Listing).add(listing)
        return str(listing.id)

    @handle(DeactivateListing)
    def deactivate_listing(self, command):
        repo = current_domain.repository_for(Listing)
        listing = repo.get(command.listing_id)
        listing.deactivate()
        repo.add(listing)

    @handle(RestockListing)
    def restock_listing(self, command):
        repo = current_domain.repository_for(Listing)
        listing = repo.get(command.listing_id)
        listing.release_stock(command.quantity, reason="restock")
        repo.add(listing)
