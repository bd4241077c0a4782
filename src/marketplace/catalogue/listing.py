"""Listing aggregate — the sellable catalog entry an artist publishes.

Only the fields the settlement core reads are modelled: sale price,
manufacturing cost, the artist commission rate captured at registration,
stock and the price of each optional customization (frame, engraving, ...).
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from marketplace.catalogue.events import ListingDeactivated, ListingRegistered, ListingStockChanged
from marketplace.domain import marketplace
from marketplace.errors import ListingUnavailable
from marketplace.shared.money import to_amount


@marketplace.aggregate(limit=None)
class Listing:
    artist_id = Identifier(required=True)
    title = String(required=True, max_length=255)
    sale_price = Float(required=True, min_value=0.0)
    manufacturing_cost = Float(default=0.0, min_value=0.0)
    artist_commission_rate = Float(required=True, min_value=0.0, max_value=100.0)
    stock = Integer(default=0, min_value=0)
    is_active = Boolean(default=True)
    customization_prices = Text()  # JSON: {"type": price}
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(
        cls,
        artist_id,
        title,
        sale_price,
        artist_commission_rate,
        manufacturing_cost=0.0,
        stock=0,
        customization_prices=None,
    ):
        now = datetime.now(UTC)
        prices = {str(k): to_amount(v) for k, v in (customization_prices or {}).items()}
        if any(p < 0 for p in prices.values()):
            raise ValidationError({"customization_prices": ["Customization prices cannot be negative"]})

        listing = cls(
            artist_id=artist_id,
            title=title,
            sale_price=to_amount(sale_price),
            manufacturing_cost=to_amount(manufacturing_cost),
            artist_commission_rate=artist_commission_rate,
            stock=stock,
            is_active=True,
            customization_prices=json.dumps(prices, sort_keys=True),
            created_at=now,
            updated_at=now,
        )
        listing.raise_(
            ListingRegistered(
                listing_id=str(listing.id),
                artist_id=str(artist_id),
                title=title,
                sale_price=listing.sale_price,
                artist_commission_rate=listing.artist_commission_rate,
                stock=stock,
                registered_at=now,
            )
        )
        return listing

    def customization_price_for(self, customization_type):
        prices = json.loads(self.customization_prices) if self.customization_prices else {}
        if customization_type not in prices:
            raise ValidationError(
                {"customizations": [f"Customization '{customization_type}' is not offered for {self.title}"]}
            )
        return prices[customization_type]

    def ensure_available(self, quantity=1):
        if not self.is_active:
            raise ListingUnavailable({"listing_id": [f"{self.title} is no longer available"]})
        if quantity > self.stock:
            raise ListingUnavailable({"listing_id": [f"Insufficient stock for {self.title}"]})

    def reserve_stock(self, quantity):
        self.ensure_available(quantity)
        self._change_stock(self.stock - quantity, "checkout")

    def release_stock(self, quantity, reason="cancellation"):
        self._change_stock(self.stock + quantity, reason)

    def deactivate(self):
        if not self.is_active:
            return
        now = datetime.now(UTC)
        self.is_active = False
        self.updated_at = now
        self.raise_(ListingDeactivated(listing_id=str(self.id), deactivated_at=now))

    def _change_stock(self, new_stock, reason):
        previous = self.stock
        self.stock = new_stock
        self.updated_at = datetime.now(UTC)
        self.raise_(
            ListingStockChanged(
                listing_id=str(self.id),
                previous_stock=previous,
                new_stock=new_stock,
                reason=reason,
            )
        )
