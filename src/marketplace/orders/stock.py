"""Returning an order's reserved stock to its listings."""

from collections import Counter

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.catalogue.listing import Listing


def release_order_stock(order, reason):
    repo = current_domain.repository_for(Listing)
    quantities = Counter()
    for item in order.items:
        quantities[str(item.listing_id)] += item.quantity

    for listing_id, quantity in quantities.items():
        try:
            listing = repo.get(listing_id)
        except ObjectNotFoundError:
            continue
        listing.release_stock(quantity, reason=reason)
        repo.add(listing)
