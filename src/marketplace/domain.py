"""Marketplace bounded context — carts, orders, tickets and commission settlement.

Handles the buyer's cart, the order and ticket reservation lifecycles, the
commission engine that splits each paid sale between artists, referrers and
customization fulfillers, and the return flow that reverses those splits.
"""

from protean.domain import Domain

marketplace = Domain(name="marketplace")
