"""Marketplace error kinds.

All business-rule violations are ``ValidationError`` subclasses carrying the
usual ``{field: [messages]}`` payload, so callers that only know about
Protean's ``ValidationError`` still see them as validation failures, while
the HTTP layer can map each kind to a specific status code. Missing
records use Protean's own ``ObjectNotFoundError``.
"""

from protean.exceptions import ValidationError


class MarketplaceError(ValidationError):
    """Base class for marketplace business-rule violations."""


class Forbidden(MarketplaceError):
    """The caller acted on another buyer's cart, order or request."""


class Conflict(MarketplaceError):
    """The operation collides with existing state (duplicate request, exhausted coupon)."""


class InvalidTransition(MarketplaceError):
    """Illegal order, ticket, commission or return status change."""


class OrderExpired(MarketplaceError):
    """Payment was confirmed for a reservation that had already expired."""


class ListingUnavailable(MarketplaceError):
    """The catalog listing is missing, inactive or out of stock."""


class CouponInvalid(MarketplaceError):
    """The coupon is unknown, inactive, expired, exhausted or below its minimum."""
