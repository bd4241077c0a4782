"""Domain events for the Order aggregate.

Orders are stored as plain (CQRS) aggregates; events record the lifecycle
for downstream consumers such as notifications and receipts.
"""

from protean.fields import DateTime, Float, Identifier, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """Checkout created a pending order and reserved its stock."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    subtotal = Float(required=True)
    customizations_total = Float()
    discount = Float()
    shipping_cost = Float()
    tax = Float()
    total = Float(required=True)
    currency = String(required=True)
    coupon_code = String()
    referral_id = Identifier()
    expires_at = DateTime(required=True)
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderPaid:
    """The payment provider confirmed payment; commissions were recorded."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String(required=True)
    payment_method = String()
    total = Float(required=True)
    paid_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderStatusAdvanced:
    """Fulfillment moved the order one step forward."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled by the buyer, an admin, or a failed payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String(required=True)
    cancelled_by = String(required=True)
    cancelled_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderReservationExpired:
    """A pending order passed its expiry without payment and was cancelled."""

    __version__ = 1

    order_id = Identifier(required=True)
    expires_at = DateTime(required=True)
    expired_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderRefunded:
    """An approved return refunded a delivered order."""

    __version__ = 1

    order_id = Identifier(required=True)
    amount = Float(required=True)
    reason = String()
    refunded_at = DateTime(required=True)
