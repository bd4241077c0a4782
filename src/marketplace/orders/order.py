"""Order aggregate — a checked-out purchase and its lifecycle.

State machine:
    PENDING → PAID → PROCESSING → SHIPPED → DELIVERED → REFUNDED
    PENDING / PAID / PROCESSING → CANCELLED

A PENDING order is a reservation: it holds stock until ``expires_at``.
Once that instant has passed, any read or transition first cancels the
order (lazy expiry). Prices, the artist commission rate of every item and
the referral rate are captured when the order is placed and never looked
up again.
"""

import json
import random
from datetime import UTC, datetime
from enum import Enum

from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition
from marketplace.orders.events import (
    OrderCancelled,
    OrderPaid,
    OrderPlaced,
    OrderRefunded,
    OrderReservationExpired,
    OrderStatusAdvanced,
)
from marketplace.shared.money import ZERO, to_amount, to_decimal
from marketplace.utils.clock import as_utc


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class CancellationActor(Enum):
    BUYER = "Buyer"
    ADMIN = "Admin"
    SYSTEM = "System"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

# Forward steps an admin may drive
FULFILLMENT_STEPS = (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED)

# Statuses that count as a completed purchase
PAID_STATUSES = frozenset(
    {
        OrderStatus.PAID.value,
        OrderStatus.PROCESSING.value,
        OrderStatus.SHIPPED.value,
        OrderStatus.DELIVERED.value,
    }
)


def generate_order_number(now=None):
    now = now or datetime.now(UTC)
    return f"ORD-{now:%Y%m%d}-{random.randint(1000, 9999)}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships, captured at checkout."""

    name = String(required=True, max_length=255)
    address = String(required=True, max_length=500)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    zip_code = String(max_length=20)
    phone = String(max_length=30)


@marketplace.value_object(part_of="Order")
class OrderPricing:
    """Price breakdown locked at checkout."""

    subtotal = Float(default=0.0)
    customizations_total = Float(default=0.0)
    discount = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    tax = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="PEN")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order")
class OrderItem:
    """A purchased listing with the prices and rates in force at checkout."""

    listing_id = Identifier(required=True)
    artist_id = Identifier(required=True)
    title = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    manufacturing_cost = Float(default=0.0)
    artist_commission_rate = Float(required=True)
    variant_selection = Text()  # JSON
    personalization = Text()
    customizations = Text()  # JSON: [{"type", "price", "fulfiller_id", "fulfiller_rate"}]

    @property
    def customization_lines(self):
        return json.loads(self.customizations) if self.customizations else []

    @property
    def line_total(self):
        return to_decimal(self.unit_price) * self.quantity + sum(
            (to_decimal(c["price"]) for c in self.customization_lines), ZERO
        )


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate(limit=None)
class Order:
    order_number = String(required=True, max_length=30)
    buyer_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    items = HasMany(OrderItem)
    pricing = ValueObject(OrderPricing)
    shipping_address = ValueObject(ShippingAddress)
    invoice_type = String(max_length=20)
    ruc = String(max_length=20)
    coupon_code = String(max_length=50)
    referral_id = Identifier()
    referral_rate = Float()
    expires_at = DateTime(required=True)
    expired = Boolean(default=False)
    payment_id = String(max_length=255)
    payment_method = String(max_length=50)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=50)
    created_at = DateTime()
    paid_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        buyer_id,
        items_data,
        pricing,
        shipping_address,
        expires_at,
        coupon_code=None,
        referral_id=None,
        referral_rate=None,
        invoice_type=None,
        ruc=None,
        now=None,
    ):
        """Create a PENDING order.

        Args:
            buyer_id: The buyer checking out.
            items_data: List of dicts with listing_id, artist_id, title, quantity,
                        unit_price, manufacturing_cost, artist_commission_rate,
                        variant_selection, personalization, customizations.
            pricing: Dict with subtotal, customizations_total, discount,
                     shipping_cost, tax, total, currency.
            shipping_address: Dict with name, address, city, state, zip_code, phone.
            expires_at: End of the reservation window.
        """
        now = now or datetime.now(UTC)
        order = cls(
            order_number=generate_order_number(now),
            buyer_id=buyer_id,
            status=OrderStatus.PENDING.value,
            pricing=OrderPricing(**pricing),
            shipping_address=ShippingAddress(**shipping_address) if shipping_address else None,
            invoice_type=invoice_type,
            ruc=ruc,
            coupon_code=coupon_code,
            referral_id=referral_id,
            referral_rate=referral_rate,
            expires_at=expires_at,
            expired=False,
            created_at=now,
            updated_at=now,
        )
        for data in items_data:
            order.add_items(
                OrderItem(
                    listing_id=data["listing_id"],
                    artist_id=data["artist_id"],
                    title=data["title"],
                    quantity=data["quantity"],
                    unit_price=data["unit_price"],
                    manufacturing_cost=data.get("manufacturing_cost", 0.0),
                    artist_commission_rate=data["artist_commission_rate"],
                    variant_selection=json.dumps(data.get("variant_selection") or {}),
                    personalization=data.get("personalization"),
                    customizations=json.dumps(data.get("customizations") or []),
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                buyer_id=str(buyer_id),
                items=json.dumps(
                    [{k: v for k, v in d.items() if k not in ("variant_selection", "personalization")} for d in items_data]
                ),
                subtotal=order.pricing.subtotal,
                customizations_total=order.pricing.customizations_total,
                discount=order.pricing.discount,
                shipping_cost=order.pricing.shipping_cost,
                tax=order.pricing.tax,
                total=order.pricing.total,
                currency=order.pricing.currency,
                coupon_code=coupon_code,
                referral_id=referral_id,
                expires_at=expires_at,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(
                {"status": [f"Cannot transition from {current.value} to {target_status.value}"]}
            )

    @property
    def commissionable_total(self):
        return to_decimal(self.pricing.subtotal) + to_decimal(self.pricing.customizations_total)

    # -------------------------------------------------------------------
    # Reservation expiry
    # -------------------------------------------------------------------
    def is_due_for_expiry(self, now):
        return self.status == OrderStatus.PENDING.value and as_utc(now) > as_utc(self.expires_at)

    def expire_if_due(self, now):
        """Cancel a PENDING order whose reservation window has passed.

        Returns True when the order was expired by this call.
        """
        if not self.is_due_for_expiry(now):
            return False

        self._assert_can_transition(OrderStatus.CANCELLED)
        self.status = OrderStatus.CANCELLED.value
        self.expired = True
        self.cancellation_reason = "Reservation expired before payment"
        self.cancelled_by = CancellationActor.SYSTEM.value
        self.updated_at = as_utc(now)

        self.raise_(
            OrderReservationExpired(
                order_id=str(self.id),
                expires_at=self.expires_at,
                expired_at=as_utc(now),
            )
        )
        return True

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def confirm_payment(self, payment_id, payment_method=None, now=None):
        self._assert_can_transition(OrderStatus.PAID)

        now = now or datetime.now(UTC)
        self.status = OrderStatus.PAID.value
        self.payment_id = payment_id
        self.payment_method = payment_method
        self.paid_at = now
        self.updated_at = now

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                payment_id=payment_id,
                payment_method=payment_method,
                total=self.pricing.total,
                paid_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def advance_to(self, target_status):
        """Move one fulfillment step forward (PAID → PROCESSING → SHIPPED → DELIVERED)."""
        if target_status not in FULFILLMENT_STEPS:
            raise InvalidTransition(
                {"status": [f"{target_status.value} is not a fulfillment step"]}
            )
        self._assert_can_transition(target_status)

        previous = self.status
        now = datetime.now(UTC)
        self.status = target_status.value
        self.updated_at = now

        self.raise_(
            OrderStatusAdvanced(
                order_id=str(self.id),
                previous_status=previous,
                new_status=target_status.value,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Cancellation & refund
    # -------------------------------------------------------------------
    def cancel(self, reason, cancelled_by=CancellationActor.BUYER.value):
        self._assert_can_transition(OrderStatus.CANCELLED)

        previous = self.status
        now = datetime.now(UTC)
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_by = cancelled_by
        self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                previous_status=previous,
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=now,
            )
        )

    def refund(self, reason=None):
        self._assert_can_transition(OrderStatus.REFUNDED)

        now = datetime.now(UTC)
        self.status = OrderStatus.REFUNDED.value
        self.updated_at = now

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                amount=to_amount(self.pricing.total),
                reason=reason,
                refunded_at=now,
            )
        )
