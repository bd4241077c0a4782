"""Show aggregate — a live performance an artist sells tickets for."""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition
from marketplace.shared.money import HUNDRED, to_decimal


class ShowStatus(Enum):
    SCHEDULED = "Scheduled"
    CANCELLED = "Cancelled"


@marketplace.aggregate(limit=None)
class Show:
    artist_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    venue = String(max_length=255)
    starts_at = DateTime(required=True)
    ticket_price = Float(default=0.0, min_value=0.0)
    total_capacity = Integer(min_value=1)  # None means unlimited
    platform_fee = Float(default=10.0, min_value=0.0, max_value=100.0)
    tickets_enabled = Boolean(default=False)
    status = String(choices=ShowStatus, default=ShowStatus.SCHEDULED.value)
    created_at = DateTime()

    @classmethod
    def schedule(cls, artist_id, name, starts_at, venue=None, ticket_price=0.0, total_capacity=None, platform_fee=10.0):
        return cls(
            artist_id=artist_id,
            name=name,
            venue=venue,
            starts_at=starts_at,
            ticket_price=ticket_price,
            total_capacity=total_capacity,
            platform_fee=platform_fee,
            tickets_enabled=False,
            status=ShowStatus.SCHEDULED.value,
            created_at=datetime.now(UTC),
        )

    @property
    def artist_rate(self):
        """Share of each ticket the artist keeps, as a percentage."""
        return float(HUNDRED - to_decimal(self.platform_fee))

    def enable_tickets(self):
        if self.status != ShowStatus.SCHEDULED.value:
            raise InvalidTransition({"status": ["Tickets can only be sold for scheduled shows"]})
        if not self.ticket_price:
            raise ValidationError({"ticket_price": ["Set a ticket price before enabling sales"]})
        self.tickets_enabled = True

    def disable_tickets(self):
        self.tickets_enabled = False

    def cancel(self):
        if self.status == ShowStatus.CANCELLED.value:
            raise InvalidTransition({"status": ["Show is already cancelled"]})
        self.status = ShowStatus.CANCELLED.value
        self.tickets_enabled = False
