"""Ticket aggregate — a seat for a show, reserved at checkout and paid later.

State machine:
    PENDING (unpaid) → ACTIVE (paid) → USED
    PENDING / ACTIVE → CANCELLED

Like orders, an unpaid ticket is a reservation that lapses at
``expires_at``; lapsed tickets are cancelled on the next read or
transition.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean.fields import Boolean, DateTime, Float, Identifier, String

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition
from marketplace.tickets.events import TicketCancelled, TicketPaid, TicketRedeemed, TicketReserved
from marketplace.utils.clock import as_utc


class TicketStatus(Enum):
    PENDING = "Pending"
    ACTIVE = "Active"
    USED = "Used"
    CANCELLED = "Cancelled"


_VALID_TRANSITIONS = {
    TicketStatus.PENDING: {TicketStatus.ACTIVE, TicketStatus.CANCELLED},
    TicketStatus.ACTIVE: {TicketStatus.USED, TicketStatus.CANCELLED},
    TicketStatus.USED: set(),  # Terminal
    TicketStatus.CANCELLED: set(),  # Terminal
}

PAID_TICKET_STATUSES = frozenset({TicketStatus.ACTIVE.value, TicketStatus.USED.value})


@marketplace.aggregate(limit=None)
class Ticket:
    code = String(required=True, unique=True, max_length=255)
    show_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    artist_id = Identifier(required=True)
    price = Float(required=True, min_value=0.0)
    artist_rate = Float(required=True)
    referral_id = Identifier()
    referral_rate = Float()
    status = String(choices=TicketStatus, default=TicketStatus.PENDING.value)
    expires_at = DateTime(required=True)
    expired = Boolean(default=False)
    payment_id = String(max_length=255)
    cancellation_reason = String(max_length=255)
    created_at = DateTime()
    paid_at = DateTime()
    used_at = DateTime()

    @classmethod
    def reserve(cls, show, buyer_id, expires_at, referral_id=None, referral_rate=None, now=None):
        now = now or datetime.now(UTC)
        ticket = cls(
            code=f"TICKET-{show.id}-{uuid4()}",
            show_id=show.id,
            buyer_id=buyer_id,
            artist_id=show.artist_id,
            price=show.ticket_price or 0.0,
            artist_rate=show.artist_rate,
            referral_id=referral_id,
            referral_rate=referral_rate,
            status=TicketStatus.PENDING.value,
            expires_at=expires_at,
            expired=False,
            created_at=now,
        )
        ticket.raise_(
            TicketReserved(
                ticket_id=str(ticket.id),
                code=ticket.code,
                show_id=str(show.id),
                buyer_id=str(buyer_id),
                price=ticket.price,
                expires_at=expires_at,
            )
        )
        return ticket

    def _assert_can_transition(self, target_status):
        current = TicketStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(
                {"status": [f"Cannot transition ticket from {current.value} to {target_status.value}"]}
            )

    def is_due_for_expiry(self, now):
        return self.status == TicketStatus.PENDING.value and as_utc(now) > as_utc(self.expires_at)

    def expire_if_due(self, now):
        if not self.is_due_for_expiry(now):
            return False
        self.expired = True
        self._cancel("Reservation expired before payment", as_utc(now))
        return True

    def confirm_payment(self, payment_id, now=None):
        self._assert_can_transition(TicketStatus.ACTIVE)

        now = now or datetime.now(UTC)
        self.status = TicketStatus.ACTIVE.value
        self.payment_id = payment_id
        self.paid_at = now
        self.raise_(TicketPaid(ticket_id=str(self.id), code=self.code, payment_id=payment_id, paid_at=now))

    def redeem(self, now=None):
        self._assert_can_transition(TicketStatus.USED)

        now = now or datetime.now(UTC)
        self.status = TicketStatus.USED.value
        self.used_at = now
        self.raise_(TicketRedeemed(ticket_id=str(self.id), code=self.code, used_at=now))

    def cancel(self, reason, now=None):
        self._cancel(reason, now or datetime.now(UTC))

    def _cancel(self, reason, now):
        self._assert_can_transition(TicketStatus.CANCELLED)

        self.status = TicketStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.raise_(TicketCancelled(ticket_id=str(self.id), code=self.code, reason=reason, cancelled_at=now))
