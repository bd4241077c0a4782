"""Tests for the Show and Ticket aggregates."""

from datetime import UTC, datetime, timedelta

import pytest
from marketplace.errors import InvalidTransition
from marketplace.shows.show import Show, ShowStatus
from marketplace.tickets.events import TicketCancelled
from marketplace.tickets.ticket import Ticket, TicketStatus
from protean.exceptions import ValidationError

NOW = datetime(2026, 3, 1, 20, 0, tzinfo=UTC)


def _make_show(**overrides):
    defaults = {
        "artist_id": "artist-001",
        "name": "Noche criolla",
        "starts_at": NOW + timedelta(days=7),
        "ticket_price": 80.0,
        "total_capacity": 50,
        "platform_fee": 15.0,
    }
    defaults.update(overrides)
    return Show.schedule(**defaults)


def _make_ticket(show=None):
    return Ticket.reserve(show or _make_show(), buyer_id="buyer-001", expires_at=NOW + timedelta(minutes=15), now=NOW)


class TestShow:
    def test_artist_rate_is_complement_of_fee(self):
        assert _make_show().artist_rate == 85.0

    def test_enable_tickets_requires_price(self):
        show = _make_show(ticket_price=0.0)
        with pytest.raises(ValidationError):
            show.enable_tickets()

    def test_cancelled_show_cannot_sell(self):
        show = _make_show()
        show.cancel()
        assert show.status == ShowStatus.CANCELLED.value
        with pytest.raises(InvalidTransition):
            show.enable_tickets()


class TestTicket:
    def test_reserve_captures_show_terms(self):
        ticket = _make_ticket()
        assert ticket.status == TicketStatus.PENDING.value
        assert ticket.price == 80.0
        assert ticket.artist_rate == 85.0
        assert ticket.code.startswith(f"TICKET-{ticket.show_id}-")

    def test_pay_then_redeem(self):
        ticket = _make_ticket()
        ticket.confirm_payment("pay-001", now=NOW)
        ticket.redeem(now=NOW + timedelta(days=7))
        assert ticket.status == TicketStatus.USED.value
        assert ticket.used_at is not None

    def test_unpaid_ticket_cannot_be_redeemed(self):
        ticket = _make_ticket()
        with pytest.raises(InvalidTransition):
            ticket.redeem()

    def test_expiry_cancels_unpaid_ticket(self):
        ticket = _make_ticket()
        assert ticket.expire_if_due(NOW + timedelta(minutes=16)) is True
        assert ticket.status == TicketStatus.CANCELLED.value
        assert ticket.expired is True
        assert isinstance(ticket._events[-1], TicketCancelled)

    def test_used_ticket_cannot_be_cancelled(self):
        ticket = _make_ticket()
        ticket.confirm_payment("pay-001")
        ticket.redeem()
        with pytest.raises(InvalidTransition):
            ticket.cancel(reason="Refund")
