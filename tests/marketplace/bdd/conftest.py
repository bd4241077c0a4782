"""Shared BDD fixtures and step definitions for the marketplace."""

from datetime import UTC, datetime, timedelta

import pytest
from marketplace import errors
from marketplace.catalogue.listing import Listing
from marketplace.commissions.engine import commissions_for
from marketplace.orders.fulfillment import AdvanceOrderStatus
from marketplace.orders.order import Order
from marketplace.orders.payment import confirm_order_payment
from marketplace.shows.management import ScheduleShow
from marketplace.tickets.payment import confirm_ticket_payment
from marketplace.tickets.reservation import ReserveTicket
from marketplace.tickets.ticket import Ticket
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for captured business-rule errors."""
    return {"exc": None}


@pytest.fixture()
def checkout():
    """Order placed in the scenario and when it was placed."""
    return {"order_id": None, "placed_at": None}


# ---------------------------------------------------------------------------
# Given steps — Orders
# ---------------------------------------------------------------------------
@given(
    parsers.parse('a listing "{title}" by "{artist_id}" priced at {price:g} with {stock:d} in stock'),
    target_fixture="listing_id",
)
def listing(register_listing, title, artist_id, price, stock):
    return register_listing(title=title, artist_id=artist_id, sale_price=price, stock=stock)


@given(parsers.parse('buyer "{buyer_id}" has {quantity:d} of it in the cart'))
def cart_with_listing(add_to_cart, listing_id, buyer_id, quantity):
    add_to_cart(buyer_id, listing_id, quantity)


@given(parsers.parse('buyer "{buyer_id}" was referred'))
def referred(referred_buyer, buyer_id):
    referred_buyer(buyer_id)


@given(parsers.parse('buyer "{buyer_id}" checked out'))
def checked_out(place_order, checkout, buyer_id):
    checkout["placed_at"] = datetime.now(UTC)
    checkout["order_id"] = place_order(buyer_id, as_of=checkout["placed_at"])


@given("the payment was confirmed")
def payment_was_confirmed(checkout):
    confirm_order_payment(checkout["order_id"], "pay-bdd-001")


@given("the order was delivered")
def order_was_delivered(checkout):
    for status in ("Processing", "Shipped", "Delivered"):
        current_domain.process(AdvanceOrderStatus(order_id=checkout["order_id"], status=status), asynchronous=False)


# ---------------------------------------------------------------------------
# Given steps — Tickets
# ---------------------------------------------------------------------------
@given(
    parsers.parse('a show by "{artist_id}" with tickets at {price:g} and {seats:d} seats'),
    target_fixture="show_id",
)
def show(artist_id, price, seats):
    return current_domain.process(
        ScheduleShow(
            artist_id=artist_id,
            name="Noche criolla",
            starts_at=datetime.now(UTC) + timedelta(days=7),
            ticket_price=price,
            total_capacity=seats,
            tickets_enabled=True,
        ),
        asynchronous=False,
    )


@given(parsers.parse('buyer "{buyer_id}" reserved a ticket'), target_fixture="ticket_id")
def reserved_ticket(show_id, buyer_id):
    return current_domain.process(ReserveTicket(show_id=show_id, buyer_id=buyer_id), asynchronous=False)


@given(parsers.parse('buyer "{buyer_id}" holds a paid ticket'), target_fixture="ticket_id")
def paid_ticket(show_id, buyer_id):
    ticket_id = current_domain.process(ReserveTicket(show_id=show_id, buyer_id=buyer_id), asynchronous=False)
    confirm_ticket_payment(ticket_id, "pay-bdd-ticket")
    return ticket_id


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.parse('the order status is "{status}"'))
def order_status(checkout, status):
    assert current_domain.repository_for(Order).get(checkout["order_id"]).status == status


@then(parsers.parse("the order total is {total:g}"))
def order_total(checkout, total):
    assert current_domain.repository_for(Order).get(checkout["order_id"]).pricing.total == total


@then(parsers.parse("the listing has {stock:d} in stock"))
def listing_stock(listing_id, stock):
    assert current_domain.repository_for(Listing).get(listing_id).stock == stock


@then(parsers.parse('the "{beneficiary_type}" commission is {amount:g} and "{status}"'))
def commission_state(checkout, beneficiary_type, amount, status):
    commissions = {c.beneficiary_type: c for c in commissions_for("order", checkout["order_id"])}
    assert commissions[beneficiary_type].amount == amount
    assert commissions[beneficiary_type].status == status


@then("no commissions were recorded")
def no_commissions(checkout):
    assert commissions_for("order", checkout["order_id"]) == []


@then(parsers.parse('the ticket status is "{status}"'))
def ticket_status(ticket_id, status):
    assert current_domain.repository_for(Ticket).get(ticket_id).status == status


@then(parsers.parse('the action fails with "{kind}"'))
def action_fails(error, kind):
    assert error["exc"] is not None
    assert isinstance(error["exc"], getattr(errors, kind))
    assert isinstance(error["exc"], ValidationError)
