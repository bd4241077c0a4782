"""Application tests for fulfillment, cancellation and reservation expiry."""

from datetime import UTC, datetime, timedelta

import pytest
from marketplace.catalogue.listing import Listing
from marketplace.commissions.commission import CommissionStatus
from marketplace.commissions.engine import commissions_for
from marketplace.errors import Forbidden, InvalidTransition, OrderExpired
from marketplace.orders.cancellation import CancelOrder
from marketplace.orders.expiration import ExpireReservations, load_order
from marketplace.orders.fulfillment import AdvanceOrderStatus
from marketplace.orders.order import Order, OrderStatus
from marketplace.orders.payment import confirm_order_payment
from protean import current_domain
from protean.exceptions import ValidationError


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


def _advance(order_id, status):
    return current_domain.process(AdvanceOrderStatus(order_id=order_id, status=status), asynchronous=False)


@pytest.fixture()
def listing_id(register_listing):
    return register_listing(stock=5)


@pytest.fixture()
def pending_order(listing_id, add_to_cart, place_order):
    add_to_cart("buyer-001", listing_id, 2)
    return place_order("buyer-001")


@pytest.fixture()
def paid_order(pending_order):
    confirm_order_payment(pending_order, "pay-001")
    return pending_order


class TestFulfillment:
    def test_advance_through_fulfillment(self, paid_order):
        assert _advance(paid_order, "Processing") == "Processing"
        assert _advance(paid_order, "Shipped") == "Shipped"
        assert _advance(paid_order, "Delivered") == "Delivered"

    def test_skipping_a_step_is_rejected(self, paid_order):
        with pytest.raises(InvalidTransition):
            _advance(paid_order, "Delivered")
        assert _order(paid_order).status == OrderStatus.PAID.value

    def test_unpaid_order_cannot_be_processed(self, pending_order):
        with pytest.raises(InvalidTransition):
            _advance(pending_order, "Processing")

    def test_unknown_status(self, paid_order):
        with pytest.raises(ValidationError):
            _advance(paid_order, "Teleported")


class TestCancellation:
    def test_buyer_cancels_pending_order(self, pending_order, listing_id):
        current_domain.process(
            CancelOrder(order_id=pending_order, reason="Changed my mind", requested_by="buyer-001"),
            asynchronous=False,
        )
        order = _order(pending_order)
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancelled_by == "Buyer"
        assert current_domain.repository_for(Listing).get(listing_id).stock == 5

    def test_other_buyer_cannot_cancel(self, pending_order):
        with pytest.raises(Forbidden):
            current_domain.process(
                CancelOrder(order_id=pending_order, reason="Not mine", requested_by="buyer-002"),
                asynchronous=False,
            )

    def test_buyer_cannot_cancel_paid_order(self, paid_order):
        with pytest.raises(InvalidTransition):
            current_domain.process(
                CancelOrder(order_id=paid_order, reason="Too late", requested_by="buyer-001"),
                asynchronous=False,
            )

    def test_admin_cancel_reverses_pending_commissions(self, paid_order):
        current_domain.process(
            CancelOrder(order_id=paid_order, reason="Out of materials", requested_by="admin-001", is_admin=True),
            asynchronous=False,
        )
        assert _order(paid_order).cancelled_by == "Admin"
        assert {c.status for c in commissions_for("order", paid_order)} == {CommissionStatus.CANCELLED.value}

    def test_cancelling_a_lapsed_order_records_the_expiry(self, listing_id, add_to_cart, place_order):
        placed_at = datetime.now(UTC) - timedelta(hours=3)
        add_to_cart("buyer-001", listing_id, 2)
        order_id = place_order("buyer-001", as_of=placed_at)

        status = current_domain.process(
            CancelOrder(order_id=order_id, reason="Changed my mind", requested_by="buyer-001"),
            asynchronous=False,
        )
        assert status == OrderStatus.CANCELLED.value

        order = _order(order_id)
        assert order.expired is True
        assert order.cancelled_by == "System"
        assert current_domain.repository_for(Listing).get(listing_id).stock == 5

        with pytest.raises(OrderExpired):
            confirm_order_payment(order_id, "pay-late")

    def test_other_buyer_cannot_cancel_a_lapsed_order(self, listing_id, add_to_cart, place_order):
        add_to_cart("buyer-001", listing_id)
        order_id = place_order("buyer-001", as_of=datetime.now(UTC) - timedelta(hours=3))

        with pytest.raises(Forbidden):
            current_domain.process(
                CancelOrder(order_id=order_id, reason="Not mine", requested_by="buyer-002"),
                asynchronous=False,
            )
        assert _order(order_id).status == OrderStatus.PENDING.value


class TestReservationExpiry:
    def test_load_order_applies_due_expiry(self, listing_id, add_to_cart, place_order):
        placed_at = datetime.now(UTC)
        add_to_cart("buyer-001", listing_id, 2)
        order_id = place_order("buyer-001", as_of=placed_at)

        assert load_order(order_id, as_of=placed_at + timedelta(minutes=30)).status == OrderStatus.PENDING.value
        order = load_order(order_id, as_of=placed_at + timedelta(minutes=61))
        assert order.status == OrderStatus.CANCELLED.value
        assert current_domain.repository_for(Listing).get(listing_id).stock == 5

    def test_sweep_expires_only_lapsed_orders(self, register_listing, add_to_cart, place_order):
        placed_at = datetime.now(UTC)
        listing_id = register_listing()
        add_to_cart("buyer-001", listing_id)
        early = place_order("buyer-001", as_of=placed_at)
        add_to_cart("buyer-002", listing_id)
        late = place_order("buyer-002", as_of=placed_at + timedelta(minutes=45))

        result = current_domain.process(
            ExpireReservations(as_of=placed_at + timedelta(minutes=70)), asynchronous=False
        )
        assert result == {"orders": 1, "tickets": 0}
        assert _order(early).status == OrderStatus.CANCELLED.value
        assert _order(late).status == OrderStatus.PENDING.value

    def test_sweep_and_lazy_read_agree(self, listing_id, add_to_cart, place_order):
        placed_at = datetime.now(UTC)
        add_to_cart("buyer-001", listing_id)
        order_id = place_order("buyer-001", as_of=placed_at)
        as_of = placed_at + timedelta(minutes=61)

        current_domain.process(ExpireReservations(as_of=as_of), asynchronous=False)
        assert load_order(order_id, as_of=as_of).status == OrderStatus.CANCELLED.value
        assert current_domain.repository_for(Listing).get(listing_id).stock == 5
