"""Order reservation expiry.

Expiry is lazy: reading an order through ``load_order`` first cancels it if
its reservation lapsed. ``ExpireReservations`` does the same for every
pending order and ticket and can be run from a scheduler; both paths give
the same result for the same ``as_of``.
"""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.orders.order import Order, OrderStatus
from marketplace.orders.stock import release_order_stock
from marketplace.utils.clock import resolve_as_of
from marketplace.utils.logging import log_context

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class ExpireOrder:
    order_id = Identifier(required=True)
    as_of = DateTime()


@marketplace.command(part_of="Order")
class ExpireReservations:
    """Cancel every pending order and ticket whose reservation has lapsed."""

    as_of = DateTime()  # Optional: defaults to now


def expire_if_lapsed(repo, order, now):
    if not order.expire_if_due(now):
        return False
    release_order_stock(order, reason="expired")
    repo.add(order)
    logger.info("Cancelled expired order and restored stock", order_id=str(order.id), order_number=order.order_number)
    return True


@marketplace.command_handler(part_of=Order)
class OrderExpirationHandler:
    @handle(ExpireOrder)
    def expire_order(self, command):
        repo = current_domain.repository_for(Order)
        return expire_if_lapsed(repo, repo.get(command.order_id), resolve_as_of(command.as_of))

    @handle(ExpireReservations)
    def expire_reservations(self, command):
        now = resolve_as_of(command.as_of)
        repo = current_domain.repository_for(Order)

        with log_context(sweep="reservations", as_of=now.isoformat()):
            expired_orders = 0
            for order in repo._dao.query.filter(status=OrderStatus.PENDING.value).all().items:
                if expire_if_lapsed(repo, order, now):
                    expired_orders += 1

            from marketplace.tickets.cancellation import ExpireTickets

            expired_tickets = current_domain.process(ExpireTickets(as_of=now), asynchronous=False)

            logger.info("Reservation sweep complete", expired_orders=expired_orders, expired_tickets=expired_tickets)
        return {"orders": expired_orders, "tickets": expired_tickets}


def load_order(order_id, as_of=None):
    """Return the order after applying any due expiry."""
    current_domain.process(ExpireOrder(order_id=order_id, as_of=as_of), asynchronous=False)
    return current_domain.repository_for(Order).get(order_id)
