"""Starting a hosted checkout for an order or a ticket."""

from marketplace.payments.gateway import get_gateway
from marketplace.payments.gateway.port import CheckoutSession

TICKET_REFERENCE_PREFIX = "ticket:"


def start_order_checkout(order) -> CheckoutSession:
    return get_gateway().create_checkout(
        reference=str(order.id),
        amount=order.pricing.total,
        currency=order.pricing.currency,
        description=f"Order {order.order_number}",
    )


def start_ticket_checkout(ticket, currency) -> CheckoutSession:
    return get_gateway().create_checkout(
        reference=f"{TICKET_REFERENCE_PREFIX}{ticket.id}",
        amount=ticket.price,
        currency=currency,
        description=f"Ticket {ticket.code}",
    )
