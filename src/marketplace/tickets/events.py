"""Domain events for the Ticket aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Ticket")
class TicketReserved:
    __version__ = 1

    ticket_id = Identifier(required=True)
    code = String(required=True)
    show_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    price = Float(required=True)
    expires_at = DateTime(required=True)


@marketplace.event(part_of="Ticket")
class TicketPaid:
    __version__ = 1

    ticket_id = Identifier(required=True)
    code = String(required=True)
    payment_id = String(required=True)
    paid_at = DateTime(required=True)


@marketplace.event(part_of="Ticket")
class TicketRedeemed:
    """The ticket was checked in at the door."""

    __version__ = 1

    ticket_id = Identifier(required=True)
    code = String(required=True)
    used_at = DateTime(required=True)


@marketplace.event(part_of="Ticket")
class TicketCancelled:
    __version__ = 1

    ticket_id = Identifier(required=True)
    code = String(required=True)
    reason = String(required=True)
    cancelled_at = DateTime(required=True)
