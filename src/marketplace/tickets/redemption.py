"""Ticket redemption — check-in at the door.

Scanning a ticket that was already used reports it as used instead of
failing, so a second scan at the door is harmless.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition
from marketplace.tickets.ticket import Ticket, TicketStatus
from marketplace.utils.clock import resolve_as_of

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Ticket")
class RedeemTicket:
    code = String(required=True, max_length=255)
    as_of = DateTime()


def find_ticket_by_code(code):
    tickets = current_domain.repository_for(Ticket)._dao.query.filter(code=code).all().items
    if not tickets:
        raise ObjectNotFoundError({"_entity": f"Ticket {code} not found"})
    return tickets[0]


@marketplace.command_handler(part_of=Ticket)
class RedeemTicketHandler:
    @handle(RedeemTicket)
    def redeem_ticket(self, command):
        now = resolve_as_of(command.as_of)
        repo = current_domain.repository_for(Ticket)
        ticket = find_ticket_by_code(command.code)

        if ticket.expire_if_due(now):
            repo.add(ticket)
        if ticket.status == TicketStatus.USED.value:
            logger.info("Ticket already used", code=ticket.code)
            return {"result": "already_used", "code": ticket.code, "used_at": ticket.used_at.isoformat()}
        if ticket.status == TicketStatus.PENDING.value:
            raise InvalidTransition({"code": ["This ticket has not been paid"]})
        if ticket.status == TicketStatus.CANCELLED.value:
            raise InvalidTransition({"code": ["This ticket was cancelled"]})

        ticket.redeem(now=now)
        repo.add(ticket)
        logger.info("Ticket redeemed", code=ticket.code, show_id=str(ticket.show_id))
        return {"result": "redeemed", "code": ticket.code, "used_at": ticket.used_at.isoformat()}
