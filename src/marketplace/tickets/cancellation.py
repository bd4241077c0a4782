"""Ticket cancellation and reservation expiry — commands and handler."""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from marketplace.commissions.commission import SourceType
from marketplace.commissions.reversal import reverse_commissions
from marketplace.domain import marketplace
from marketplace.errors import Forbidden
from marketplace.tickets.ticket import Ticket, TicketStatus
from marketplace.utils.clock import resolve_as_of

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Ticket")
class CancelTicket:
    ticket_id = Identifier(required=True)
    reason = String(required=True, max_length=255)
    requested_by = Identifier()  # None when an admin cancels


@marketplace.command(part_of="Ticket")
class ExpireTickets:
    """Cancel every unpaid ticket whose reservation has lapsed."""

    as_of = DateTime()  # Optional: defaults to now


@marketplace.command_handler(part_of=Ticket)
class TicketCancellationHandler:
    @handle(CancelTicket)
    def cancel_ticket(self, command):
        repo = current_domain.repository_for(Ticket)
        ticket = repo.get(command.ticket_id)
        if command.requested_by and str(command.requested_by) != str(ticket.buyer_id):
            raise Forbidden({"ticket_id": ["Ticket belongs to another buyer"]})

        was_paid = ticket.status == TicketStatus.ACTIVE.value
        ticket.cancel(reason=command.reason)
        repo.add(ticket)
        if was_paid:
            reverse_commissions(SourceType.TICKET.value, ticket.id, reason=command.reason)

        logger.info("Ticket cancelled", ticket_id=str(ticket.id), reason=command.reason)

    @handle(ExpireTickets)
    def expire_tickets(self, command):
        now = resolve_as_of(command.as_of)
        repo = current_domain.repository_for(Ticket)

        expired = 0
        for ticket in repo._dao.query.filter(status=TicketStatus.PENDING.value).all().items:
            if ticket.expire_if_due(now):
                repo.add(ticket)
                expired += 1

        if expired:
            logger.info("Cancelled expired ticket reservations", count=expired, as_of=now.isoformat())
        return expired
