"""Ticket payment — settling a ticket and recording its commissions.

Same rules as order settlement: a ticket is paid at most once, and a
payment that arrives after the reservation lapsed is rejected.
"""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from marketplace.commissions.engine import record_commissions, ticket_commission_drafts
from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition, OrderExpired
from marketplace.shared.settlement import SettlementOutcome
from marketplace.tickets.ticket import PAID_TICKET_STATUSES, Ticket, TicketStatus
from marketplace.utils.clock import resolve_as_of

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Ticket")
class ConfirmTicketPayment:
    ticket_id = Identifier(required=True)
    payment_id = String(required=True, max_length=255)
    as_of = DateTime()


@marketplace.command(part_of="Ticket")
class RecordTicketPaymentFailure:
    ticket_id = Identifier(required=True)
    reason = String(required=True, max_length=255)


@marketplace.command_handler(part_of=Ticket)
class TicketPaymentHandler:
    @handle(ConfirmTicketPayment)
    def confirm_ticket_payment(self, command):
        now = resolve_as_of(command.as_of)
        repo = current_domain.repository_for(Ticket)
        ticket = repo.get(command.ticket_id)

        if ticket.expire_if_due(now):
            repo.add(ticket)
            logger.warning("Payment confirmation after expiry rejected", ticket_id=str(ticket.id))
            return SettlementOutcome.EXPIRED.value
        if ticket.status in PAID_TICKET_STATUSES:
            logger.info("Duplicate payment confirmation ignored", ticket_id=str(ticket.id))
            return SettlementOutcome.DUPLICATE.value
        if ticket.status == TicketStatus.CANCELLED.value:
            if ticket.expired:
                logger.warning("Payment confirmation after expiry rejected", ticket_id=str(ticket.id))
                return SettlementOutcome.EXPIRED.value
            raise InvalidTransition({"status": ["Ticket was cancelled"]})

        drafts = ticket_commission_drafts(ticket)
        ticket.confirm_payment(command.payment_id, now=now)
        repo.add(ticket)
        record_commissions(drafts, now=now)

        logger.info(
            "Ticket settled",
            ticket_id=str(ticket.id),
            payment_id=command.payment_id,
            commissions=len(drafts),
        )
        return SettlementOutcome.SETTLED.value

    @handle(RecordTicketPaymentFailure)
    def record_ticket_payment_failure(self, command):
        repo = current_domain.repository_for(Ticket)
        ticket = repo.get(command.ticket_id)
        if ticket.status != TicketStatus.PENDING.value:
            logger.info("Ignoring payment failure for settled ticket", ticket_id=str(ticket.id), status=ticket.status)
            return
        ticket.cancel(reason=command.reason)
        repo.add(ticket)


def confirm_ticket_payment(ticket_id, payment_id, as_of=None):
    """Settle a ticket, raising ``OrderExpired`` when the reservation had lapsed."""
    outcome = current_domain.process(
        ConfirmTicketPayment(ticket_id=ticket_id, payment_id=payment_id, as_of=as_of),
        asynchronous=False,
    )
    if outcome == SettlementOutcome.EXPIRED.value:
        raise OrderExpired({"ticket_id": ["Ticket reservation expired before payment was confirmed"]})
    return outcome
