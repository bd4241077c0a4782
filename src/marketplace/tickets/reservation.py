"""Ticket reservation — reserving a seat for a show.

A reservation holds the seat for ``ticket_reservation_minutes``. A buyer
who already holds an unpaid reservation for the show gets that one back.
"""

from datetime import timedelta

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import Conflict
from marketplace.referrals.eligibility import eligible_referral
from marketplace.settings.setting import int_setting
from marketplace.shows.show import Show, ShowStatus
from marketplace.tickets.ticket import Ticket, TicketStatus
from marketplace.utils.clock import resolve_as_of

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Ticket")
class ReserveTicket:
    show_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    as_of = DateTime()


@marketplace.command_handler(part_of=Ticket)
class ReserveTicketHandler:
    @handle(ReserveTicket)
    def reserve_ticket(self, command):
        now = resolve_as_of(command.as_of)
        show = current_domain.repository_for(Show).get(command.show_id)

        if str(show.artist_id) == str(command.buyer_id):
            raise ValidationError({"show_id": ["You cannot buy tickets for your own show"]})
        if show.status != ShowStatus.SCHEDULED.value:
            raise ValidationError({"show_id": ["This show is not available for ticket sales"]})
        if not show.tickets_enabled:
            raise ValidationError({"show_id": ["Ticket sales are not enabled for this show"]})

        repo = current_domain.repository_for(Ticket)
        tickets = repo._dao.query.filter(show_id=str(show.id)).all().items

        live = []
        for ticket in tickets:
            if ticket.expire_if_due(now):
                repo.add(ticket)
                continue
            if ticket.status != TicketStatus.CANCELLED.value:
                live.append(ticket)

        own = [t for t in live if str(t.buyer_id) == str(command.buyer_id)]
        if any(t.status in (TicketStatus.ACTIVE.value, TicketStatus.USED.value) for t in own):
            raise Conflict({"show_id": ["You already bought a ticket for this show"]})
        unpaid = next((t for t in own if t.status == TicketStatus.PENDING.value), None)
        if unpaid is not None:
            logger.info("Returning existing ticket reservation", ticket_id=str(unpaid.id), show_id=str(show.id))
            return str(unpaid.id)

        if show.total_capacity and len(live) >= show.total_capacity:
            raise Conflict({"show_id": ["This show is sold out"]})

        referral = eligible_referral(command.buyer_id, now)
        ticket = Ticket.reserve(
            show=show,
            buyer_id=command.buyer_id,
            expires_at=now + timedelta(minutes=int_setting("ticket_reservation_minutes")),
            referral_id=referral.referral_id if referral else None,
            referral_rate=referral.rate if referral else None,
            now=now,
        )
        repo.add(ticket)

        logger.info(
            "Ticket reserved",
            ticket_id=str(ticket.id),
            show_id=str(show.id),
            buyer_id=str(command.buyer_id),
            expires_at=ticket.expires_at.isoformat(),
        )
        return str(ticket.id)
