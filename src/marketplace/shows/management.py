"""Show management — commands and handler."""

from protean import handle
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.shows.show import Show


@marketplace.command(part_of="Show")
class ScheduleShow:
    artist_id: Identifier(required=True)
    name: String(required=True, max_length=255)
    venue: String(max_length=255)
    starts_at: DateTime(required=True)
    ticket_price: Float(default=0.0, min_value=0.0)
    total_capacity: Integer(min_value=1)
    platform_fee: Float(default=10.0, min_value=0.0, max_value=100.0)
    tickets_enabled: Boolean(default=False)


@marketplace.command(part_of="Show")
class SetTicketSales:
    show_id: Identifier(required=True)
    enabled: Boolean(required=True)


@marketplace.command(part_of="Show")
class CancelShow:
    show_id: Identifier(required=True)


@marketplace.command_handler(part_of=Show)
class ManageShowHandler:
    @handle(ScheduleShow)
    def schedule_show(self, command):
        show = Show.schedule(
            artist_id=command.artist_id,
            name=command.name,
            starts_at=command.starts_at,
            venue=command.venue,
            ticket_price=command.ticket_price,
            total_capacity=command.total_capacity,
            platform_fee=command.platform_fee if command.platform_fee is not None else 10.0,
        )
        if command.tickets_enabled:
            show.enable_tickets()
        current_domain.repository_for(Show).add(show)
        return str(show.id)

    @handle(SetTicketSales)
    def set_ticket_sales(self, command):
        repo = current_domain.repository_for(Show)
        show = repo.get(command.show_id)
        if command.enabled:
            show.enable_tickets()
        else:
            show.disable_tickets()
        repo.add(show)

    @handle(CancelShow)
    def cancel_show(self, command):
        repo = current_domain.repository_for(Show)
        show = repo.get(command.show_id)
        show.cancel()
        repo.add(show)
