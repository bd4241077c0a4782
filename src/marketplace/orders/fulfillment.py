"""Order fulfillment — admin-driven forward status changes."""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.orders.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class AdvanceOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)


@marketplace.command_handler(part_of=Order)
class AdvanceOrderStatusHandler:
    @handle(AdvanceOrderStatus)
    def advance_order_status(self, command):
        try:
            target = OrderStatus(command.status)
        except ValueError as exc:
            raise ValidationError({"status": [f"Unknown order status {command.status}"]}) from exc

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.status
        order.advance_to(target)
        repo.add(order)

        logger.info("Order status advanced", order_id=str(order.id), previous_status=previous, new_status=order.status)
        return order.status
