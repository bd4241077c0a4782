"""Order cancellation — command and handler.

Buyers may cancel their own order while it is still unpaid; admins may
cancel up to PROCESSING. Stock goes back to the listings and pending
commissions are cancelled. An order whose reservation already lapsed is
expired instead, so a late payment for it is still reported as expired.
"""

import structlog
from protean import handle
from protean.fields import Boolean, DateTime, Identifier, String
from protean.utils.globals import current_domain

from marketplace.commissions.commission import SourceType
from marketplace.commissions.reversal import reverse_commissions
from marketplace.domain import marketplace
from marketplace.errors import Forbidden, InvalidTransition
from marketplace.orders.expiration import expire_if_lapsed
from marketplace.orders.order import CancellationActor, Order, OrderStatus
from marketplace.orders.stock import release_order_stock
from marketplace.utils.clock import resolve_as_of

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    requested_by = Identifier(required=True)
    is_admin = Boolean(default=False)
    as_of = DateTime()  # Optional: defaults to now


@marketplace.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if not command.is_admin and str(order.buyer_id) != str(command.requested_by):
            raise Forbidden({"order_id": ["Order belongs to another buyer"]})

        if expire_if_lapsed(repo, order, resolve_as_of(command.as_of)):
            return order.status

        if not command.is_admin and order.status != OrderStatus.PENDING.value:
            raise InvalidTransition({"status": ["Only unpaid orders can be cancelled by the buyer"]})

        was_settled = order.status != OrderStatus.PENDING.value
        order.cancel(
            reason=command.reason,
            cancelled_by=CancellationActor.ADMIN.value if command.is_admin else CancellationActor.BUYER.value,
        )
        release_order_stock(order, reason="cancellation")
        repo.add(order)

        if was_settled:
            reverse_commissions(SourceType.ORDER.value, order.id, reason=command.reason)

        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            reason=command.reason,
            cancelled_by=order.cancelled_by,
        )
        return order.status
