"""Return management — opening, reviewing and resolving return requests.

Approving a request with ``refund_order`` refunds the delivered order and
reverses its commissions in the same unit of work: pending commissions are
cancelled, paid ones are listed on the request for manual reconciliation.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.commissions.commission import SourceType
from marketplace.commissions.reversal import reverse_commissions
from marketplace.domain import marketplace
from marketplace.errors import Conflict, Forbidden, InvalidTransition
from marketplace.orders.expiration import expire_if_lapsed
from marketplace.orders.order import Order, OrderStatus
from marketplace.returns.return_request import UNRESOLVED_STATUSES, ReturnRequest, ReturnStatus
from marketplace.utils.clock import resolve_as_of

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="ReturnRequest")
class OpenReturnRequest:
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    reason = String(required=True, max_length=255)
    description = Text()
    as_of = DateTime()  # Optional: defaults to now


@marketplace.command(part_of="ReturnRequest")
class StartReturnReview:
    return_id = Identifier(required=True)


@marketplace.command(part_of="ReturnRequest")
class ResolveReturnRequest:
    return_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    admin_notes = Text()
    refund_order = Boolean(default=False)
    resolved_by = Identifier(required=True)


@marketplace.command_handler(part_of=ReturnRequest)
class ManageReturnsHandler:
    @handle(OpenReturnRequest)
    def open_return_request(self, command):
        orders = current_domain.repository_for(Order)
        order = orders.get(command.order_id)
        if str(order.buyer_id) != str(command.buyer_id):
            raise Forbidden({"order_id": ["Order belongs to another buyer"]})
        if expire_if_lapsed(orders, order, resolve_as_of(command.as_of)):
            return None
        if order.status in (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value):
            raise InvalidTransition({"order_id": [f"Cannot request a return for a {order.status} order"]})

        repo = current_domain.repository_for(ReturnRequest)
        existing = repo._dao.query.filter(order_id=str(order.id)).all().items
        if any(r.status in UNRESOLVED_STATUSES for r in existing):
            raise Conflict({"order_id": ["A return request is already open for this order"]})

        request = ReturnRequest.open(
            order_id=order.id,
            buyer_id=command.buyer_id,
            reason=command.reason,
            description=command.description,
        )
        repo.add(request)
        logger.info("Return requested", return_id=str(request.id), order_id=str(order.id))
        return str(request.id)

    @handle(StartReturnReview)
    def start_return_review(self, command):
        repo = current_domain.repository_for(ReturnRequest)
        request = repo.get(command.return_id)
        request.start_review()
        repo.add(request)

    @handle(ResolveReturnRequest)
    def resolve_return_request(self, command):
        try:
            decision = ReturnStatus(command.status)
        except ValueError as exc:
            raise ValidationError({"status": [f"Unknown return status {command.status}"]}) from exc

        repo = current_domain.repository_for(ReturnRequest)
        request = repo.get(command.return_id)
        request.ensure_unresolved()

        flagged = []
        refund = decision == ReturnStatus.APPROVED and bool(command.refund_order)
        if refund:
            order_repo = current_domain.repository_for(Order)
            order = order_repo.get(request.order_id)
            order.refund(reason=command.admin_notes)
            order_repo.add(order)

            reversal = reverse_commissions(SourceType.ORDER.value, order.id, reason="refund")
            flagged = reversal.requires_reconciliation

        request.resolve(
            decision,
            resolved_by=command.resolved_by,
            admin_notes=command.admin_notes,
            refund_order=refund,
            reconciliation_commission_ids=flagged,
        )
        repo.add(request)

        logger.info(
            "Return request resolved",
            return_id=str(request.id),
            order_id=str(request.order_id),
            status=request.status,
            refunded=refund,
            reconciliation_required=len(flagged),
        )
        return request.status


def request_return(order_id, buyer_id, reason, description=None, as_of=None):
    """Open a return request, raising ``InvalidTransition`` when the order's reservation had lapsed.

    The expiry is persisted by the command before the caller is told.
    """
    return_id = current_domain.process(
        OpenReturnRequest(order_id=order_id, buyer_id=buyer_id, reason=reason, description=description, as_of=as_of),
        asynchronous=False,
    )
    if return_id is None:
        raise InvalidTransition({"order_id": ["Cannot request a return for an expired order"]})
    return return_id
