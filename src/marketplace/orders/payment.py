"""Order payment — settlement and payment failure.

``ConfirmOrderPayment`` is the only way an order becomes PAID, and the only
place commissions for an order are computed. The handler re-reads the
order, decides from its stored status and ``expires_at`` what the
confirmation means, and writes the status change together with the
commission rows in one unit of work:

    PENDING, not expired          → PAID, commissions recorded  (settled)
    PENDING, past expires_at      → CANCELLED, stock released   (expired)
    CANCELLED by expiry           → unchanged                   (expired)
    PAID or later                 → unchanged                   (duplicate)
    CANCELLED for another reason  → InvalidTransition

A concurrent second writer loses on the aggregate version check and the
whole unit of work rolls back, so commissions are never written twice.
"""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from marketplace.commissions.engine import order_commission_drafts, record_commissions
from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition, OrderExpired
from marketplace.orders.order import Order, OrderStatus
from marketplace.orders.stock import release_order_stock
from marketplace.shared.settlement import SettlementOutcome
from marketplace.utils.clock import resolve_as_of

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class ConfirmOrderPayment:
    order_id = Identifier(required=True)
    payment_id = String(required=True, max_length=255)
    payment_method = String(max_length=50)
    as_of = DateTime()  # Optional: defaults to now


@marketplace.command(part_of="Order")
class RecordOrderPaymentFailure:
    order_id = Identifier(required=True)
    payment_id = String(max_length=255)
    reason = String(required=True, max_length=500)


@marketplace.command_handler(part_of=Order)
class OrderPaymentHandler:
    @handle(ConfirmOrderPayment)
    def confirm_order_payment(self, command):
        now = resolve_as_of(command.as_of)
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if order.expire_if_due(now):
            release_order_stock(order, reason="expired")
            repo.add(order)
            logger.warning(
                "Payment confirmation after expiry rejected",
                order_id=str(order.id),
                payment_id=command.payment_id,
                expires_at=order.expires_at.isoformat(),
            )
            return SettlementOutcome.EXPIRED.value

        status = OrderStatus(order.status)
        if status == OrderStatus.CANCELLED:
            if order.expired:
                logger.warning(
                    "Payment confirmation after expiry rejected",
                    order_id=str(order.id),
                    payment_id=command.payment_id,
                )
                return SettlementOutcome.EXPIRED.value
            raise InvalidTransition({"status": ["Order was cancelled and cannot be paid"]})
        if status != OrderStatus.PENDING:
            logger.info(
                "Duplicate payment confirmation ignored",
                order_id=str(order.id),
                payment_id=command.payment_id,
                status=order.status,
            )
            return SettlementOutcome.DUPLICATE.value

        drafts = order_commission_drafts(order)
        order.confirm_payment(command.payment_id, payment_method=command.payment_method, now=now)
        repo.add(order)
        record_commissions(drafts, now=now)

        logger.info(
            "Order settled",
            order_id=str(order.id),
            order_number=order.order_number,
            payment_id=command.payment_id,
            total=order.pricing.total,
            commissions=len(drafts),
        )
        return SettlementOutcome.SETTLED.value

    @handle(RecordOrderPaymentFailure)
    def record_order_payment_failure(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if order.status != OrderStatus.PENDING.value:
            logger.info("Ignoring payment failure for non-pending order", order_id=str(order.id), status=order.status)
            return

        order.cancel(reason=command.reason, cancelled_by="System")
        if command.payment_id:
            order.payment_id = command.payment_id
        release_order_stock(order, reason="payment_failed")
        repo.add(order)
        logger.info("Order payment failed", order_id=str(order.id), reason=command.reason)


def confirm_order_payment(order_id, payment_id, payment_method=None, as_of=None):
    """Settle an order, raising ``OrderExpired`` when its reservation had lapsed.

    Runs the settlement command first so the expiry is persisted, then
    signals the caller.
    """
    outcome = current_domain.process(
        ConfirmOrderPayment(order_id=order_id, payment_id=payment_id, payment_method=payment_method, as_of=as_of),
        asynchronous=False,
    )
    if outcome == SettlementOutcome.EXPIRED.value:
        raise OrderExpired({"order_id": ["Order reservation expired before payment was confirmed"]})
    return outcome
