"""Payment notifications from the provider.

A notification only carries the provider's payment id; the payment is
looked up through the gateway and routed by its external reference
(``ticket:<id>`` for tickets, the order id otherwise). Duplicate and late
notifications are logged and acknowledged, never raised to the provider.
"""

import structlog
from protean.utils.globals import current_domain

from marketplace.errors import OrderExpired
from marketplace.orders.payment import RecordOrderPaymentFailure, confirm_order_payment
from marketplace.payments.checkout import TICKET_REFERENCE_PREFIX
from marketplace.payments.gateway import get_gateway
from marketplace.payments.gateway.port import ProviderPaymentStatus
from marketplace.shared.settlement import SettlementOutcome
from marketplace.tickets.payment import RecordTicketPaymentFailure, confirm_ticket_payment

logger = structlog.get_logger(__name__)

_FAILED_STATUSES = frozenset({ProviderPaymentStatus.REJECTED.value, ProviderPaymentStatus.CANCELLED.value})


def handle_payment_notification(provider_payment_id, as_of=None):
    """Apply a provider payment notification and return what happened."""
    notice = get_gateway().fetch_payment(provider_payment_id)
    reference = notice.external_reference or ""
    is_ticket = reference.startswith(TICKET_REFERENCE_PREFIX)
    target_id = reference[len(TICKET_REFERENCE_PREFIX) :] if is_ticket else reference

    logger.info(
        "Payment notification received",
        provider_payment_id=provider_payment_id,
        status=notice.status,
        reference=reference,
    )

    if notice.status == ProviderPaymentStatus.APPROVED.value:
        try:
            if is_ticket:
                outcome = confirm_ticket_payment(target_id, provider_payment_id, as_of=as_of)
            else:
                outcome = confirm_order_payment(
                    target_id, provider_payment_id, payment_method=notice.payment_method, as_of=as_of
                )
        except OrderExpired:
            logger.warning(
                "Late payment for expired reservation",
                provider_payment_id=provider_payment_id,
                reference=reference,
            )
            return SettlementOutcome.EXPIRED.value
        return outcome

    if notice.status in _FAILED_STATUSES:
        reason = f"Payment {notice.status}"
        if is_ticket:
            command = RecordTicketPaymentFailure(ticket_id=target_id, reason=reason)
        else:
            command = RecordOrderPaymentFailure(order_id=target_id, payment_id=provider_payment_id, reason=reason)
        current_domain.process(command, asynchronous=False)
        return "failed"

    logger.info("Payment still in progress", provider_payment_id=provider_payment_id, status=notice.status)
    return "ignored"
