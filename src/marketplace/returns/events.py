"""Domain events for the ReturnRequest aggregate."""

from protean.fields import Boolean, DateTime, Identifier, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="ReturnRequest")
class ReturnRequested:
    __version__ = 1

    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    reason = String(required=True)
    requested_at = DateTime(required=True)


@marketplace.event(part_of="ReturnRequest")
class ReturnUnderReview:
    __version__ = 1

    return_id = Identifier(required=True)
    order_id = Identifier(required=True)


@marketplace.event(part_of="ReturnRequest")
class ReturnResolved:
    """An admin decided the request; a refund may have reversed commissions."""

    __version__ = 1

    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    status = String(required=True)
    refund_order = Boolean(default=False)
    admin_notes = Text()
    reconciliation_commission_ids = Text()  # JSON list
    resolved_by = Identifier(required=True)
    resolved_at = DateTime(required=True)
