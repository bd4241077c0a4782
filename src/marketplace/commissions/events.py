"""Domain events for the Commission aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Commission")
class CommissionRecorded:
    """A settlement produced a commission owed to a beneficiary."""

    __version__ = 1

    commission_id = String(required=True)
    source_type = String(required=True)
    source_id = Identifier(required=True)
    beneficiary_type = String(required=True)
    beneficiary_id = Identifier(required=True)
    amount = Float(required=True)
    recorded_at = DateTime(required=True)


@marketplace.event(part_of="Commission")
class CommissionPaid:
    """The commission was paid out to its beneficiary."""

    __version__ = 1

    commission_id = String(required=True)
    amount = Float(required=True)
    paid_at = DateTime(required=True)


@marketplace.event(part_of="Commission")
class CommissionCancelled:
    """A pending commission was voided by a cancellation or refund."""

    __version__ = 1

    commission_id = String(required=True)
    amount = Float(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)
