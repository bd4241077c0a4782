"""Commission aggregate — money owed to an artist, referrer or customization fulfiller.

A commission belongs to exactly one settlement (a paid order or ticket)
and one beneficiary. Its identity is derived from both, so recording the
same settlement twice lands on the same rows. Amounts and rates are fixed
at creation; afterwards only the status moves, PENDING → PAID or
PENDING → CANCELLED.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Identifier, String, Text

from marketplace.commissions.events import CommissionCancelled, CommissionPaid, CommissionRecorded
from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition


class CommissionStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    CANCELLED = "Cancelled"


class SourceType(Enum):
    ORDER = "order"
    TICKET = "ticket"


class BeneficiaryType(Enum):
    ARTIST = "artist"
    REFERRAL = "referral"
    CUSTOMIZATION = "customization"


def commission_key(source_type, source_id, beneficiary_type, beneficiary_id):
    return f"{source_type}:{source_id}:{beneficiary_type}:{beneficiary_id}"


@marketplace.aggregate(limit=None)
class Commission:
    commission_id = String(identifier=True, max_length=255)
    source_type = String(choices=SourceType, required=True)
    source_id = Identifier(required=True)
    beneficiary_type = String(choices=BeneficiaryType, required=True)
    beneficiary_id = Identifier(required=True)
    rate = Float(required=True)
    base_amount = Float(required=True)
    amount = Float(required=True, min_value=0.0)
    lines = Text()  # JSON: per-item breakdown
    status = String(choices=CommissionStatus, default=CommissionStatus.PENDING.value)
    created_at = DateTime()
    paid_at = DateTime()
    cancelled_at = DateTime()

    @classmethod
    def record(cls, source_type, source_id, beneficiary_type, beneficiary_id, rate, base_amount, amount, lines, now=None):
        now = now or datetime.now(UTC)
        commission = cls(
            commission_id=commission_key(source_type, source_id, beneficiary_type, beneficiary_id),
            source_type=source_type,
            source_id=source_id,
            beneficiary_type=beneficiary_type,
            beneficiary_id=beneficiary_id,
            rate=rate,
            base_amount=base_amount,
            amount=amount,
            lines=json.dumps(lines),
            status=CommissionStatus.PENDING.value,
            created_at=now,
        )
        commission.raise_(
            CommissionRecorded(
                commission_id=commission.commission_id,
                source_type=source_type,
                source_id=str(source_id),
                beneficiary_type=beneficiary_type,
                beneficiary_id=str(beneficiary_id),
                amount=amount,
                recorded_at=now,
            )
        )
        return commission

    def mark_paid(self, now=None):
        if self.status != CommissionStatus.PENDING.value:
            raise InvalidTransition({"status": [f"Cannot pay a commission in {self.status} status"]})

        now = now or datetime.now(UTC)
        self.status = CommissionStatus.PAID.value
        self.paid_at = now
        self.raise_(CommissionPaid(commission_id=self.commission_id, amount=self.amount, paid_at=now))

    def cancel(self, reason=None, now=None):
        if self.status != CommissionStatus.PENDING.value:
            raise InvalidTransition({"status": [f"Cannot cancel a commission in {self.status} status"]})

        now = now or datetime.now(UTC)
        self.status = CommissionStatus.CANCELLED.value
        self.cancelled_at = now
        self.raise_(
            CommissionCancelled(
                commission_id=self.commission_id,
                amount=self.amount,
                reason=reason,
                cancelled_at=now,
            )
        )
