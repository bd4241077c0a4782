"""ReturnRequest aggregate — a buyer asking to send an order back.

State machine:
    OPEN → REVIEWING → APPROVED | REJECTED | RESOLVED
    OPEN → APPROVED | REJECTED | RESOLVED
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import Boolean, DateTime, Identifier, String, Text

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition
from marketplace.returns.events import ReturnRequested, ReturnResolved, ReturnUnderReview


class ReturnStatus(Enum):
    OPEN = "Open"
    REVIEWING = "Reviewing"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    RESOLVED = "Resolved"


UNRESOLVED_STATUSES = frozenset({ReturnStatus.OPEN.value, ReturnStatus.REVIEWING.value})
DECISIONS = (ReturnStatus.APPROVED, ReturnStatus.REJECTED, ReturnStatus.RESOLVED)


@marketplace.aggregate(limit=None)
class ReturnRequest:
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    reason = String(required=True, max_length=255)
    description = Text()
    status = String(choices=ReturnStatus, default=ReturnStatus.OPEN.value)
    admin_notes = Text()
    refund_order = Boolean(default=False)
    resolved_by = Identifier()
    resolved_at = DateTime()
    reconciliation_commission_ids = Text()  # JSON list of PAID commissions left untouched by a refund
    created_at = DateTime()

    @classmethod
    def open(cls, order_id, buyer_id, reason, description=None):
        now = datetime.now(UTC)
        request = cls(
            order_id=order_id,
            buyer_id=buyer_id,
            reason=reason,
            description=description,
            status=ReturnStatus.OPEN.value,
            created_at=now,
        )
        request.raise_(
            ReturnRequested(
                return_id=str(request.id),
                order_id=str(order_id),
                buyer_id=str(buyer_id),
                reason=reason,
                requested_at=now,
            )
        )
        return request

    def start_review(self):
        if self.status != ReturnStatus.OPEN.value:
            raise InvalidTransition({"status": [f"Cannot review a return request in {self.status} status"]})
        self.status = ReturnStatus.REVIEWING.value
        self.raise_(ReturnUnderReview(return_id=str(self.id), order_id=str(self.order_id)))

    def ensure_unresolved(self):
        if self.status not in UNRESOLVED_STATUSES:
            raise InvalidTransition({"status": ["This return request was already resolved"]})

    def resolve(self, decision, resolved_by, admin_notes=None, refund_order=False, reconciliation_commission_ids=None):
        self.ensure_unresolved()
        if decision not in DECISIONS:
            raise InvalidTransition({"status": [f"{decision.value} is not a resolution"]})

        now = datetime.now(UTC)
        self.status = decision.value
        self.admin_notes = admin_notes
        self.refund_order = bool(refund_order)
        self.resolved_by = resolved_by
        self.resolved_at = now
        self.reconciliation_commission_ids = json.dumps(reconciliation_commission_ids or [])

        self.raise_(
            ReturnResolved(
                return_id=str(self.id),
                order_id=str(self.order_id),
                status=self.status,
                refund_order=self.refund_order,
                admin_notes=admin_notes,
                reconciliation_commission_ids=self.reconciliation_commission_ids,
                resolved_by=str(resolved_by),
                resolved_at=now,
            )
        )
