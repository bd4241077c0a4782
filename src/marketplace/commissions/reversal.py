"""Commission reversal — voiding what a cancelled or refunded settlement owed.

Only PENDING commissions are cancelled. A commission that was already paid
out stays PAID; it is reported back so the caller can record it for manual
reconciliation.
"""

from dataclasses import dataclass, field

import structlog
from protean.utils.globals import current_domain

from marketplace.commissions.commission import Commission, CommissionStatus
from marketplace.commissions.engine import commissions_for

logger = structlog.get_logger(__name__)


@dataclass
class ReversalResult:
    cancelled: list = field(default_factory=list)
    requires_reconciliation: list = field(default_factory=list)


def reverse_commissions(source_type, source_id, reason, now=None):
    repo = current_domain.repository_for(Commission)
    result = ReversalResult()

    for commission in commissions_for(source_type, source_id):
        if commission.status == CommissionStatus.PENDING.value:
            commission.cancel(reason=reason, now=now)
            repo.add(commission)
            result.cancelled.append(commission.commission_id)
        elif commission.status == CommissionStatus.PAID.value:
            logger.warning(
                "Commission requires manual reconciliation",
                commission_id=commission.commission_id,
                beneficiary_type=commission.beneficiary_type,
                beneficiary_id=str(commission.beneficiary_id),
                amount=commission.amount,
                reason=reason,
            )
            result.requires_reconciliation.append(commission.commission_id)

    if result.cancelled:
        logger.info(
            "Commissions reversed",
            source_type=source_type,
            source_id=str(source_id),
            cancelled=len(result.cancelled),
        )
    return result
