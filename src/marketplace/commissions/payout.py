"""Commission payout — marking commissions as paid out.

Payouts happen outside the platform (bank transfer, wallet); these
commands only record that the money left.
"""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from marketplace.commissions.commission import BeneficiaryType, Commission, CommissionStatus
from marketplace.domain import marketplace
from marketplace.utils.clock import resolve_as_of

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Commission")
class MarkCommissionPaid:
    commission_id = String(required=True, max_length=255)
    as_of = DateTime()


@marketplace.command(part_of="Commission")
class MarkCommissionsPaid:
    """Pay out every pending commission of one payee.

    Artist payees include their customization commissions.
    """

    payee_type = String(required=True, choices=BeneficiaryType)
    payee_id = Identifier(required=True)
    as_of = DateTime()


@marketplace.command_handler(part_of=Commission)
class CommissionPayoutHandler:
    @handle(MarkCommissionPaid)
    def mark_commission_paid(self, command):
        repo = current_domain.repository_for(Commission)
        commission = repo.get(command.commission_id)
        commission.mark_paid(now=resolve_as_of(command.as_of))
        repo.add(commission)

        logger.info("Commission paid", commission_id=commission.commission_id, amount=commission.amount)
        return commission.commission_id

    @handle(MarkCommissionsPaid)
    def mark_commissions_paid(self, command):
        repo = current_domain.repository_for(Commission)
        if command.payee_type == BeneficiaryType.REFERRAL.value:
            types = [BeneficiaryType.REFERRAL.value]
        else:
            types = [BeneficiaryType.ARTIST.value, BeneficiaryType.CUSTOMIZATION.value]

        now = resolve_as_of(command.as_of)
        paid = []
        for commission in repo._dao.query.filter(
            beneficiary_id=str(command.payee_id), status=CommissionStatus.PENDING.value
        ).all().items:
            if commission.beneficiary_type not in types:
                continue
            commission.mark_paid(now=now)
            repo.add(commission)
            paid.append(commission.commission_id)

        logger.info(
            "Commissions paid out",
            payee_type=command.payee_type,
            payee_id=str(command.payee_id),
            count=len(paid),
        )
        return paid
