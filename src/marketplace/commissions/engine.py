"""Commission engine — who is owed what when an order or ticket is paid.

Per order item:
    artist         = max(0, unit_price - manufacturing_cost) * quantity * artist_rate / 100
    customization  = customization price * fulfiller_rate / 100   (one per customization)
Per settlement:
    referral       = subtotal * referral_rate / 100                (ticket price for tickets)

Rates are the ones captured when the order was placed or the ticket
reserved. Lines are grouped into one commission per beneficiary; the
grouped amount is rounded to cents. Commissions never add up to more than
the commissionable total (subtotal + customizations); any excess comes out
of the referral share first, then customization, then the artist.
"""

from collections import OrderedDict
from dataclasses import dataclass, field, replace
from decimal import Decimal

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from marketplace.commissions.commission import BeneficiaryType, Commission, SourceType, commission_key
from marketplace.shared.money import ZERO, percent_of, quantize, to_amount, to_decimal

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CommissionLine:
    beneficiary_type: str
    beneficiary_id: str
    rate: Decimal
    base: Decimal
    amount: Decimal
    detail: dict = field(default_factory=dict)


@dataclass(frozen=True)
class CommissionDraft:
    source_type: str
    source_id: str
    beneficiary_type: str
    beneficiary_id: str
    rate: Decimal
    base_amount: Decimal
    amount: Decimal
    lines: tuple

    @property
    def key(self):
        return commission_key(self.source_type, self.source_id, self.beneficiary_type, self.beneficiary_id)


def order_commission_lines(order):
    lines = []
    for item in order.items:
        margin = max(ZERO, to_decimal(item.unit_price) - to_decimal(item.manufacturing_cost))
        base = margin * item.quantity
        lines.append(
            CommissionLine(
                beneficiary_type=BeneficiaryType.ARTIST.value,
                beneficiary_id=str(item.artist_id),
                rate=to_decimal(item.artist_commission_rate),
                base=base,
                amount=percent_of(base, item.artist_commission_rate),
                detail={"item_id": str(item.id), "listing_id": str(item.listing_id), "quantity": item.quantity},
            )
        )
        for customization in item.customization_lines:
            if not customization.get("fulfiller_id"):
                continue
            price = to_decimal(customization["price"])
            lines.append(
                CommissionLine(
                    beneficiary_type=BeneficiaryType.CUSTOMIZATION.value,
                    beneficiary_id=str(customization["fulfiller_id"]),
                    rate=to_decimal(customization["fulfiller_rate"]),
                    base=price,
                    amount=percent_of(price, customization["fulfiller_rate"]),
                    detail={"item_id": str(item.id), "type": customization["type"]},
                )
            )

    if order.referral_id and order.referral_rate:
        subtotal = to_decimal(order.pricing.subtotal)
        lines.append(
            CommissionLine(
                beneficiary_type=BeneficiaryType.REFERRAL.value,
                beneficiary_id=str(order.referral_id),
                rate=to_decimal(order.referral_rate),
                base=subtotal,
                amount=percent_of(subtotal, order.referral_rate),
                detail={"order_number": order.order_number},
            )
        )
    return lines


def ticket_commission_lines(ticket):
    price = to_decimal(ticket.price)
    lines = [
        CommissionLine(
            beneficiary_type=BeneficiaryType.ARTIST.value,
            beneficiary_id=str(ticket.artist_id),
            rate=to_decimal(ticket.artist_rate),
            base=price,
            amount=percent_of(price, ticket.artist_rate),
            detail={"ticket_code": ticket.code, "show_id": str(ticket.show_id)},
        )
    ]
    if ticket.referral_id and ticket.referral_rate:
        lines.append(
            CommissionLine(
                beneficiary_type=BeneficiaryType.REFERRAL.value,
                beneficiary_id=str(ticket.referral_id),
                rate=to_decimal(ticket.referral_rate),
                base=price,
                amount=percent_of(price, ticket.referral_rate),
                detail={"ticket_code": ticket.code},
            )
        )
    return lines


def group_lines(source_type, source_id, lines, cap):
    """Group ``lines`` into one draft per beneficiary, bounded by ``cap`` in total."""
    grouped = OrderedDict()
    for line in lines:
        grouped.setdefault((line.beneficiary_type, line.beneficiary_id), []).append(line)

    drafts = []
    for (beneficiary_type, beneficiary_id), group in grouped.items():
        base = sum((line.base for line in group), ZERO)
        amount = quantize(sum((line.amount for line in group), ZERO))
        rates = {line.rate for line in group}
        if len(rates) == 1:
            rate = rates.pop()
        else:
            rate = (amount / base * 100) if base else ZERO
        drafts.append(
            CommissionDraft(
                source_type=source_type,
                source_id=str(source_id),
                beneficiary_type=beneficiary_type,
                beneficiary_id=beneficiary_id,
                rate=rate,
                base_amount=base,
                amount=amount,
                lines=tuple(
                    {**line.detail, "rate": to_amount(line.rate), "base": to_amount(line.base), "amount": str(line.amount)}
                    for line in group
                ),
            )
        )

    return _bound_to_cap(drafts, quantize(cap))


_ABSORB_ORDER = (BeneficiaryType.REFERRAL.value, BeneficiaryType.CUSTOMIZATION.value, BeneficiaryType.ARTIST.value)


def _bound_to_cap(drafts, cap):
    excess = sum((d.amount for d in drafts), ZERO) - cap
    if excess <= 0:
        return [d for d in drafts if d.amount > 0]

    logger.warning("Commission total exceeds commissionable amount", excess=str(excess), cap=str(cap))
    bounded = list(drafts)
    for beneficiary_type in _ABSORB_ORDER:
        for index, draft in enumerate(bounded):
            if excess <= 0:
                break
            if draft.beneficiary_type != beneficiary_type:
                continue
            reduced = max(ZERO, draft.amount - excess)
            excess -= draft.amount - reduced
            bounded[index] = replace(draft, amount=reduced)
    return [d for d in bounded if d.amount > 0]


def order_commission_drafts(order):
    return group_lines(SourceType.ORDER.value, order.id, order_commission_lines(order), order.commissionable_total)


def ticket_commission_drafts(ticket):
    return group_lines(SourceType.TICKET.value, ticket.id, ticket_commission_lines(ticket), to_decimal(ticket.price))


def _already_recorded(repo, key):
    try:
        repo.get(key)
    except ObjectNotFoundError:
        return False
    return True


def record_commissions(drafts, now=None):
    """Persist ``drafts``, skipping any whose key already exists.

    The key is the commission identity. Callers save the settling order or
    ticket in the same unit of work, so of two concurrent settlements only one
    passes that aggregate's version check at commit and the other records
    nothing. Returns the commissions created by this call.
    """
    repo = current_domain.repository_for(Commission)
    created = []
    for draft in drafts:
        if _already_recorded(repo, draft.key):
            logger.info("Commission already recorded", commission_id=draft.key)
            continue

        commission = Commission.record(
            source_type=draft.source_type,
            source_id=draft.source_id,
            beneficiary_type=draft.beneficiary_type,
            beneficiary_id=draft.beneficiary_id,
            rate=to_amount(draft.rate),
            base_amount=to_amount(draft.base_amount),
            amount=to_amount(draft.amount),
            lines=list(draft.lines),
            now=now,
        )
        repo.add(commission)
        created.append(commission)
    return created


def commissions_for(source_type, source_id):
    repo = current_domain.repository_for(Commission)
    return repo._dao.query.filter(source_type=source_type, source_id=str(source_id)).all().items
