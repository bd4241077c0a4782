"""Decimal helpers for monetary arithmetic.

Amounts are persisted as 2-dp floats; all arithmetic happens on ``Decimal``
values built from their string form so binary float noise never leaks into
a sum.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value) -> Decimal:
    """Round half-up to cents."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_amount(value) -> float:
    """Render a decimal as the 2-dp float stored on aggregates."""
    return float(quantize(value))


def percent_of(base, rate) -> Decimal:
    """``base * rate / 100`` at full precision."""
    return to_decimal(base) * to_decimal(rate) / HUNDRED
