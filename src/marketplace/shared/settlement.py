"""Outcome of a payment confirmation."""

from enum import Enum


class SettlementOutcome(Enum):
    SETTLED = "settled"
    DUPLICATE = "duplicate"
    EXPIRED = "expired"
