"""Payment gateway port (abstract interface).

The marketplace uses a hosted-checkout provider: checkout creates a
preference the buyer is redirected to, and the provider later notifies us
with a payment id that we look up to learn the outcome. Adapters implement
this contract; domain and application code only see the port.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class ProviderPaymentStatus(Enum):
    APPROVED = "approved"
    PENDING = "pending"
    IN_PROCESS = "in_process"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CheckoutSession:
    """A hosted checkout the buyer is redirected to."""

    preference_id: str
    init_point: str


@dataclass(frozen=True)
class PaymentNotice:
    """What the provider reports about a payment."""

    provider_payment_id: str
    status: str
    external_reference: str
    payment_method: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_checkout(self, reference: str, amount: float, currency: str, description: str) -> CheckoutSession:
        """Create a hosted checkout for ``amount``; ``reference`` comes back on every notice."""

    @abstractmethod
    def fetch_payment(self, provider_payment_id: str) -> PaymentNotice:
        """Look up a payment the provider notified us about."""

    @abstractmethod
    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Verify a webhook notification's signature."""
