"""Configurable fake payment gateway for development and testing.

Simulates a hosted-checkout provider without external calls: tests and
local runs register the payments the "provider" knows about, then deliver
notifications for them.
"""

import hashlib
import hmac
from uuid import uuid4

from protean.exceptions import ObjectNotFoundError

from marketplace.payments.gateway.port import CheckoutSession, PaymentGateway, PaymentNotice, ProviderPaymentStatus


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, webhook_secret: str = "test-secret", frontend_url: str = "http://localhost:3000") -> None:
        self.webhook_secret = webhook_secret
        self.frontend_url = frontend_url
        self.payments: dict[str, PaymentNotice] = {}
        self.calls: list[dict] = []

    def register_payment(
        self,
        external_reference: str,
        status: str = ProviderPaymentStatus.APPROVED.value,
        payment_method: str = "credit_card",
        provider_payment_id: str | None = None,
    ) -> str:
        """Record a payment the provider will report; returns its provider id."""
        provider_payment_id = provider_payment_id or f"fake_pay_{uuid4().hex[:12]}"
        self.payments[provider_payment_id] = PaymentNotice(
            provider_payment_id=provider_payment_id,
            status=status,
            external_reference=external_reference,
            payment_method=payment_method,
        )
        return provider_payment_id

    def create_checkout(self, reference: str, amount: float, currency: str, description: str) -> CheckoutSession:
        self.calls.append(
            {
                "method": "create_checkout",
                "reference": reference,
                "amount": amount,
                "currency": currency,
                "description": description,
            }
        )
        preference_id = f"fake_pref_{uuid4().hex[:12]}"
        return CheckoutSession(
            preference_id=preference_id,
            init_point=f"{self.frontend_url}/checkout/fake?pref={preference_id}",
        )

    def fetch_payment(self, provider_payment_id: str) -> PaymentNotice:
        self.calls.append({"method": "fetch_payment", "provider_payment_id": provider_payment_id})
        try:
            return self.payments[provider_payment_id]
        except KeyError as exc:
            raise ObjectNotFoundError({"_entity": f"Payment {provider_payment_id} not found"}) from exc

    def sign(self, payload: str) -> str:
        return hmac.new(self.webhook_secret.encode(), payload.encode(), hashlib.sha256).hexdigest()

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        return hmac.compare_digest(self.sign(payload), signature or "")
