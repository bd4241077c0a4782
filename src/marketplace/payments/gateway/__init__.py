"""Active payment gateway.

The gateway is built on first use from the environment
(``PAYMENT_WEBHOOK_SECRET``, ``FRONTEND_URL``). Tests swap it with
``set_gateway()`` and drop it with ``reset_gateway()``.
"""

import os

from marketplace.payments.gateway.fake_adapter import FakeGateway
from marketplace.payments.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def _gateway_from_env() -> PaymentGateway:
    return FakeGateway(
        webhook_secret=os.environ.get("PAYMENT_WEBHOOK_SECRET", "test-secret"),
        frontend_url=os.environ.get("FRONTEND_URL", "http://localhost:3000"),
    )


def get_gateway() -> PaymentGateway:
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = _gateway_from_env()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    global _current_gateway
    _current_gateway = None
