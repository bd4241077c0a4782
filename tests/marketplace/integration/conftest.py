import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from marketplace.api.errors import register_exception_handlers
from marketplace.api.routes import routers
from marketplace.payments.gateway import get_gateway


@pytest.fixture()
def client():
    app = FastAPI()
    for router in routers:
        app.include_router(router)
    register_exception_handlers(app)
    return TestClient(app)


@pytest.fixture()
def notify():
    """Deliver a signed provider notification for ``payment_id``."""

    def _notify(client, payment_id, notification_type="payment"):
        body = {"type": notification_type, "payment_id": payment_id}
        signature = get_gateway().sign(json.dumps(body))
        return client.post("/payments/webhook", json=body, headers={"X-Signature": signature})

    return _notify
