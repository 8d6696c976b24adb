import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import hashlib
import hmac
import json
import time
from decimal import Decimal
from itertools import count
from typing import Optional
import pytest
from fastapi.testclient import TestClient
from storefront.application.errors import GatewayUnavailable
from storefront.application.service import OrderOrchestrator
from storefront.auth_local import ADMIN, Principal, create_access_token
from storefront.core_settings import Settings
from storefront.domain.models import Category, Product
from storefront.infrastructure.catalog import SqlCatalogReader
from storefront.infrastructure.db import build_engine, build_session_factory, init_models
from storefront.infrastructure.payment_gateway import PaymentIntent, StripePaymentGateway
from storefront.infrastructure.store import SqlOrderStore

WEBHOOK_SECRET = "whsec_test_secret"

def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Stripe-Signature header value for a payload, using Stripe's v1 scheme."""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"

def stripe_event(event_type: str, transaction_id: str, event_id: str = "evt_test_1") -> str:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": transaction_id, "object": "payment_intent"}},
    })

class FakePaymentGateway:
    """In-memory intents; webhooks are verified with the real Stripe scheme."""

    def __init__(self):
        self.intents = []
        self.unavailable = False
        self._ids = count(1)
        self._verifier = StripePaymentGateway(api_key=None)
        self.is_configured = True

    def create_intent(self, amount, order_id, metadata=None):
        if self.unavailable:
            raise GatewayUnavailable("Payment provider request failed")
        intent_id = f"pi_test_{next(self._ids)}"
        self.intents.append({"id": intent_id, "amount": amount, "order_id": order_id, "metadata": metadata})
        return PaymentIntent(client_secret=f"{intent_id}_secret_abc", provider_intent_id=intent_id)

    def verify_webhook(self, raw_payload, signature_header, shared_secret):
        return self._verifier.verify_webhook(raw_payload, signature_header, shared_secret)

@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite:///:memory:",
        JWT_SECRET="test-jwt-secret",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        LOG_LEVEL="WARNING",
    )

@pytest.fixture
def engine(settings):
    engine = build_engine(settings)
    init_models(engine)
    yield engine
    engine.dispose()

@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)

@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()

@pytest.fixture
def products(db):
    """p1 5.000 and p2 0.100 are on sale, p3 is not."""
    category = Category(id="c1", name="Truffles", name_ar="ترافل")
    db.add(category)
    db.add_all([
        Product(id="p1", name="Dark Truffle", price=Decimal("5.000"), is_available=True, category_id="c1"),
        Product(id="p2", name="Praline", price=Decimal("0.100"), is_available=True, category_id="c1"),
        Product(id="p3", name="Easter Egg", price=Decimal("3.000"), is_available=False, category_id="c1"),
    ])
    db.commit()
    return {"p1": Decimal("5.000"), "p2": Decimal("0.100"), "p3": Decimal("3.000")}

@pytest.fixture
def gateway():
    return FakePaymentGateway()

@pytest.fixture
def store(db):
    return SqlOrderStore(db)

@pytest.fixture
def orchestrator(db, store, gateway):
    return OrderOrchestrator(
        catalog=SqlCatalogReader(db),
        store=store,
        gateway=gateway,
        webhook_secret=WEBHOOK_SECRET,
    )

@pytest.fixture
def customer():
    return Principal(id="user-1")

@pytest.fixture
def admin():
    return Principal(id="admin-1", role=ADMIN)

@pytest.fixture
def client(settings, engine, gateway):
    from storefront.main import create_app
    app = create_app(settings=settings, payment_gateway=gateway, engine=engine)
    with TestClient(app) as client:
        yield client

@pytest.fixture
def customer_headers(settings):
    return {"Authorization": f"Bearer {create_access_token('user-1', settings)}"}

@pytest.fixture
def admin_headers(settings):
    return {"Authorization": f"Bearer {create_access_token('admin-1', settings, role=ADMIN)}"}
