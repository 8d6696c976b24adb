from decimal import Decimal
import json
from types import SimpleNamespace
import time
import pytest
import stripe
from storefront.application.errors import GatewayUnavailable, InvalidRequest, InvalidSignature
from storefront.infrastructure.payment_gateway import EventKind, StripePaymentGateway, to_minor_units
from conftest import WEBHOOK_SECRET, sign_payload, stripe_event

class FakePaymentIntents:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def create(self, params=None, options=None):
        self.calls.append((params, options))
        if self.error is not None:
            raise self.error
        return SimpleNamespace(id="pi_123", client_secret="pi_123_secret_abc")

def gateway_with(intents):
    return StripePaymentGateway(api_key="sk_test_x", client=SimpleNamespace(payment_intents=intents))

@pytest.mark.parametrize("amount,exponent,expected", [
    (Decimal("10.300"), 3, 10300),
    (Decimal("5"), 3, 5000),
    (Decimal("0.0005"), 3, 1),
    (Decimal("19.99"), 2, 1999),
])
def test_to_minor_units(amount, exponent, expected):
    assert to_minor_units(amount, exponent) == expected

def test_create_intent_charges_minor_units_once_per_order():
    intents = FakePaymentIntents()
    intent = gateway_with(intents).create_intent(Decimal("10.300"), "order-1", {"userId": "user-1"})

    assert intent.provider_intent_id == "pi_123"
    assert intent.client_secret == "pi_123_secret_abc"
    params, options = intents.calls[0]
    assert params["amount"] == 10300
    assert params["currency"] == "bhd"
    assert params["metadata"] == {"orderId": "order-1", "userId": "user-1"}
    assert options == {"idempotency_key": "order_order-1"}

@pytest.mark.parametrize("error", [
    stripe.APIConnectionError("Request timed out"),
    stripe.AuthenticationError("Invalid API key"),
])
def test_create_intent_normalizes_stripe_errors(error):
    with pytest.raises(GatewayUnavailable) as exc:
        gateway_with(FakePaymentIntents(error=error)).create_intent(Decimal("1"), "order-1")
    assert "timed out" not in exc.value.message

def test_create_intent_without_configuration():
    gateway = StripePaymentGateway(api_key=None)
    assert not gateway.is_configured
    with pytest.raises(GatewayUnavailable):
        gateway.create_intent(Decimal("1"), "order-1")

@pytest.mark.parametrize("event_type,kind", [
    ("payment_intent.succeeded", EventKind.PAYMENT_SUCCEEDED),
    ("payment_intent.payment_failed", EventKind.PAYMENT_FAILED),
    ("charge.refunded", EventKind.UNRECOGNIZED),
])
def test_verify_webhook_maps_event_kinds(event_type, kind):
    payload = stripe_event(event_type, "pi_123")
    event = StripePaymentGateway(api_key=None).verify_webhook(payload.encode(), sign_payload(payload), WEBHOOK_SECRET)
    assert event.kind is kind
    assert event.transaction_id == "pi_123"
    assert event.provider_type == event_type
    assert event.event_id == "evt_test_1"

def test_verify_webhook_rejects_tampered_body():
    payload = stripe_event("payment_intent.succeeded", "pi_123")
    header = sign_payload(payload)
    tampered = payload.replace("pi_123", "pi_999")
    with pytest.raises(InvalidSignature):
        StripePaymentGateway(api_key=None).verify_webhook(tampered, header, WEBHOOK_SECRET)

def test_verify_webhook_rejects_body_that_is_not_utf8():
    payload = stripe_event("payment_intent.succeeded", "pi_123").encode() + b"\xff\xfe"
    with pytest.raises(InvalidSignature):
        StripePaymentGateway(api_key=None).verify_webhook(payload, "t=1,v1=deadbeef", WEBHOOK_SECRET)

@pytest.mark.parametrize("header", [
    None,
    "",
    "t=123,v1=deadbeef",
    sign_payload(stripe_event("payment_intent.succeeded", "pi_123"), secret="whsec_other"),
    sign_payload(stripe_event("payment_intent.succeeded", "pi_123"), timestamp=int(time.time()) - 3600),
])
def test_verify_webhook_rejects_bad_signatures(header):
    payload = stripe_event("payment_intent.succeeded", "pi_123")
    with pytest.raises(InvalidSignature):
        StripePaymentGateway(api_key=None).verify_webhook(payload, header, WEBHOOK_SECRET)

def test_verify_webhook_requires_a_secret():
    payload = stripe_event("payment_intent.succeeded", "pi_123")
    with pytest.raises(InvalidSignature):
        StripePaymentGateway(api_key=None).verify_webhook(payload, sign_payload(payload), None)

def test_verify_webhook_signed_garbage_is_invalid_request():
    payload = "not json"
    with pytest.raises(InvalidRequest):
        StripePaymentGateway(api_key=None).verify_webhook(payload, sign_payload(payload), WEBHOOK_SECRET)

@pytest.mark.parametrize("data", [["pi_123"], "pi_123", {"object": "pi_123"}])
def test_verify_webhook_signed_event_with_malformed_data(data):
    payload = json.dumps({"id": "evt_1", "type": "payment_intent.succeeded", "data": data})
    with pytest.raises(InvalidRequest):
        StripePaymentGateway(api_key=None).verify_webhook(payload, sign_payload(payload), WEBHOOK_SECRET)
