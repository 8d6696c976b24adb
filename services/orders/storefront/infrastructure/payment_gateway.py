"""
Payment gateway adapter

Card payments go through Stripe payment intents: the service creates an
intent for the order total and hands the client secret to the browser, which
confirms the charge directly with Stripe. The outcome comes back later as a
signed webhook, verified here before anything in it is trusted.
"""

import json
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Optional, Protocol, Union
import stripe
from storefront.application.errors import GatewayUnavailable, InvalidRequest, InvalidSignature
from shared.core import get_logger

logger = get_logger(__name__)

class EventKind(str, Enum):
    PAYMENT_SUCCEEDED = "PAYMENT_SUCCEEDED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    UNRECOGNIZED = "UNRECOGNIZED"

@dataclass(frozen=True)
class PaymentIntent:
    client_secret: str
    provider_intent_id: str

@dataclass(frozen=True)
class GatewayEvent:
    kind: EventKind
    transaction_id: Optional[str]
    provider_type: str
    event_id: Optional[str] = None

class PaymentGateway(Protocol):
    def create_intent(self, amount: Decimal, order_id: str, metadata: Optional[dict[str, str]] = None) -> PaymentIntent:
        ...

    def verify_webhook(
        self,
        raw_payload: Union[bytes, str],
        signature_header: Optional[str],
        shared_secret: Optional[str],
    ) -> GatewayEvent:
        ...

def to_minor_units(amount: Decimal, exponent: int) -> int:
    """Convert a decimal amount to the integer minor units a gateway charges in.

    ``to_minor_units(Decimal("10.5"), 3) == 10500`` (fils).
    """
    quantum = Decimal(1).scaleb(-exponent)
    return int(Decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP).scaleb(exponent))

class StripePaymentGateway:
    STRIPE_EVENT_KINDS = {
        "payment_intent.succeeded": EventKind.PAYMENT_SUCCEEDED,
        "payment_intent.payment_failed": EventKind.PAYMENT_FAILED,
    }

    def __init__(
        self,
        api_key: Optional[str],
        currency: str = "bhd",
        currency_exponent: int = 3,
        timeout: float = 10.0,
        tolerance: int = 300,
        client: Any = None,
    ):
        self.currency = currency
        self.currency_exponent = currency_exponent
        self.tolerance = tolerance
        if client is None and api_key:
            client = stripe.StripeClient(
                api_key,
                http_client=stripe.RequestsClient(timeout=timeout),
                max_network_retries=1,
            )
        self._client = client
        if self._client is None:
            logger.warning("Stripe secret key not configured. Card payments are disabled.")

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def create_intent(self, amount: Decimal, order_id: str, metadata: Optional[dict[str, str]] = None) -> PaymentIntent:
        if self._client is None:
            raise GatewayUnavailable("Payment provider is not configured")
        params = {
            "amount": to_minor_units(amount, self.currency_exponent),
            "currency": self.currency,
            "metadata": {"orderId": order_id, **(metadata or {})},
        }
        # Newer SDKs group the v1 resources under client.v1
        services = getattr(self._client, "v1", self._client)
        try:
            intent = services.payment_intents.create(
                params=params,
                options={"idempotency_key": f"order_{order_id}"},
            )
        except stripe.StripeError as e:
            logger.error(
                f"Stripe payment intent creation failed: {type(e).__name__}",
                extra={'extra_fields': {'order_id': order_id}}
            )
            raise GatewayUnavailable("Payment provider request failed") from e
        return PaymentIntent(client_secret=intent.client_secret, provider_intent_id=intent.id)

    def verify_webhook(
        self,
        raw_payload: Union[bytes, str],
        signature_header: Optional[str],
        shared_secret: Optional[str],
    ) -> GatewayEvent:
        if not shared_secret:
            raise InvalidSignature("Webhook secret is not configured")
        if not signature_header:
            raise InvalidSignature("Missing signature header")
        try:
            payload = raw_payload.decode("utf-8") if isinstance(raw_payload, bytes) else raw_payload
        except UnicodeDecodeError as e:
            # Stripe signs UTF-8 JSON, so these bytes cannot carry a valid signature
            raise InvalidSignature("Webhook signature verification failed") from e

        # Verify signature BEFORE parsing
        try:
            stripe.WebhookSignature.verify_header(payload, signature_header, shared_secret, self.tolerance)
        except stripe.SignatureVerificationError as e:
            raise InvalidSignature("Webhook signature verification failed") from e

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise InvalidRequest("Webhook payload is not valid JSON") from e
        if not isinstance(event, dict):
            raise InvalidRequest("Webhook payload is not an event object")

        event_type = event.get("type", "unknown")
        data = event.get("data") or {}
        data_object = (data.get("object") or {}) if isinstance(data, dict) else None
        if not isinstance(data_object, dict):
            raise InvalidRequest("Webhook event data is not an object")
        return GatewayEvent(
            kind=self.STRIPE_EVENT_KINDS.get(event_type, EventKind.UNRECOGNIZED),
            transaction_id=data_object.get("id"),
            provider_type=event_type,
            event_id=event.get("id"),
        )
