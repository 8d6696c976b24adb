from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union
from storefront.auth_local import Principal
from storefront.domain.models import (
    Order, FulfillmentType, PaymentMethod, PaymentStatus, OrderStatus, utcnow,
)
from storefront.infrastructure.catalog import CatalogReader
from storefront.infrastructure.payment_gateway import EventKind, GatewayEvent, PaymentGateway
from storefront.infrastructure.store import Page, SqlOrderStore
from shared.core import get_logger
from .errors import InvalidRequest, InvalidSignature, OrderNotFound, PaymentNotFound, Unauthenticated, Unauthorized
from .pricing import PricingEngine
from .schemas import OrderListQuery, PlaceOrderRequest

logger = get_logger(__name__)

EVENT_PAYMENT_STATUS = {
    EventKind.PAYMENT_SUCCEEDED: PaymentStatus.SUCCESS,
    EventKind.PAYMENT_FAILED: PaymentStatus.FAILED,
}

@dataclass
class PlacementResult:
    order: Order
    client_secret: Optional[str] = None

def _require_principal(principal: Optional[Principal]) -> Principal:
    if principal is None:
        raise Unauthenticated("Authentication required")
    return principal

def _require_admin(principal: Optional[Principal]) -> Principal:
    principal = _require_principal(principal)
    if not principal.is_admin:
        raise Unauthorized("Admin access required")
    return principal

def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

class OrderOrchestrator:
    """Coordinates pricing, persistence and the payment gateway.

    Public operations:
      - place_order: price the cart, persist the order, open a card payment
      - create_payment_intent: reissue the client secret for a pending card order
      - handle_webhook: verify a gateway event and reconcile the payment record
      - advance_status: fulfillment staff moving an order through its lifecycle
    """

    def __init__(
        self,
        catalog: CatalogReader,
        store: SqlOrderStore,
        gateway: PaymentGateway,
        webhook_secret: Optional[str] = None,
    ):
        self.pricing = PricingEngine(catalog)
        self.store = store
        self.gateway = gateway
        self.webhook_secret = webhook_secret

    def place_order(self, principal: Optional[Principal], request: PlaceOrderRequest) -> PlacementResult:
        principal = _require_principal(principal)

        if not request.items:
            raise InvalidRequest("Order items are required")
        try:
            fulfillment_type = FulfillmentType(request.fulfillment_type)
        except ValueError:
            raise InvalidRequest("Valid order type (DELIVERY or PICKUP) is required")
        try:
            payment_method = PaymentMethod(request.payment_method)
        except ValueError:
            raise InvalidRequest("Valid payment method (CASH or CARD) is required")
        scheduled_time = None
        if request.scheduled_time is not None:
            scheduled_time = _as_naive_utc(request.scheduled_time)
            if scheduled_time <= utcnow():
                raise InvalidRequest("Scheduled time must be in the future")

        priced = self.pricing.price_cart(request.items)

        order = self.store.create_order(
            owner_id=principal.id,
            fulfillment_type=fulfillment_type.value,
            scheduled_time=scheduled_time,
            line_items=priced.line_items,
            payment_method=payment_method.value,
            total_amount=priced.total_amount,
        )
        logger.info(
            f"Order placed: {order.id}",
            extra={
                'extra_fields': {
                    'order_id': order.id,
                    'owner_id': principal.id,
                    'payment_method': payment_method.value,
                    'total_amount': str(order.total_amount),
                    'items': len(priced.line_items),
                }
            }
        )

        if payment_method is PaymentMethod.CASH:
            return PlacementResult(order=order)

        # The order is already committed; a gateway failure here only loses the client secret
        client_secret = self._open_card_payment(principal, order)
        return PlacementResult(order=order, client_secret=client_secret)

    def create_payment_intent(self, principal: Optional[Principal], order_id: str) -> PlacementResult:
        principal = _require_principal(principal)
        order = self.store.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if order.owner_id != principal.id:
            raise Unauthorized("Order belongs to another customer")
        if order.payment.method != PaymentMethod.CARD.value:
            raise InvalidRequest("Order is not paid by card")
        if order.payment.status != PaymentStatus.PENDING.value:
            raise InvalidRequest("Order payment is already settled")
        if order.status == OrderStatus.CANCELLED.value:
            raise InvalidRequest("Order is cancelled")
        client_secret = self._open_card_payment(principal, order)
        return PlacementResult(order=order, client_secret=client_secret)

    def _open_card_payment(self, principal: Principal, order: Order) -> str:
        intent = self.gateway.create_intent(order.total_amount, order.id, {"userId": principal.id})
        # Stored before the secret leaves, so the webhook can find this payment
        self.store.attach_transaction_id(order.id, intent.provider_intent_id)
        logger.info(
            f"Payment intent created for order {order.id}",
            extra={'extra_fields': {'order_id': order.id, 'transaction_id': intent.provider_intent_id}}
        )
        return intent.client_secret

    def handle_webhook(self, raw_payload: Union[bytes, str], signature_header: Optional[str]) -> GatewayEvent:
        try:
            event = self.gateway.verify_webhook(raw_payload, signature_header, self.webhook_secret)
        except InvalidSignature as e:
            logger.warning(f"Webhook rejected: {e.message}")
            raise

        status = EVENT_PAYMENT_STATUS.get(event.kind)
        if status is None:
            logger.info(
                f"Unhandled event type {event.provider_type}",
                extra={'extra_fields': {'event_id': event.event_id}}
            )
            return event
        if not event.transaction_id:
            logger.warning(
                f"Webhook {event.provider_type} carries no transaction id",
                extra={'extra_fields': {'event_id': event.event_id}}
            )
            return event

        try:
            self.store.update_payment_status_by_transaction_id(event.transaction_id, status.value)
        except PaymentNotFound:
            # Not actionable: an intent this service never recorded
            logger.warning(
                f"No payment matches transaction {event.transaction_id}",
                extra={'extra_fields': {'event_id': event.event_id, 'event_type': event.provider_type}}
            )
            return event

        logger.info(
            f"Payment {event.transaction_id} reconciled to {status.value}",
            extra={'extra_fields': {'event_id': event.event_id, 'event_type': event.provider_type}}
        )
        return event

    def advance_status(self, principal: Optional[Principal], order_id: str, new_status: str) -> Order:
        _require_admin(principal)
        order = self.store.update_status(order_id, new_status)
        logger.info(
            f"Order {order_id} moved to {order.status}",
            extra={'extra_fields': {'order_id': order_id, 'status': order.status}}
        )
        return order

    def get_order(self, principal: Optional[Principal], order_id: str) -> Order:
        principal = _require_principal(principal)
        order = self.store.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if order.owner_id != principal.id and not principal.is_admin:
            raise Unauthorized("Order belongs to another customer")
        return order

    def list_my_orders(self, principal: Optional[Principal], query: OrderListQuery) -> Page[Order]:
        principal = _require_principal(principal)
        return self.store.list_for_owner(principal.id, page=query.page, limit=query.limit, sort_by=query.sort_by)

    def list_orders(self, principal: Optional[Principal], query: OrderListQuery) -> Page[Order]:
        _require_admin(principal)
        return self.store.list_all(status=query.status, page=query.page, limit=query.limit, sort_by=query.sort_by)
