from typing import Optional
from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool
from storefront.api.deps import get_orchestrator, get_principal
from storefront.application.service import OrderOrchestrator
from storefront.application.schemas import PaymentIntentRequest, PaymentIntentResponse, WebhookAck
from storefront.auth_local import Principal

router = APIRouter(prefix="/payments", tags=["payments"])

@router.post("/intent", response_model=PaymentIntentResponse)
def create_payment_intent(
    payload: PaymentIntentRequest,
    principal: Optional[Principal] = Depends(get_principal),
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
):
    """Retry path for card orders whose client secret was lost after placement."""
    result = orchestrator.create_payment_intent(principal, payload.order_id)
    return PaymentIntentResponse(
        order_id=result.order.id,
        amount=result.order.total_amount,
        client_secret=result.client_secret,
    )

@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(request: Request, orchestrator: OrderOrchestrator = Depends(get_orchestrator)):
    # Signature covers the exact bytes, so the body is read raw
    payload = await request.body()
    signature = request.headers.get("Stripe-Signature")
    await run_in_threadpool(orchestrator.handle_webhook, payload, signature)
    return WebhookAck()
