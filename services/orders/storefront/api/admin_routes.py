from typing import Optional
from fastapi import APIRouter, Depends, Query
from storefront.api.deps import get_orchestrator, get_principal
from storefront.api.routes import to_order_page
from storefront.application.service import OrderOrchestrator
from storefront.application.schemas import OrderListQuery, OrderPage, OrderRead, StatusUpdateRequest
from storefront.auth_local import Principal

router = APIRouter(prefix="/admin/orders", tags=["admin"])

@router.get("/", response_model=OrderPage)
def list_orders(
    status: Optional[str] = Query(None, pattern="^(ALL|PENDING|PREPARING|READY|COMPLETED|CANCELLED)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("date", pattern="^(date|status|amount)$"),
    principal: Optional[Principal] = Depends(get_principal),
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
):
    """List all orders for fulfillment staff, optionally filtered by status."""
    query = OrderListQuery(status=status, page=page, limit=limit, sort_by=sort_by)
    return to_order_page(orchestrator.list_orders(principal, query))

@router.post("/{order_id}/status", response_model=OrderRead)
def update_order_status(
    order_id: str,
    payload: StatusUpdateRequest,
    principal: Optional[Principal] = Depends(get_principal),
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.advance_status(principal, order_id, payload.status.value)
