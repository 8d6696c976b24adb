from typing import Optional
from fastapi import APIRouter, Depends, Query
from storefront.api.deps import get_orchestrator, get_principal
from storefront.application.service import OrderOrchestrator
from storefront.application.schemas import (
    OrderListQuery, OrderPage, OrderRead, Pagination, PlaceOrderRequest, PlaceOrderResponse,
)
from storefront.auth_local import Principal
from storefront.infrastructure.store import Page

router = APIRouter(prefix="/orders", tags=["orders"])

def to_order_page(page: Page) -> OrderPage:
    return OrderPage(
        orders=[OrderRead.model_validate(o) for o in page.items],
        pagination=Pagination(
            page=page.page,
            limit=page.limit,
            total_count=page.total_count,
            total_pages=page.total_pages,
        ),
    )

@router.post("/", response_model=PlaceOrderResponse, status_code=201)
def place_order(
    payload: PlaceOrderRequest,
    principal: Optional[Principal] = Depends(get_principal),
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
):
    """Place an order; card orders also get the client secret for confirming the charge."""
    result = orchestrator.place_order(principal, payload)
    return PlaceOrderResponse(order=OrderRead.model_validate(result.order), client_secret=result.client_secret)

@router.get("/my", response_model=OrderPage)
def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("date", pattern="^(date|status|amount)$"),
    principal: Optional[Principal] = Depends(get_principal),
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
):
    query = OrderListQuery(page=page, limit=limit, sort_by=sort_by)
    return to_order_page(orchestrator.list_my_orders(principal, query))

@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: str,
    principal: Optional[Principal] = Depends(get_principal),
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.get_order(principal, order_id)
