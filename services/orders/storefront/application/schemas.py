from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from storefront.domain.models import FulfillmentType, OrderStatus, PaymentMethod

class CartItem(BaseModel):
    product_id: str
    quantity: int
    class Config:
        extra = "forbid"

class PlaceOrderRequest(BaseModel):
    items: list[CartItem]
    fulfillment_type: FulfillmentType
    payment_method: PaymentMethod
    scheduled_time: Optional[datetime] = None
    class Config:
        extra = "forbid"

class PaymentIntentRequest(BaseModel):
    order_id: str
    class Config:
        extra = "forbid"

class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    class Config:
        extra = "forbid"

class OrderListQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    sort_by: Literal["date", "status", "amount"] = "date"
    # Admin listing only; ALL disables the filter
    status: Optional[Literal["ALL", "PENDING", "PREPARING", "READY", "COMPLETED", "CANCELLED"]] = None

class OrderItemRead(BaseModel):
    product_id: str
    product_name_snapshot: Optional[str] = None
    quantity: int
    price_at_order: Decimal
    class Config:
        from_attributes = True

class PaymentRead(BaseModel):
    method: str
    status: str
    amount: Decimal
    transaction_id: Optional[str] = None
    class Config:
        from_attributes = True

class OrderRead(BaseModel):
    id: str
    owner_id: str
    status: str
    fulfillment_type: str
    scheduled_time: Optional[datetime] = None
    total_amount: Decimal
    created_at: datetime
    items: list[OrderItemRead]
    payment: PaymentRead
    class Config:
        from_attributes = True

class PlaceOrderResponse(BaseModel):
    order: OrderRead
    # Present for card orders when the payment intent was created
    client_secret: Optional[str] = None

class PaymentIntentResponse(BaseModel):
    order_id: str
    amount: Decimal
    client_secret: str

class Pagination(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int

class OrderPage(BaseModel):
    orders: list[OrderRead]
    pagination: Pagination

class CategoryRead(BaseModel):
    id: str
    name: str
    name_ar: Optional[str] = None
    description: Optional[str] = None
    class Config:
        from_attributes = True

class ProductRead(BaseModel):
    id: str
    name: str
    name_ar: Optional[str] = None
    description: Optional[str] = None
    description_ar: Optional[str] = None
    price: Decimal
    image_url: Optional[str] = None
    is_available: bool
    category_id: Optional[str] = None
    class Config:
        from_attributes = True

class ProductPage(BaseModel):
    products: list[ProductRead]
    pagination: Pagination

class WebhookAck(BaseModel):
    received: bool = True
