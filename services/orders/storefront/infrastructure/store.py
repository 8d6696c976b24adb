from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from math import ceil
from typing import Generic, Optional, Sequence, TypeVar
from sqlalchemy import select, update, func, case
from sqlalchemy.orm import Session
from storefront.application.errors import InvalidTransition, OrderNotFound, PaymentNotFound
from storefront.application.pricing import PricedLineItem
from storefront.domain.models import (
    Order, OrderItem, Payment, OrderStatus, PaymentMethod, PaymentStatus,
    can_transition, utcnow,
)

T = TypeVar("T")

# Status sorts in lifecycle order, not alphabetically
STATUS_RANK = case(
    {status.value: rank for rank, status in enumerate(OrderStatus)},
    value=Order.status,
    else_=len(OrderStatus),
)

SORT_COLUMNS = {
    "date": Order.created_at.desc(),
    "status": STATUS_RANK.asc(),
    "amount": Order.total_amount.desc(),
}

@dataclass
class Page(Generic[T]):
    items: list[T]
    page: int
    limit: int
    total_count: int

    @property
    def total_pages(self) -> int:
        return ceil(self.total_count / self.limit) if self.limit else 0

class SqlOrderStore:
    """Order aggregate persistence.

    The aggregate (order header, line items, payment record) is written in a
    single transaction. After creation the only writes are the two narrow
    conditional updates below, each scoped to one order.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_order(
        self,
        owner_id: str,
        fulfillment_type: str,
        scheduled_time: Optional[datetime],
        line_items: Sequence[PricedLineItem],
        payment_method: str,
        total_amount: Decimal,
    ) -> Order:
        method = PaymentMethod(payment_method)
        # Cash is recorded as settled the moment it is chosen
        payment_status = PaymentStatus.SUCCESS if method is PaymentMethod.CASH else PaymentStatus.PENDING
        order = Order(
            owner_id=owner_id,
            status=OrderStatus.PENDING.value,
            fulfillment_type=fulfillment_type,
            scheduled_time=scheduled_time,
            total_amount=total_amount,
            items=[
                OrderItem(
                    position=position,
                    product_id=line.product_id,
                    product_name_snapshot=line.product_name,
                    quantity=line.quantity,
                    price_at_order=line.price_at_order,
                )
                for position, line in enumerate(line_items)
            ],
            payment=Payment(
                method=method.value,
                status=payment_status.value,
                amount=total_amount,
            ),
        )
        try:
            self.db.add(order)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(order)
        return order

    def get(self, order_id: str) -> Optional[Order]:
        return self.db.get(Order, order_id)

    def update_status(self, order_id: str, new_status: str) -> Order:
        target = OrderStatus(new_status)
        order = self.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        current = order.status
        if not can_transition(current, target):
            raise InvalidTransition(order_id, current, target.value)
        # Guarded on the status we validated against, so a concurrent change wins cleanly
        result = self.db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == current)
            .values(status=target.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            self.db.refresh(order)
            raise InvalidTransition(order_id, order.status, target.value)
        self.db.commit()
        self.db.refresh(order)
        return order

    def attach_transaction_id(self, order_id: str, transaction_id: str) -> Payment:
        payment = self.db.scalar(select(Payment).where(Payment.order_id == order_id))
        if payment is None:
            raise OrderNotFound(order_id)
        payment.transaction_id = transaction_id
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def update_payment_status_by_transaction_id(self, transaction_id: str, new_status: str) -> None:
        status = PaymentStatus(new_status)
        # Single conditional write keyed by transaction id: redelivery rewrites the same value
        result = self.db.execute(
            update(Payment)
            .where(Payment.transaction_id == transaction_id)
            .values(status=status.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            raise PaymentNotFound(transaction_id)
        self.db.commit()
        # Loaded payments are stale after a bulk update
        self.db.expire_all()

    def _page(self, where: list, page: int, limit: int, sort_by: str) -> Page[Order]:
        order_by = SORT_COLUMNS.get(sort_by, SORT_COLUMNS["date"])
        total = self.db.scalar(select(func.count()).select_from(Order).where(*where))
        rows = self.db.scalars(
            select(Order)
            .where(*where)
            .order_by(order_by, Order.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).unique()
        return Page(items=list(rows), page=page, limit=limit, total_count=total or 0)

    def list_for_owner(self, owner_id: str, page: int = 1, limit: int = 20, sort_by: str = "date") -> Page[Order]:
        return self._page([Order.owner_id == owner_id], page, limit, sort_by)

    def list_all(self, status: Optional[str] = None, page: int = 1, limit: int = 20, sort_by: str = "date") -> Page[Order]:
        where = []
        if status and status != "ALL":
            where.append(Order.status == OrderStatus(status).value)
        return self._page(where, page, limit, sort_by)
