from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol
from storefront.infrastructure.catalog import CatalogReader
from .errors import InvalidQuantity, InvalidRequest, ProductNotFound, ProductUnavailable

# Order rows store quantities as INTEGER and money as NUMERIC(10,3)
MAX_LINE_QUANTITY = 999
MAX_ORDER_TOTAL = Decimal("9999999.999")

class CartLine(Protocol):
    product_id: str
    quantity: int

@dataclass(frozen=True)
class PricedLineItem:
    product_id: str
    product_name: str
    quantity: int
    price_at_order: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.price_at_order * self.quantity

@dataclass(frozen=True)
class PricedCart:
    line_items: tuple[PricedLineItem, ...]
    total_amount: Decimal

class PricingEngine:
    """Turns a cart into price-snapshot line items using live catalog prices.

    Client-supplied prices are never consulted. Totals are summed as
    ``Decimal`` so no binary rounding creeps in; rounding happens only when
    an amount is shown or converted to gateway minor units.
    """

    def __init__(self, catalog: CatalogReader):
        self.catalog = catalog

    def price_cart(self, items: Iterable[CartLine]) -> PricedCart:
        items = list(items)
        for item in items:
            if not 1 <= item.quantity <= MAX_LINE_QUANTITY:
                raise InvalidQuantity(item.product_id, item.quantity)

        line_items = []
        total = Decimal("0")
        for item in items:
            product = self.catalog.get_product(item.product_id)
            if product is None:
                raise ProductNotFound(item.product_id)
            if not product.is_available:
                raise ProductUnavailable(product.id, product.name)
            line = PricedLineItem(
                product_id=product.id,
                product_name=product.name,
                quantity=item.quantity,
                price_at_order=product.unit_price,
            )
            total += line.line_total
            line_items.append(line)
        if total > MAX_ORDER_TOTAL:
            raise InvalidRequest(f"Order total {total} exceeds the maximum of {MAX_ORDER_TOTAL}")
        return PricedCart(line_items=tuple(line_items), total_amount=total)
