from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Protocol
import httpx
from sqlalchemy import select, func
from sqlalchemy.orm import Session
from storefront.application.errors import CatalogUnavailable
from storefront.domain.models import Category, Product
from shared.core import get_logger

logger = get_logger(__name__)

@dataclass(frozen=True)
class ProductSnapshot:
    """Price and availability of a product as read at one instant."""
    id: str
    name: str
    unit_price: Decimal
    is_available: bool

class CatalogReader(Protocol):
    def get_product(self, product_id: str) -> Optional[ProductSnapshot]:
        ...

class SqlCatalogReader:
    """Catalog backed by the products/categories tables of the service database."""

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: str) -> Optional[ProductSnapshot]:
        product = self.db.get(Product, product_id)
        if product is None:
            return None
        return ProductSnapshot(
            id=product.id,
            name=product.name,
            unit_price=Decimal(product.price),
            is_available=bool(product.is_available),
        )

    def list_categories(self) -> list[Category]:
        return list(self.db.scalars(select(Category).order_by(Category.name)))

    def list_products(self, category_id: Optional[str], page: int, limit: int) -> tuple[list[Product], int]:
        """Available products only, newest first."""
        where = [Product.is_available.is_(True)]
        if category_id:
            where.append(Product.category_id == category_id)
        total = self.db.scalar(select(func.count()).select_from(Product).where(*where))
        rows = self.db.scalars(
            select(Product)
            .where(*where)
            .order_by(Product.created_at.desc(), Product.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(rows), total or 0

class HttpCatalogReader:
    """Catalog served by a remote menu service.

    Expects ``GET {base_url}/menu/products/{id}`` to answer with ``id``,
    ``name``, ``price`` and ``is_available``; a 404 means the product does
    not exist.
    """

    def __init__(self, base_url: str, timeout: float = 5.0, client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return self._client.get(url, timeout=self.timeout)
        with httpx.Client(timeout=self.timeout) as client:
            return client.get(url)

    def get_product(self, product_id: str) -> Optional[ProductSnapshot]:
        url = f"{self.base_url}/menu/products/{product_id}"
        try:
            response = self._get(url)
        except httpx.HTTPError as e:
            logger.error(f"Catalog request failed: {e}", extra={'extra_fields': {'product_id': product_id}})
            raise CatalogUnavailable("Catalog service is unreachable") from e
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.error(
                f"Catalog answered {response.status_code}",
                extra={'extra_fields': {'product_id': product_id}}
            )
            raise CatalogUnavailable(f"Catalog service answered {response.status_code}")
        try:
            data = response.json()
            return ProductSnapshot(
                id=str(data["id"]),
                name=data.get("name", ""),
                # Parse the wire string directly, never through float
                unit_price=Decimal(str(data["price"])),
                is_available=bool(data.get("is_available", False)),
            )
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise CatalogUnavailable("Catalog returned a malformed product") from e
