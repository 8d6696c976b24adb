from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from storefront.api.deps import get_db
from storefront.application.schemas import CategoryRead, Pagination, ProductPage, ProductRead
from storefront.domain.models import Product
from storefront.infrastructure.catalog import SqlCatalogReader
from math import ceil

router = APIRouter(prefix="/menu", tags=["menu"])

@router.get("/categories", response_model=list[CategoryRead])
def list_categories(db: Session = Depends(get_db)):
    return SqlCatalogReader(db).list_categories()

@router.get("/products", response_model=ProductPage)
def list_products(
    category_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Products currently on sale, newest first."""
    products, total = SqlCatalogReader(db).list_products(category_id, page, limit)
    return ProductPage(
        products=[ProductRead.model_validate(p) for p in products],
        pagination=Pagination(page=page, limit=limit, total_count=total, total_pages=ceil(total / limit)),
    )

@router.get("/products/{product_id}", response_model=ProductRead)
def get_product(product_id: str, db: Session = Depends(get_db)):
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
