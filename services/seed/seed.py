"""Seed the default chocolate catalog. Safe to run repeatedly."""
from decimal import Decimal
import os
import sys
import time
from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../orders"))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../"))

from storefront.core_settings import get_settings
from storefront.domain.models import Category, Product
from storefront.infrastructure.db import build_engine, build_session_factory, init_models

MAX_ATTEMPTS = 30
SLEEP_SECONDS = 2

CATEGORIES = [
    {"name": "Chocolate Bars", "name_ar": "ألواح الشوكولاتة", "description": "Classic chocolate bars"},
    {"name": "Truffles", "name_ar": "ترافل", "description": "Premium chocolate truffles"},
    {"name": "Gift Boxes", "name_ar": "علب الهدايا", "description": "Curated gift collections"},
    {"name": "Seasonal", "name_ar": "موسمي", "description": "Limited edition seasonal items"},
]

PRODUCTS = {
    "Chocolate Bars": [
        {"name": "Dark 70% Bar", "name_ar": "لوح داكن ٧٠٪", "price": Decimal("1.500")},
        {"name": "Milk Hazelnut Bar", "name_ar": "لوح الحليب بالبندق", "price": Decimal("1.750")},
    ],
    "Truffles": [
        {"name": "Saffron Truffle Box (6)", "name_ar": "ترافل الزعفران (٦)", "price": Decimal("4.250")},
    ],
    "Gift Boxes": [
        {"name": "Assorted Gift Box", "name_ar": "علبة هدايا متنوعة", "price": Decimal("12.000")},
    ],
}

def wait_for_database(engine):
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return
        except OperationalError as e:
            print(f"Database not ready (attempt {attempt}): {e}")
            time.sleep(SLEEP_SECONDS)
    raise SystemExit("Database not ready after max attempts")

def seed(session_factory):
    with session_factory() as db:
        for data in CATEGORIES:
            category = db.scalar(select(Category).where(Category.name == data["name"]))
            if category is None:
                category = Category(**data)
                db.add(category)
                db.flush()
                print(f"Category created: {category.name}")
            else:
                print(f"Category already exists: {category.name}")
            for product_data in PRODUCTS.get(data["name"], []):
                exists = db.scalar(select(Product).where(Product.name == product_data["name"]))
                if exists is None:
                    db.add(Product(category_id=category.id, is_available=True, **product_data))
                    print(f"  Product created: {product_data['name']}")
        db.commit()

def main():
    settings = get_settings()
    engine = build_engine(settings)
    wait_for_database(engine)
    init_models(engine)
    seed(build_session_factory(engine))
    print("Seeding completed.")

if __name__ == "__main__":
    main()
