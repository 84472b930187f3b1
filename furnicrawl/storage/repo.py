"""Repository helpers for interacting with persistent storage."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from furnicrawl.extractors.schemas import StandardProductRecord

from .models_sql import Product


def get_product(session: Session, retailer: str, product_id: str) -> Product | None:
    statement = select(Product).where(
        Product.retailer == retailer,
        Product.product_id == product_id,
    )
    return session.execute(statement).scalar_one_or_none()


def upsert_product(session: Session, record: StandardProductRecord) -> tuple[Product, bool]:
    """Insert or refresh the row for ``(record.retailer, record.product_id)``.

    Returns the row and whether it was newly created.
    """

    product = get_product(session, *record.key)
    created = product is None
    if product is None:
        product = Product(retailer=record.retailer, product_id=record.product_id)
        session.add(product)

    product.name = record.name
    product.slug = record.slug
    product.price = record.price
    product.raw_data = record.raw_data
    product.url = record.url
    product.description = record.description
    product.image_url = record.image_url
    product.specifications = record.specifications
    session.flush()
    return product, created


def count_products(session: Session, retailer: str | None = None) -> int:
    statement = select(func.count()).select_from(Product)
    if retailer:
        statement = statement.where(Product.retailer == retailer)
    return int(session.execute(statement).scalar_one())
