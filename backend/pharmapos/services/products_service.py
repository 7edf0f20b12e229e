# backend/pharmapos/services/products_service.py
"""
Products Service

Plain CRUD over Product plus the low-stock view.

STOCK EDITS: stock_quantity set here is last-writer-wins and is not
serialized against sales_service.commit_sale. A stock edit that races a sale
can overwrite the sale's decrement. Sales themselves never go through here.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Product
from pharmapos.time_utils import utcnow

PRODUCT_MUTABLE_FIELDS = {
    "name", "category", "code",
    "cost_price_cents", "sale_price_cents",
    "stock_quantity", "min_stock_quantity",
    "expiry_date",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products(
    q: str | None = None,
    category: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional search and pagination.

    Args:
        q: Case-insensitive substring matched against name, category and code
        category: Exact category filter
        page: Page number (1-indexed). If None, returns all items.
        per_page: Items per page (default 20, max 100)

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)

    if q:
        pattern = f"%{q.strip()}%"
        base_query = base_query.filter(
            or_(
                Product.name.ilike(pattern),
                Product.category.ilike(pattern),
                Product.code.ilike(pattern),
            )
        )
    if category:
        base_query = base_query.filter(Product.category == category)

    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def list_low_stock() -> list[Product]:
    """Products at or below their alert threshold, emptiest first."""
    return (
        db.session.query(Product)
        .filter(Product.stock_quantity <= Product.min_stock_quantity)
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
        .all()
    )


def create_product(*, patch: dict, owner_id: int | None = None) -> dict:
    """
    Create product using a validated patch dict.

    min_stock_quantity falls back to LOW_STOCK_DEFAULT_MIN when omitted.
    """
    p = Product(owner_id=owner_id)
    apply_product_patch(p, patch)

    if p.min_stock_quantity is None:
        p.min_stock_quantity = current_app.config["LOW_STOCK_DEFAULT_MIN"]
    if p.stock_quantity is None:
        p.stock_quantity = 0
    if p.cost_price_cents is None:
        p.cost_price_cents = 0

    db.session.add(p)
    db.session.commit()

    current_app.logger.info("Product created: id=%s name=%s by user=%s", p.id, p.name, owner_id)
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict | None:
    """
    Update a product.

    Returns:
        Updated product dict, or None if not found
    """
    p = db.session.get(Product, product_id)
    if not p:
        return None

    apply_product_patch(p, patch)
    p.updated_at = utcnow()
    db.session.commit()

    if "stock_quantity" in patch:
        current_app.logger.info(
            "Product stock overwritten: id=%s stock=%s", p.id, p.stock_quantity
        )
    return p.to_dict()


def delete_product(*, product_id: int) -> bool:
    """
    Hard-delete a product.

    Sale records keep their name and price snapshots, so history survives.

    Returns:
        True if deleted, False if not found
    """
    p = db.session.get(Product, product_id)
    if not p:
        return False

    db.session.delete(p)
    db.session.commit()
    current_app.logger.info("Product deleted: id=%s", product_id)
    return True
