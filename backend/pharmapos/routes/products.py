# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/pharmapos/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication and the products resource
(administrator, farmaceutico). Stock edits through PUT are last-writer-wins;
selling goes through POST /<id>/sell, which uses the inventory ledger.
"""
from flask import Blueprint, request, jsonify, g
from ..services import products_service
from ..models import Product
from ..validation import (
    PRODUCT_POLICY,
    validate_payload,
    enforce_rules_product,
    ValidationError,
)
from ..decorators import require_auth, require_resource
from ..permissions import Resource
from .sales import commit_sale_response

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_resource(Resource.PRODUCTS)
def list_products():
    """
    List products with optional search and pagination.

    Query params:
    - q: str (optional) - matches name, category or code, case-insensitive
    - category: str (optional) - exact category
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    return products_service.list_products(
        q=request.args.get("q"),
        category=request.args.get("category"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/low-stock")
@require_auth
@require_resource(Resource.PRODUCTS)
def low_stock_route():
    """Products whose stock is at or below their minimum."""
    products = products_service.list_low_stock()
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
@require_auth
@require_resource(Resource.PRODUCTS)
def get_product_route(product_id: int):
    product = products_service.get_product(product_id)
    if product is None:
        return {"error": "Product not found"}, 404
    return product.to_dict(), 200


@products_bp.post("")
@require_auth
@require_resource(Resource.PRODUCTS)
def create_product_route():
    """Create a new product. Prices are integer cents."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    created = products_service.create_product(patch=patch, owner_id=g.user_id)
    return created, 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_resource(Resource.PRODUCTS)
def update_product_route(product_id: int):
    """Update a product (partial)."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    updated = products_service.update_product(product_id=product_id, patch=patch)
    if not updated:
        return {"error": "Product not found"}, 404

    return updated, 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_resource(Resource.PRODUCTS)
def delete_product_route(product_id: int):
    """Delete a product. Its sale records keep their snapshots."""
    deleted = products_service.delete_product(product_id=product_id)
    if not deleted:
        return {"error": "Product not found"}, 404

    return {"ok": True}, 200


@products_bp.post("/<int:product_id>/sell")
@require_auth
@require_resource(Resource.PRODUCTS)
def sell_product_route(product_id: int):
    """
    Sell units of this product.

    Request body:
    - quantity: int (required, > 0)
    """
    payload = request.get_json(silent=True) or {}
    return commit_sale_response(product_id, payload.get("quantity"))
