# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

# backend/pharmapos/routes/customers.py
"""
Customer management routes.

Every role may manage customers; all routes still require authentication.
"""
from flask import Blueprint, request, g
from ..services import customers_service
from ..models import Customer
from ..validation import CUSTOMER_POLICY, validate_payload, ValidationError
from ..decorators import require_auth, require_resource
from ..permissions import Resource

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_resource(Resource.CUSTOMERS)
def list_customers():
    """
    Query params:
    - q: str (optional) - matches name, document id or phone
    """
    customers = customers_service.list_customers(q=request.args.get("q"))
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_resource(Resource.CUSTOMERS)
def get_customer_route(customer_id: int):
    customer = customers_service.get_customer(customer_id)
    if customer is None:
        return {"error": "Customer not found"}, 404
    return customer.to_dict(), 200


@customers_bp.post("")
@require_auth
@require_resource(Resource.CUSTOMERS)
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    customer = customers_service.create_customer(patch=patch, owner_id=g.user_id)
    return customer.to_dict(), 201


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_resource(Resource.CUSTOMERS)
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    customer = customers_service.update_customer(customer_id=customer_id, patch=patch)
    if customer is None:
        return {"error": "Customer not found"}, 404
    return customer.to_dict(), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_resource(Resource.CUSTOMERS)
def delete_customer_route(customer_id: int):
    if not customers_service.delete_customer(customer_id=customer_id):
        return {"error": "Customer not found"}, 404
    return {"ok": True}, 200
