# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/pharmapos/routes/sales.py
"""
Sales routes

POST /api/sales commits a sale through the inventory ledger. Selling is part
of the products resource, so farmaceutico and administrator may sell;
operador_caixa may not. Reading the sale history is part of reports.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..services.sales_service import SaleError, LedgerInconsistency
from ..decorators import require_auth, require_resource
from ..permissions import Resource
from pharmapos.time_utils import parse_iso_datetime

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

SALE_ERROR_STATUS = {
    SaleError.INVALID_QUANTITY: 400,
    SaleError.PRODUCT_NOT_FOUND: 404,
    SaleError.INSUFFICIENT_STOCK: 409,
    SaleError.LEDGER_INCONSISTENT: 500,
}


def sale_error_response(e: SaleError):
    if isinstance(e, LedgerInconsistency):
        # Operator detail is in the log and the security event trail
        return jsonify({
            "error": "Sale could not be recorded. Stock was not changed." if e.compensated
            else "Sale could not be recorded. Contact an administrator.",
            "reason": e.reason,
        }), 500
    body = {"error": str(e), "reason": e.reason}
    if e.details:
        body["details"] = e.details
    return jsonify(body), SALE_ERROR_STATUS.get(e.reason, 400)


def commit_sale_response(product_id, quantity):
    """Run commit_sale for the current caller and shape the HTTP response."""
    try:
        record = sales_service.commit_sale(
            product_id=product_id,
            quantity=quantity,
            acting_user_id=g.user_id,
        )
    except SaleError as e:
        return sale_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to commit sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(record.to_dict()), 201


@sales_bp.post("")
@require_auth
@require_resource(Resource.PRODUCTS)
def create_sale_route():
    """
    Commit a sale.

    Request body:
    - product_id: int (required)
    - quantity: int (required, > 0)

    201 -> the sale record. Failures return {error, reason}:
    400 invalid_quantity, 404 product_not_found, 409 insufficient_stock,
    500 ledger_inconsistent.
    """
    data = request.get_json(silent=True) or {}
    product_id = data.get("product_id")

    if isinstance(product_id, bool) or not isinstance(product_id, int):
        return jsonify({"error": "product_id must be an integer", "reason": "invalid_input"}), 400

    return commit_sale_response(product_id, data.get("quantity"))


@sales_bp.get("")
@require_auth
@require_resource(Resource.REPORTS)
def list_sales_route():
    """
    List sale records, newest first.

    Query params:
    - since: ISO-8601 datetime (optional)
    - limit: int (optional, max 500)
    """
    since_raw = request.args.get("since")
    limit = request.args.get("limit", type=int)

    try:
        since = parse_iso_datetime(since_raw) if since_raw else None
    except ValueError:
        return jsonify({"error": "since must be an ISO-8601 datetime"}), 400

    if limit is not None:
        limit = max(1, min(limit, 500))

    records = sales_service.list_sales(since=since, limit=limit)
    return jsonify({"sales": [r.to_dict() for r in records], "count": len(records)}), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_resource(Resource.REPORTS)
def get_sale_route(sale_id: int):
    record = sales_service.get_sale(sale_id)
    if record is None:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify(record.to_dict()), 200
