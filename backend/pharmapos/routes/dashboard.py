# Overview: Flask API route for the dashboard landing page.

from flask import Blueprint, jsonify

from ..decorators import require_auth, require_resource
from ..permissions import Resource
from ..services import reporting_service

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
@require_resource(Resource.DASHBOARD)
def dashboard():
    """Counts, stock value and low-stock alerts. Open to every role."""
    return jsonify(reporting_service.dashboard_stats()), 200
