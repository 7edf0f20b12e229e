# backend/pharmapos/routes/system.py
"""
System health and version endpoints.

Health is reported per dependency so a failing check can be told apart
from a system that simply has not been bootstrapped yet.
"""

import sys
import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError
from ..extensions import db
from ..models import Product, SaleRecord, SessionToken, User, UserRole
from ..permissions import Role
from pharmapos.time_utils import utcnow

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


def check_database_health() -> dict:
    """Check database connectivity with cheap counts."""
    start_time = time.time()
    try:
        return {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {
                "users": db.session.query(User).count(),
                "products": db.session.query(Product).count(),
                "sales": db.session.query(SaleRecord).count(),
            }
        }
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": _elapsed_ms(start_time),
            "error": "Database error"
        }


def check_session_service_health() -> dict:
    """Count live sessions and expired ones awaiting cleanup."""
    start_time = time.time()
    try:
        now = utcnow()
        active_sessions = db.session.query(SessionToken).filter(
            SessionToken.is_revoked.is_(False),
            SessionToken.expires_at >= now,
        ).count()
        expired_sessions = db.session.query(SessionToken).filter(
            SessionToken.expires_at < now,
        ).count()

        return {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {
                "active_sessions": active_sessions,
                "expired_pending_cleanup": expired_sessions,
            }
        }
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Session service health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": _elapsed_ms(start_time),
            "error": "Session service error"
        }


def check_bootstrap_health() -> dict:
    """Degraded until an administrator exists."""
    start_time = time.time()
    try:
        admin_count = db.session.query(UserRole).filter(
            UserRole.role == Role.ADMINISTRATOR.value
        ).count()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Bootstrap health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": _elapsed_ms(start_time),
            "error": "Bootstrap check error"
        }

    if admin_count == 0:
        return {
            "status": "degraded",
            "latency_ms": _elapsed_ms(start_time),
            "warning": "No administrator yet; first-run setup pending",
        }
    return {
        "status": "healthy",
        "latency_ms": _elapsed_ms(start_time),
        "details": {"administrators": admin_count},
    }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded (degraded is still operational)
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "session_service": check_session_service_health(),
        "bootstrap": check_bootstrap_health(),
    }

    statuses = [check["status"] for check in checks.values()]
    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": _elapsed_ms(start_time),
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": API_VERSION,
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
