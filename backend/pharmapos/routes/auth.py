# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/pharmapos/routes/auth.py
"""
Authentication API routes

- First-run bootstrap of the initial administrator (public, one time only)
- Login by handle + password, returning a bearer token and the caller's
  navigation menu
- Logout revokes the session; validate re-resolves it
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import auth_service
from ..services import bootstrap_service
from ..services import session_service
from ..services import permission_service
from ..services.bootstrap_service import BootstrapError
from ..services.session_service import AuthFailure
from ..permissions import allowed_resources
from ..validation import ValidationError
from ..decorators import bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, role) -> dict:
    return {
        "user": user.to_dict(),
        "role": role.value if role else None,
        "navigation": allowed_resources(role),
    }


@auth_bp.get("/bootstrap")
def bootstrap_status_route():
    """Tell the frontend whether to show the first-run setup screen."""
    return jsonify({"has_users": bootstrap_service.has_any_users()}), 200


@auth_bp.post("/bootstrap")
def bootstrap_route():
    """
    Create the first administrator.

    Only succeeds while there are no users. Losers of a concurrent race get
    409 already_bootstrapped and should sign in normally.
    """
    data = request.get_json(silent=True) or {}

    try:
        user = bootstrap_service.create_first_administrator(
            display_name=data.get("display_name"),
            username=data.get("username"),
            password=data.get("password"),
        )
    except BootstrapError as e:
        status = 400 if e.reason == BootstrapError.WEAK_PASSWORD else 409
        return jsonify({"error": str(e), "reason": e.reason}), status
    except ValidationError as e:
        return jsonify({"error": str(e), "reason": "invalid_input"}), 400
    except Exception:
        current_app.logger.exception("Failed to bootstrap administrator")
        return jsonify({"error": "Internal server error"}), 500

    user_dict = user.to_dict()
    user_dict["role"] = "administrator"
    return jsonify(user_dict), 201


@auth_bp.post("/register")
def register_route():
    """
    Self-registration is disabled.

    Users can only be created by:
    - the bootstrap flow, while no users exist
    - an administrator via POST /api/admin/users
    """
    return jsonify({
        "error": "Self-registration is disabled. Contact an administrator to create an account."
    }), 403


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Returns token, user, role and navigation (the menu entries the role may
    open). Token must be included in the Authorization header afterwards.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(username, password)

        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource="auth",
                action="LOGIN",
                reason=f"Invalid credentials for handle {username!r}",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials", "reason": AuthFailure.INVALID_CREDENTIAL}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        role = auth_service.get_user_role(user.id)

        payload = _session_payload(user, role)
        payload["token"] = token
        payload["expires_at"] = session.to_dict()["expires_at"]
        payload["message"] = "Login successful"
        return jsonify(payload), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authorization header required"}), 401

        revoked = session_service.revoke_session(token, reason="User logout")

        if not revoked:
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/validate")
def validate_route():
    """
    Re-resolve the session token.

    Returns user, role and navigation, or 401 {error, reason} where reason is
    invalid_credential, expired or revoked.
    """
    token = bearer_token()
    if token is None:
        return jsonify({
            "error": "Authorization header required",
            "reason": AuthFailure.INVALID_CREDENTIAL,
        }), 401

    try:
        identity = session_service.resolve_identity(token)
    except AuthFailure as e:
        return jsonify({"error": "Invalid or expired token", "reason": e.reason}), 401

    user = auth_service.get_user(identity.user_id)
    payload = _session_payload(user, identity.role)
    payload["message"] = "Token valid"
    return jsonify(payload), 200
