# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/pharmapos/routes/admin.py
"""
Admin routes for user management.

Provides endpoints for:
- Listing users with their role
- Creating a user with one of the closed set of roles

All endpoints require the users resource (administrator only). There is no
delete endpoint; user removal and role changes are handled outside the app.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service, permission_service
from ..services.auth_service import PasswordValidationError
from ..decorators import require_auth, require_resource
from ..permissions import DEFAULT_NEW_USER_ROLE, ROLE_LABELS, Resource, Role, parse_role
from ..validation import ConflictError, ValidationError

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_auth
@require_resource(Resource.USERS)
def list_users():
    """List all users with their role (null when none is assigned)."""
    users = auth_service.list_users()
    return jsonify({"users": users, "count": len(users)}), 200


@admin_bp.get("/roles")
@require_auth
@require_resource(Resource.USERS)
def list_roles():
    """The closed set of roles, for the user creation form."""
    return jsonify({
        "roles": [{"code": role.value, "label": ROLE_LABELS[role]} for role in Role],
        "default": DEFAULT_NEW_USER_ROLE.value,
    }), 200


@admin_bp.post("/users")
@require_auth
@require_resource(Resource.USERS)
def create_user():
    """
    Create a new user.

    Request body:
    - display_name: str (required)
    - username: str (required) - login handle
    - password: str (required)
    - role: str (optional) - defaults to operador_caixa
    """
    try:
        data = request.get_json(silent=True) or {}
        display_name = data.get("display_name")
        username = data.get("username")
        password = data.get("password")
        role_name = data.get("role") or DEFAULT_NEW_USER_ROLE.value

        if not all([display_name, username, password]):
            return jsonify({"error": "display_name, username and password required"}), 400

        user = auth_service.create_user(
            display_name=display_name,
            username=username,
            password=password,
            role=role_name,
            created_by_user_id=g.user_id,
        )

        permission_service.log_security_event(
            user_id=g.user_id,
            event_type="USER_CREATED",
            success=True,
            resource="users",
            action=f"Created user: {user.username} ({role_name})",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent")
        )

        user_dict = user.to_dict()
        user_dict["role"] = parse_role(role_name).value

        return jsonify({"user": user_dict, "message": "User created successfully"}), 201

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500
