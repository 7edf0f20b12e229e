# Overview: Request and access decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, permission_service
from .services.permission_service import AuthorizationDenied
from .services.session_service import AuthFailure


def _is_authenticated() -> bool:
    return hasattr(g, 'identity')


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session token.

    Sets the following Flask g attributes:
    - g.identity: the ResolvedIdentity
    - g.user_id: the authenticated user's id
    - g.role: the user's Role, or None when no role is assigned

    Returns 401 {error, reason} if:
    - No Authorization header (reason invalid_credential)
    - Unknown token (invalid_credential)
    - Expired session (expired)
    - Revoked session or deactivated user (revoked)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({
                "error": "Authentication required",
                "reason": AuthFailure.INVALID_CREDENTIAL,
            }), 401

        try:
            identity = session_service.resolve_identity(token)
        except AuthFailure as e:
            return jsonify({"error": "Invalid or expired token", "reason": e.reason}), 401

        g.identity = identity
        g.user_id = identity.user_id
        g.role = identity.role

        return f(*args, **kwargs)

    return decorated_function


def require_resource(resource):
    """
    Require the caller's role to grant access to a resource.

    A user without a role is denied everything. Denials are logged and
    recorded as PERMISSION_DENIED security events.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({
                    "error": "Authentication required",
                    "reason": AuthFailure.INVALID_CREDENTIAL,
                }), 401

            try:
                permission_service.require_resource(
                    user_id=g.user_id,
                    role=g.role,
                    resource=resource,
                    action=f"{request.method} {request.path}",
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
            except AuthorizationDenied as e:
                return jsonify({
                    "error": "Permission denied",
                    "resource": e.resource,
                    "reason": str(e),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
