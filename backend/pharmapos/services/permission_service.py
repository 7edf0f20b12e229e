# Overview: Service-layer operations for access checks and security event logging.

"""
Access Checking and Security Event Logging

WHY: Enforce role-based access control and create an audit trail.

DESIGN PRINCIPLES:
- Fail closed: an unknown or missing role is denied everything
- Log denials only: grants are not logged
- A denial always carries its reason, both to the caller and to the log
"""

from flask import current_app

from ..extensions import db
from ..models import SecurityEvent
from ..permissions import is_allowed, parse_role, parse_resource
from pharmapos.time_utils import utcnow


class AuthorizationDenied(Exception):
    """Raised when a role lacks permission for a resource."""

    def __init__(self, resource: str, role: str | None, message: str | None = None):
        self.resource = resource
        self.role = role
        super().__init__(message or f"Role {role or 'none'} is not allowed to access {resource}")


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    WHY: Append-only audit trail for security monitoring.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - BOOTSTRAP_ADMIN_CREATED
    - USER_CREATED
    - LEDGER_INCONSISTENT
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    return event


def require_resource(
    user_id: int | None,
    role,
    resource,
    action: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Require that role may access resource.

    Raises AuthorizationDenied if not. Denials are logged as a warning and
    recorded as a PERMISSION_DENIED security event.
    """
    if is_allowed(role, resource):
        return

    parsed_role = parse_role(role)
    parsed_resource = parse_resource(resource)
    role_name = parsed_role.value if parsed_role else None
    resource_name = parsed_resource.value if parsed_resource else str(resource)
    reason = f"Role {role_name or 'none'} lacks access to {resource_name}"

    current_app.logger.warning(
        "Authorization denied: user=%s role=%s resource=%s action=%s",
        user_id, role_name, resource_name, action,
    )
    log_security_event(
        user_id=user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource_name,
        action=action,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise AuthorizationDenied(resource_name, role_name, reason)
