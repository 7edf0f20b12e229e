# Overview: Role-based access package.
# Re-exports all public APIs for short imports.

from .roles import Role, ROLE_LABELS, DEFAULT_NEW_USER_ROLE
from .definitions import Resource, RESOURCE_DEFINITIONS, ACCESS_POLICY
from .helpers import (
    parse_role,
    parse_resource,
    is_allowed,
    allowed_resources,
    get_resource_definition,
)

__all__ = [
    "Role",
    "ROLE_LABELS",
    "DEFAULT_NEW_USER_ROLE",
    "Resource",
    "RESOURCE_DEFINITIONS",
    "ACCESS_POLICY",
    "parse_role",
    "parse_resource",
    "is_allowed",
    "allowed_resources",
    "get_resource_definition",
]
