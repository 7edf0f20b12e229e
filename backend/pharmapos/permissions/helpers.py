# Overview: Access decisions over the static policy table.

from .definitions import ACCESS_POLICY, RESOURCE_DEFINITIONS, Resource
from .roles import Role


def parse_role(value):
    """Map a stored/raw value to a Role, or None if it is not in the closed set."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


def parse_resource(value):
    if isinstance(value, Resource):
        return value
    try:
        return Resource(value)
    except ValueError:
        return None


def is_allowed(role, resource) -> bool:
    """
    Decide whether a role may view/mutate a resource.

    Total over any input: an unknown or missing role, or an unknown
    resource, is denied.
    """
    role = parse_role(role)
    resource = parse_resource(resource)
    if role is None or resource is None:
        return False
    return resource in ACCESS_POLICY.get(role, frozenset())


def allowed_resources(role) -> list[dict]:
    """Navigation entries visible to a role, in menu order."""
    return [
        {
            "resource": code.value,
            "name": name,
            "description": description,
            "path": path,
        }
        for code, name, description, path in RESOURCE_DEFINITIONS
        if is_allowed(role, code)
    ]


def get_resource_definition(resource):
    """Get full definition for a resource code."""
    resource = parse_resource(resource)
    for code, name, description, path in RESOURCE_DEFINITIONS:
        if code == resource:
            return {
                "resource": code.value,
                "name": name,
                "description": description,
                "path": path,
            }
    return None
