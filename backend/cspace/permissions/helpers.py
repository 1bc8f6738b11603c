# Overview: Utility functions for permission lookups, role checks and validation.

from .definitions import PERMISSION_DEFINITIONS
from .roles import DEFAULT_ROLE, ROLE_HIERARCHY, ROLE_PERMISSIONS


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_permissions_by_category(category):
    """Get all permissions in a category."""
    return [perm for perm in PERMISSION_DEFINITIONS if perm[3] == category]


def get_permission_definition(code):
    """Get full definition for a permission code."""
    for perm in PERMISSION_DEFINITIONS:
        if perm[0] == code:
            return {
                "code": perm[0],
                "name": perm[1],
                "description": perm[2],
                "category": perm[3],
            }
    return None


def validate_permission_code(code):
    """Check if a permission code is valid."""
    return code in get_all_permission_codes()


def normalize_role(role: str | None) -> str:
    """Map unknown or missing roles to the lowest-privilege role."""
    if role in ROLE_HIERARCHY:
        return role
    return DEFAULT_ROLE


def get_role_level(role: str | None) -> int:
    return ROLE_HIERARCHY[normalize_role(role)]


def get_permissions_for_role(role: str | None) -> frozenset[str]:
    return ROLE_PERMISSIONS[normalize_role(role)]


def has_permission(role: str | None, permission: str) -> bool:
    return permission in get_permissions_for_role(role)


def has_any_permission(role: str | None, permissions) -> bool:
    granted = get_permissions_for_role(role)
    return any(code in granted for code in permissions)


def has_all_permissions(role: str | None, permissions) -> bool:
    granted = get_permissions_for_role(role)
    return all(code in granted for code in permissions)


def can_manage_role(acting_role: str | None, target_role: str | None) -> bool:
    """True iff the acting role sits strictly above the target role."""
    return get_role_level(acting_role) > get_role_level(target_role)


def is_role_allowed(role: str | None, allowed_roles) -> bool:
    """
    Membership check for role-restricted routes.

    Handlers must not compare role strings themselves; the middleware calls
    this with the route's declared role list.
    """
    return normalize_role(role) in {normalize_role(r) for r in allowed_roles}
