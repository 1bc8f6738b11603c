# Overview: Permission system package.
# Re-exports all public APIs so callers import from cspace.permissions.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    EMPLOYEE_PERMISSIONS,
    USER_PERMISSIONS,
    BRANCH_PERMISSIONS,
    SHIFT_PERMISSIONS,
    PAYROLL_PERMISSIONS,
    RECRUITMENT_PERMISSIONS,
    FINANCE_PERMISSIONS,
    ACCOUNTING_PERMISSIONS,
    RECEPTION_PERMISSIONS,
    FEEDBACK_PERMISSIONS,
    SETTINGS_PERMISSIONS,
)
from .roles import (
    ROLES,
    ROLE_HIERARCHY,
    DEFAULT_ROLE,
    DEFAULT_ROLE_PERMISSIONS,
    ROLE_PERMISSIONS,
)
from .helpers import (
    get_all_permission_codes,
    get_permissions_by_category,
    get_permission_definition,
    validate_permission_code,
    normalize_role,
    get_role_level,
    get_permissions_for_role,
    has_permission,
    has_any_permission,
    has_all_permissions,
    can_manage_role,
    is_role_allowed,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "EMPLOYEE_PERMISSIONS",
    "USER_PERMISSIONS",
    "BRANCH_PERMISSIONS",
    "SHIFT_PERMISSIONS",
    "PAYROLL_PERMISSIONS",
    "RECRUITMENT_PERMISSIONS",
    "FINANCE_PERMISSIONS",
    "ACCOUNTING_PERMISSIONS",
    "RECEPTION_PERMISSIONS",
    "FEEDBACK_PERMISSIONS",
    "SETTINGS_PERMISSIONS",
    "ROLES",
    "ROLE_HIERARCHY",
    "DEFAULT_ROLE",
    "DEFAULT_ROLE_PERMISSIONS",
    "ROLE_PERMISSIONS",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permission_definition",
    "validate_permission_code",
    "normalize_role",
    "get_role_level",
    "get_permissions_for_role",
    "has_permission",
    "has_any_permission",
    "has_all_permissions",
    "can_manage_role",
    "is_role_allowed",
]
