# Overview: Role set, role hierarchy and the static role -> permission table.

from .definitions import PERMISSION_DEFINITIONS


EMPLOYEE = "employee"
COMMUNITY_MANAGER = "community_manager"
RECRUITER = "recruiter"
ACCOUNTANT = "accountant"
BRANCH_MANAGER = "branch_manager"
CHIEF_ACCOUNTANT = "chief_accountant"
HR = "hr"
CEO = "ceo"
GENERAL_MANAGER = "general_manager"

# Unknown roles resolve to this one (lowest privilege, never empty).
DEFAULT_ROLE = EMPLOYEE

# Higher level manages lower level. Equal levels cannot manage each other.
ROLE_HIERARCHY = {
    GENERAL_MANAGER: 100,
    CEO: 90,
    HR: 80,
    CHIEF_ACCOUNTANT: 70,
    BRANCH_MANAGER: 60,
    ACCOUNTANT: 50,
    RECRUITER: 40,
    COMMUNITY_MANAGER: 30,
    EMPLOYEE: 10,
}

ROLES = tuple(ROLE_HIERARCHY)


_ALL = [perm[0] for perm in PERMISSION_DEFINITIONS]

_EMPLOYEE = [
    "feedback:submit",
    "shifts:view",
]

_ACCOUNTANT = _EMPLOYEE + [
    "finances:view",
    "accounting_requests:view_all",
    "accounting_requests:process",
    "reception:transactions_view",
]

# WHY these mappings:
# - GENERAL_MANAGER: everything, including cross-branch reception grants
# - CEO: everything except role assignment, settings and reception grants
# - HR: people management, PIN management, reception in any branch
# - BRANCH_MANAGER: own-branch operations and reception
# - EMPLOYEE: self-service only
DEFAULT_ROLE_PERMISSIONS = {
    GENERAL_MANAGER: _ALL,

    CEO: [
        code for code in _ALL
        if code not in {"users:assign_roles", "settings:edit", "reception:manage_access"}
    ],

    HR: _EMPLOYEE + [
        "employees:view",
        "employees:view_all",
        "employees:create",
        "employees:edit",
        "employees:delete",
        "employees:view_salary",
        "employees:edit_salary",
        "users:view",
        "users:create",
        "users:edit",
        "branches:view",
        "shifts:view_all",
        "shifts:edit",
        "shifts:publish",
        "payroll:view",
        "recruitment:view",
        "recruitment:manage",
        "feedback:view_all",
        "reception:view",
        "reception:view_all_branches",
        "operator_pin:manage",
        "settings:view",
    ],

    CHIEF_ACCOUNTANT: _ACCOUNTANT + [
        "finances:view_all",
        "payroll:view",
        "payroll:process",
        "employees:view_salary",
        "reception:cash_view",
        "reception:cash_settings",
    ],

    BRANCH_MANAGER: _EMPLOYEE + [
        "employees:view",
        "branches:view",
        "shifts:edit_own_branch",
        "finances:view",
        "accounting_requests:create",
        "reception:view",
        "reception:transactions_view",
        "reception:cash_view",
    ],

    ACCOUNTANT: _ACCOUNTANT,

    RECRUITER: _EMPLOYEE + [
        "employees:view",
        "recruitment:view",
        "recruitment:manage",
    ],

    COMMUNITY_MANAGER: _EMPLOYEE + [
        "branches:view",
        "reception:view",
        "reception:transactions_view",
    ],

    EMPLOYEE: _EMPLOYEE,
}

# Frozen lookup used by the helpers; built once at import.
ROLE_PERMISSIONS = {
    role: frozenset(codes) for role, codes in DEFAULT_ROLE_PERMISSIONS.items()
}
