# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- EMPLOYEES --

EMPLOYEE_PERMISSIONS = [
    (
        "employees:view",
        "View Employees",
        "View employees of the user's own branch",
        PermissionCategory.EMPLOYEES,
    ),
    (
        "employees:view_all",
        "View All Employees",
        "View employees across every branch",
        PermissionCategory.EMPLOYEES,
    ),
    (
        "employees:create",
        "Create Employees",
        "Add new employee records",
        PermissionCategory.EMPLOYEES,
    ),
    (
        "employees:edit",
        "Edit Employees",
        "Edit employee profile data",
        PermissionCategory.EMPLOYEES,
    ),
    (
        "employees:delete",
        "Delete Employees",
        "Terminate or remove employee records",
        PermissionCategory.EMPLOYEES,
    ),
    (
        "employees:view_salary",
        "View Salary",
        "View wages and salary history",
        PermissionCategory.EMPLOYEES,
    ),
    (
        "employees:edit_salary",
        "Edit Salary",
        "Change wages or submit wage change requests",
        PermissionCategory.EMPLOYEES,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "users:view",
        "View Users",
        "View login accounts",
        PermissionCategory.USERS,
    ),
    (
        "users:create",
        "Create Users",
        "Create login accounts",
        PermissionCategory.USERS,
    ),
    (
        "users:edit",
        "Edit Users",
        "Edit login accounts",
        PermissionCategory.USERS,
    ),
    (
        "users:delete",
        "Delete Users",
        "Deactivate login accounts",
        PermissionCategory.USERS,
    ),
    (
        "users:assign_roles",
        "Assign Roles",
        "Change the role of another user (subject to role hierarchy)",
        PermissionCategory.USERS,
    ),
]


# -- BRANCHES --

BRANCH_PERMISSIONS = [
    (
        "branches:view",
        "View Branches",
        "View branch list and details",
        PermissionCategory.BRANCHES,
    ),
    (
        "branches:create",
        "Create Branches",
        "Open new branches",
        PermissionCategory.BRANCHES,
    ),
    (
        "branches:edit",
        "Edit Branches",
        "Edit branch details and kiosk settings",
        PermissionCategory.BRANCHES,
    ),
    (
        "branches:delete",
        "Delete Branches",
        "Close branches",
        PermissionCategory.BRANCHES,
    ),
]


# -- SHIFTS --

SHIFT_PERMISSIONS = [
    (
        "shifts:view",
        "View Shifts",
        "View own shift schedule",
        PermissionCategory.SHIFTS,
    ),
    (
        "shifts:view_all",
        "View All Shifts",
        "View schedules of every branch",
        PermissionCategory.SHIFTS,
    ),
    (
        "shifts:edit",
        "Edit Shifts",
        "Edit schedules of every branch",
        PermissionCategory.SHIFTS,
    ),
    (
        "shifts:edit_own_branch",
        "Edit Own Branch Shifts",
        "Edit the schedule of the user's own branch",
        PermissionCategory.SHIFTS,
    ),
    (
        "shifts:publish",
        "Publish Shifts",
        "Publish schedules to employees",
        PermissionCategory.SHIFTS,
    ),
]


# -- PAYROLL --

PAYROLL_PERMISSIONS = [
    (
        "payroll:view",
        "View Payroll",
        "View payroll runs and payslips",
        PermissionCategory.PAYROLL,
    ),
    (
        "payroll:process",
        "Process Payroll",
        "Run and approve payroll",
        PermissionCategory.PAYROLL,
    ),
]


# -- RECRUITMENT --

RECRUITMENT_PERMISSIONS = [
    (
        "recruitment:view",
        "View Recruitment",
        "View candidates and the recruitment board",
        PermissionCategory.RECRUITMENT,
    ),
    (
        "recruitment:manage",
        "Manage Recruitment",
        "Move candidates between stages and hire",
        PermissionCategory.RECRUITMENT,
    ),
]


# -- FINANCES / ACCOUNTING --

FINANCE_PERMISSIONS = [
    (
        "finances:view",
        "View Finances",
        "View finances of the user's own branch",
        PermissionCategory.FINANCES,
    ),
    (
        "finances:view_all",
        "View All Finances",
        "View finances of every branch",
        PermissionCategory.FINANCES,
    ),
]

ACCOUNTING_PERMISSIONS = [
    (
        "accounting_requests:create",
        "Create Accounting Requests",
        "Submit payment and reconciliation requests",
        PermissionCategory.ACCOUNTING,
    ),
    (
        "accounting_requests:view_all",
        "View All Accounting Requests",
        "View accounting requests of every branch",
        PermissionCategory.ACCOUNTING,
    ),
    (
        "accounting_requests:process",
        "Process Accounting Requests",
        "Approve or reject accounting requests",
        PermissionCategory.ACCOUNTING,
    ),
]


# -- RECEPTION --

RECEPTION_PERMISSIONS = [
    (
        "reception:view",
        "Reception Mode",
        "Open reception mode and switch operators",
        PermissionCategory.RECEPTION,
    ),
    (
        "reception:view_all_branches",
        "Reception All Branches",
        "Operate reception mode for any branch",
        PermissionCategory.RECEPTION,
    ),
    (
        "reception:manage_access",
        "Manage Reception Access",
        "Grant and revoke cross-branch reception access",
        PermissionCategory.RECEPTION,
    ),
    (
        "reception:transactions_view",
        "View Reception Transactions",
        "View reception income transactions",
        PermissionCategory.RECEPTION,
    ),
    (
        "reception:cash_view",
        "View Cash Management",
        "View branch cash balance and transfers",
        PermissionCategory.RECEPTION,
    ),
    (
        "reception:cash_settings",
        "Cash Settings",
        "Edit cash management thresholds",
        PermissionCategory.RECEPTION,
    ),
    (
        "operator_pin:manage",
        "Manage Operator PINs",
        "Assign and reset operator PINs",
        PermissionCategory.RECEPTION,
    ),
]


# -- FEEDBACK / SETTINGS --

FEEDBACK_PERMISSIONS = [
    (
        "feedback:submit",
        "Submit Feedback",
        "Submit feedback to management",
        PermissionCategory.FEEDBACK,
    ),
    (
        "feedback:view_all",
        "View All Feedback",
        "Read and answer submitted feedback",
        PermissionCategory.FEEDBACK,
    ),
]

SETTINGS_PERMISSIONS = [
    (
        "settings:view",
        "View Settings",
        "View system settings",
        PermissionCategory.SETTINGS,
    ),
    (
        "settings:edit",
        "Edit Settings",
        "Change system settings",
        PermissionCategory.SETTINGS,
    ),
]


PERMISSION_DEFINITIONS = (
    EMPLOYEE_PERMISSIONS
    + USER_PERMISSIONS
    + BRANCH_PERMISSIONS
    + SHIFT_PERMISSIONS
    + PAYROLL_PERMISSIONS
    + RECRUITMENT_PERMISSIONS
    + FINANCE_PERMISSIONS
    + ACCOUNTING_PERMISSIONS
    + RECEPTION_PERMISSIONS
    + FEEDBACK_PERMISSIONS
    + SETTINGS_PERMISSIONS
)
