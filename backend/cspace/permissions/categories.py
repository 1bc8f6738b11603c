# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    EMPLOYEES = "EMPLOYEES"
    USERS = "USERS"
    BRANCHES = "BRANCHES"
    SHIFTS = "SHIFTS"
    PAYROLL = "PAYROLL"
    RECRUITMENT = "RECRUITMENT"
    FINANCES = "FINANCES"
    ACCOUNTING = "ACCOUNTING"
    RECEPTION = "RECEPTION"
    FEEDBACK = "FEEDBACK"
    SETTINGS = "SETTINGS"
