# Overview: Service-layer permission checks against principals and security event logging.

"""
Permission Checking and Security Event Logging

WHY: Enforce role-based access control and create an audit trail of
denials. Permissions come from the static role table in cspace.permissions;
nothing here mutates them.

DESIGN PRINCIPLES:
- Fail closed: deny by default, require explicit permission grant
- Log denials only: grants are not logged
- Kiosk principals carry no role and therefore no permissions
- Audit writes are best effort: a failed insert is logged, never raised
"""

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import Forbidden
from ..extensions import db
from ..models import SecurityEvent
from ..permissions import (
    can_manage_role,
    get_permissions_for_role,
    has_permission,
)


def log_security_event(
    event_type: str,
    success: bool,
    user_id: int | None = None,
    branch_id: str | None = None,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent | None:
    """
    Append a security event.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED / LOGIN_SUCCESS
    - REFRESH_TOKEN_REUSE
    - KIOSK_LOGIN / KIOSK_LOGIN_FAILED / KIOSK_LOGOUT
    - BRANCH_ACCESS_GRANTED / BRANCH_ACCESS_REVOKED
    """
    event = SecurityEvent(
        user_id=user_id,
        branch_id=branch_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    try:
        db.session.add(event)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning("Failed to record security event %s", event_type, exc_info=True)
        return None
    return event


def principal_role(principal) -> str | None:
    """Role of a session principal; kiosk principals have none."""
    return getattr(principal, "role", None)


def get_principal_permissions(principal) -> frozenset[str]:
    if getattr(principal, "kind", None) != "session":
        return frozenset()
    return get_permissions_for_role(principal_role(principal))


def principal_has_permission(principal, permission_code: str) -> bool:
    if getattr(principal, "kind", None) != "session":
        return False
    return has_permission(principal_role(principal), permission_code)


def require_can_manage(principal, target_role: str) -> None:
    """Raise Forbidden unless the principal's role sits above target_role."""
    if getattr(principal, "kind", None) != "session" or not can_manage_role(principal_role(principal), target_role):
        raise Forbidden(f"Cannot manage role: {target_role}")
