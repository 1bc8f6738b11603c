# Overview: Request authentication and permission decorators for API routes.

"""
Auth Middleware

Resolution order for every protected route:
1. Session token (Authorization: Bearer, else the c-space-auth cookie).
   Valid => evaluate the route's requirement => 403 or handler.
2. No valid session and the route allows kiosk => kiosk token
   (reception-kiosk cookie, else X-Kiosk-Token header) => handler.
   Permission and role requirements are not evaluated for kiosk
   principals; allow_kiosk is the grant.
3. Otherwise 401.

Sets on flask.g:
- g.principal: SessionPrincipal or KioskPrincipal
- g.current_user: SessionPrincipal (session requests only)
- g.kiosk: KioskPrincipal (kiosk requests only)

SECURITY:
- Token verification never raises; the typed failure picks the fallback
- A valid session lacking permission gets 403, with no kiosk fallback
- Denials are recorded as PERMISSION_DENIED security events
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps

from flask import g, jsonify, request

from .errors import Forbidden, Unauthenticated
from .permissions import (
    ROLES,
    has_all_permissions,
    has_any_permission,
    has_permission,
    is_role_allowed,
    validate_permission_code,
)
from .services import kiosk_service, session_service
from .services.permission_service import log_security_event
from .services.token_codec import TokenFailure


@dataclass(frozen=True)
class AuthRequirement:
    permission: str | None = None
    permissions: tuple[str, ...] = ()
    require_all: bool = False
    roles: tuple[str, ...] = ()
    allow_kiosk: bool = False

    def __post_init__(self):
        codes = list(self.permissions)
        if self.permission:
            codes.append(self.permission)
        for code in codes:
            if not validate_permission_code(code):
                raise ValueError(f"Unknown permission code: {code}")
        for role in self.roles:
            if role not in ROLES:
                raise ValueError(f"Unknown role: {role}")

    def is_satisfied_by(self, principal) -> bool:
        if principal.kind != "session":
            return self.allow_kiosk

        role = principal.role
        if self.roles and not is_role_allowed(role, self.roles):
            return False
        if self.permission and not has_permission(role, self.permission):
            return False
        if self.permissions:
            check = has_all_permissions if self.require_all else has_any_permission
            if not check(role, self.permissions):
                return False
        return True

    def describe(self) -> str:
        parts = []
        if self.permission:
            parts.append(self.permission)
        if self.permissions:
            prefix = "ALL_OF" if self.require_all else "ANY_OF"
            parts.append(f"{prefix}:{','.join(self.permissions)}")
        if self.roles:
            parts.append(f"ROLES:{','.join(self.roles)}")
        return " ".join(parts) or "authenticated"


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


def session_token_from_request() -> str | None:
    return _bearer_token() or request.cookies.get(session_service.SESSION_COOKIE_NAME)


def kiosk_token_from_request() -> str | None:
    return request.cookies.get(kiosk_service.KIOSK_COOKIE_NAME) or request.headers.get(kiosk_service.KIOSK_HEADER_NAME)


def _unauthenticated(failure: TokenFailure | None):
    details = {"reason": failure.value if failure else "missing_token"}
    if failure is TokenFailure.EXPIRED:
        details["refreshable"] = True
    err = Unauthenticated("Authentication required", **details)
    return jsonify(err.to_dict()), err.status_code


def _forbidden(principal, requirement: AuthRequirement):
    log_security_event(
        event_type="PERMISSION_DENIED",
        success=False,
        user_id=principal.id,
        branch_id=principal.branch_id,
        resource=request.path,
        action=requirement.describe(),
        reason=f"Role {principal.role} lacks {requirement.describe()}",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    payload = {"reason": "insufficient_permissions"}
    if requirement.permission:
        payload["required_permission"] = requirement.permission
    if requirement.permissions:
        payload["required_permissions"] = list(requirement.permissions)
    if requirement.roles:
        payload["required_roles"] = list(requirement.roles)
    err = Forbidden("Permission denied", **payload)
    return jsonify(err.to_dict()), err.status_code


def with_auth(
    permission: str | None = None,
    permissions=None,
    require_all: bool = False,
    roles=None,
    allow_kiosk: bool = False,
):
    """
    Wrap a route handler with authentication and authorization.

    Usage:
        @bp.post("/operator-switch")
        @with_auth(permission="reception:view", allow_kiosk=True)
        def switch_route(): ...
    """
    requirement = AuthRequirement(
        permission=permission,
        permissions=tuple(permissions or ()),
        require_all=require_all,
        roles=tuple(roles or ()),
        allow_kiosk=allow_kiosk,
    )

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            for attr in ("principal", "current_user", "kiosk"):
                g.pop(attr, None)
            failure = None

            token = session_token_from_request()
            if token:
                result = session_service.verify_session_token(token)
                if result.ok:
                    principal = result.principal
                    if not requirement.is_satisfied_by(principal):
                        return _forbidden(principal, requirement)
                    g.principal = principal
                    g.current_user = principal
                    return f(*args, **kwargs)
                failure = result.failure

            if requirement.allow_kiosk:
                kiosk_token = kiosk_token_from_request()
                if kiosk_token:
                    result = kiosk_service.verify_kiosk_token(kiosk_token)
                    if result.ok:
                        g.principal = result.principal
                        g.kiosk = result.principal
                        return f(*args, **kwargs)
                    failure = failure or result.failure

            return _unauthenticated(failure)

        decorated_function.auth_requirement = requirement
        return decorated_function
    return decorator


def require_auth(f):
    """Any valid session."""
    return with_auth()(f)


def require_permission(permission_code: str, allow_kiosk: bool = False):
    return with_auth(permission=permission_code, allow_kiosk=allow_kiosk)


def require_any_permission(*permission_codes):
    return with_auth(permissions=permission_codes)


def require_all_permissions(*permission_codes):
    return with_auth(permissions=permission_codes, require_all=True)


def require_roles(*roles):
    return with_auth(roles=roles)


def current_principal():
    return g.get("principal")
