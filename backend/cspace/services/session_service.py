# Overview: Service-layer operations for employee sessions; issue, verify, refresh and end.

"""
Session Token Management Service

WHY: Dashboard requests carry a short-lived signed session token so that
authorization needs no database round trip, while a long-lived refresh
token (revocable, one row per token) powers silent renewal.

LIFECYCLE:
- login -> session token (SESSION_TOKEN_TTL_SECONDS, default 1 hour)
           + refresh token (REFRESH_TOKEN_TTL_SECONDS, default 7 days)
- refresh -> refresh token is rotated (old row revoked, successor issued)
             and a new session token is minted with the employee's
             current role and branch
- logout -> refresh row revoked; cookies cleared by the route. The session
            token lapses by its own short TTL.

CONCURRENCY: Rotation is a conditional UPDATE on revoked_at IS NULL, so two
concurrent refreshes cannot both rotate. The loser is answered from the
winner's successor while inside REFRESH_REUSE_GRACE_SECONDS; later reuse is
recorded as REFRESH_TOKEN_REUSE and rejected.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import DependencyUnavailable, InvalidCredentialFormat, RateLimited, Unauthenticated
from ..extensions import db
from ..models import Employee, RefreshToken
from ..permissions import get_permissions_for_role, normalize_role
from . import auth_service, login_throttle_service, token_codec
from .permission_service import log_security_event
from .token_codec import TokenFailure, TokenResult
from cspace.time_utils import to_utc_z, utcnow


SESSION_COOKIE_NAME = "c-space-auth"
REFRESH_COOKIE_NAME = "c-space-refresh"


@dataclass(frozen=True)
class SessionPrincipal:
    """Identity carried inside a session token."""
    id: int
    name: str
    email: str | None
    role: str
    employee_id: int | None = None
    branch_id: str | None = None

    kind = "session"

    @property
    def session_key(self) -> str:
        return str(self.id)

    @property
    def permissions(self) -> frozenset[str]:
        return get_permissions_for_role(self.role)

    def to_claims(self) -> dict:
        return {
            "sub": str(self.id),
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "employee_id": self.employee_id,
            "branch_id": self.branch_id,
        }

    @classmethod
    def from_claims(cls, claims: dict) -> "SessionPrincipal":
        return cls(
            id=int(claims["sub"]),
            name=claims.get("name") or "",
            email=claims.get("email"),
            role=normalize_role(claims.get("role")),
            employee_id=claims.get("employee_id"),
            branch_id=claims.get("branch_id"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "employeeId": self.employee_id,
            "branchId": self.branch_id,
        }


@dataclass(frozen=True)
class SessionTokens:
    principal: SessionPrincipal
    access_token: str
    access_expires_at: datetime
    refresh_token: str
    refresh_expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "user": self.principal.to_dict(),
            "permissions": sorted(self.principal.permissions),
            "token": self.access_token,
            "expiresAt": to_utc_z(self.access_expires_at),
            "refreshToken": self.refresh_token,
            "refreshExpiresAt": to_utc_z(self.refresh_expires_at),
        }


def principal_for_employee(employee: Employee) -> SessionPrincipal:
    return SessionPrincipal(
        id=employee.id,
        name=employee.full_name,
        email=employee.email,
        role=normalize_role(employee.role),
        employee_id=employee.id,
        branch_id=employee.branch_id,
    )


def _session_ttl() -> timedelta:
    return timedelta(seconds=current_app.config["SESSION_TOKEN_TTL_SECONDS"])


def _refresh_ttl() -> timedelta:
    return timedelta(seconds=current_app.config["REFRESH_TOKEN_TTL_SECONDS"])


def issue_session_token(
    principal: SessionPrincipal,
    ttl: timedelta | None = None,
    now: datetime | None = None,
) -> tuple[str, datetime]:
    """Sign a session token for principal. Returns (token, expires_at)."""
    return token_codec.encode(
        token_codec.SESSION,
        principal.to_claims(),
        ttl if ttl is not None else _session_ttl(),
        now=now,
    )


def verify_session_token(token: str | None) -> TokenResult:
    """Return a TokenResult whose principal is a SessionPrincipal, or a failure."""
    result = token_codec.decode(token, token_codec.SESSION)
    if not result.ok:
        return result
    try:
        principal = SessionPrincipal.from_claims(result.claims)
    except (KeyError, TypeError, ValueError):
        return TokenResult(failure=TokenFailure.MALFORMED)
    return result.with_principal(principal)


def _sign_refresh(row: RefreshToken) -> str:
    token, _ = token_codec.encode(
        token_codec.REFRESH,
        {"sub": str(row.user_id), "jti": row.jti},
        row.expires_at - row.issued_at,
        now=row.issued_at,
    )
    return token


def _new_refresh_row(user_id: int, user_agent: str | None, ip_address: str | None) -> RefreshToken:
    now = utcnow().replace(microsecond=0)
    return RefreshToken(
        jti=secrets.token_hex(16),
        user_id=user_id,
        issued_at=now,
        expires_at=now + _refresh_ttl(),
        user_agent=user_agent,
        ip_address=ip_address,
    )


def _tokens_for(employee: Employee, refresh_row: RefreshToken) -> SessionTokens:
    principal = principal_for_employee(employee)
    access_token, access_expires_at = issue_session_token(principal)
    return SessionTokens(
        principal=principal,
        access_token=access_token,
        access_expires_at=access_expires_at,
        refresh_token=_sign_refresh(refresh_row),
        refresh_expires_at=refresh_row.expires_at,
    )


def issue_session(
    employee: Employee,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> SessionTokens:
    """Issue a session token and a persisted refresh token for employee."""
    row = _new_refresh_row(employee.id, user_agent, ip_address)
    try:
        db.session.add(row)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise DependencyUnavailable("Could not persist refresh token") from e
    return _tokens_for(employee, row)


def login(
    email: str,
    password: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> SessionTokens:
    """
    Password login.

    Raises:
        InvalidCredentialFormat: email or password missing
        RateLimited: too many recent failures for this email
        Unauthenticated: wrong credentials or inactive employee
    """
    if not email or not password or not isinstance(email, str) or not isinstance(password, str):
        raise InvalidCredentialFormat("email and password required")

    is_locked, seconds_remaining = login_throttle_service.is_account_locked(email)
    if is_locked:
        raise RateLimited(
            "Account temporarily locked due to too many failed login attempts",
            retry_after_seconds=seconds_remaining,
        )

    employee = auth_service.authenticate(email, password)
    if not employee:
        failed_count = login_throttle_service.record_failed_attempt(
            email, ip_address=ip_address, user_agent=user_agent
        )
        remaining = login_throttle_service.MAX_FAILED_ATTEMPTS - failed_count
        if remaining <= 0:
            raise RateLimited(
                "Account locked due to too many failed login attempts",
                retry_after_seconds=int(login_throttle_service.LOCKOUT_DURATION.total_seconds()),
            )
        raise Unauthenticated("Invalid credentials", attemptsRemaining=remaining)

    login_throttle_service.record_successful_login(
        employee.id, email, ip_address=ip_address, user_agent=user_agent
    )
    return issue_session(employee, user_agent=user_agent, ip_address=ip_address)


def _active_employee(user_id: int) -> Employee | None:
    employee = db.session.get(Employee, user_id)
    if employee is None or not employee.is_active:
        return None
    return employee


def refresh_session(
    refresh_token: str | None,
    user_agent: str | None = None,
    ip_address: str | None = None,
    _retry: bool = True,
) -> SessionTokens:
    """
    Exchange a refresh token for a new session token and a rotated refresh token.

    Raises Unauthenticated if the refresh token is expired, invalid, revoked
    outside the grace window, or belongs to an inactive employee.
    Raises DependencyUnavailable if the refresh_tokens table cannot be read
    or the rotation cannot be committed.
    """
    result = token_codec.decode(refresh_token, token_codec.REFRESH)
    if not result.ok:
        raise Unauthenticated("Refresh token rejected", reason=result.failure.value)

    claims = result.claims
    try:
        user_id = int(claims["sub"])
        jti = str(claims["jti"])
    except (KeyError, TypeError, ValueError):
        raise Unauthenticated("Refresh token rejected", reason=TokenFailure.MALFORMED.value)

    try:
        return _rotate_refresh_token(refresh_token, user_id, jti, user_agent, ip_address, _retry)
    except SQLAlchemyError as e:
        db.session.rollback()
        raise DependencyUnavailable("Credential store unavailable") from e


def _rotate_refresh_token(
    refresh_token: str,
    user_id: int,
    jti: str,
    user_agent: str | None,
    ip_address: str | None,
    retry: bool,
) -> SessionTokens:
    row = db.session.query(RefreshToken).filter_by(jti=jti).first()
    if row is None or row.user_id != user_id:
        raise Unauthenticated("Refresh token rejected", reason="unknown")

    now = utcnow()

    if row.revoked_at is not None:
        successor = _grace_successor(row, now)
        if successor is not None:
            employee = _active_employee(user_id)
            if employee is not None:
                return _tokens_for(employee, successor)

        log_security_event(
            event_type="REFRESH_TOKEN_REUSE",
            success=False,
            user_id=user_id,
            resource="/api/auth/refresh",
            reason=row.revoked_reason,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        current_app.logger.warning("Rejected reuse of revoked refresh token for user %s", user_id)
        raise Unauthenticated("Refresh token rejected", reason="revoked")

    employee = _active_employee(user_id)
    if employee is None:
        revoke_all_user_sessions(user_id, reason="Employee inactive")
        raise Unauthenticated("Refresh token rejected", reason="inactive")

    successor = _new_refresh_row(user_id, user_agent, ip_address)
    rotated = db.session.query(RefreshToken).filter(
        RefreshToken.id == row.id,
        RefreshToken.revoked_at.is_(None),
    ).update(
        {
            RefreshToken.revoked_at: now,
            RefreshToken.revoked_reason: "rotated",
            RefreshToken.replaced_by_jti: successor.jti,
        },
        synchronize_session=False,
    )

    if rotated != 1:
        # Lost the race to a concurrent refresh; answer from its successor.
        db.session.rollback()
        if retry:
            return refresh_session(refresh_token, user_agent, ip_address, _retry=False)
        raise Unauthenticated("Refresh token rejected", reason="revoked")

    db.session.add(successor)
    db.session.commit()
    return _tokens_for(employee, successor)


def _grace_successor(row: RefreshToken, now: datetime) -> RefreshToken | None:
    if row.revoked_reason != "rotated" or not row.replaced_by_jti:
        return None

    grace = timedelta(seconds=current_app.config["REFRESH_REUSE_GRACE_SECONDS"])
    if now - row.revoked_at > grace:
        return None

    successor = db.session.query(RefreshToken).filter_by(jti=row.replaced_by_jti).first()
    if successor is None or successor.revoked_at is not None or successor.expires_at <= now:
        return None
    return successor


def end_session(refresh_token: str | None, reason: str = "User logout") -> bool:
    """
    Revoke the refresh token behind a session.

    Returns True if a live refresh token was revoked. Idempotent: unknown,
    expired or already revoked tokens return False.
    """
    result = token_codec.decode(refresh_token, token_codec.REFRESH)
    if not result.ok:
        return False

    jti = result.claims.get("jti")
    if not jti:
        return False

    revoked = db.session.query(RefreshToken).filter(
        RefreshToken.jti == str(jti),
        RefreshToken.revoked_at.is_(None),
    ).update(
        {RefreshToken.revoked_at: utcnow(), RefreshToken.revoked_reason: reason},
        synchronize_session=False,
    )
    db.session.commit()
    return revoked == 1


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """
    Revoke all live refresh tokens for a user.

    WHY: Security response (deactivation, password change). Session tokens
    already issued lapse within SESSION_TOKEN_TTL_SECONDS.
    """
    count = db.session.query(RefreshToken).filter(
        RefreshToken.user_id == user_id,
        RefreshToken.revoked_at.is_(None),
    ).update(
        {RefreshToken.revoked_at: utcnow(), RefreshToken.revoked_reason: reason},
        synchronize_session=False,
    )
    db.session.commit()
    return count


def cleanup_expired_refresh_tokens(retention_days: int = 30) -> int:
    """
    Delete refresh tokens that expired or were revoked more than
    retention_days ago. Run periodically (flask maintenance cleanup-refresh-tokens).
    """
    cutoff = utcnow() - timedelta(days=retention_days)

    deleted = db.session.query(RefreshToken).filter(
        db.or_(
            RefreshToken.expires_at < cutoff,
            RefreshToken.revoked_at < cutoff,
        )
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
