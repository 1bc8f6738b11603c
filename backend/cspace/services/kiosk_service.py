# Overview: Service-layer operations for branch kiosk sessions.

"""
Kiosk Session Service

WHY: A reception terminal is authorized for one branch by the shared branch
password, independently of who is standing at it. Individuals then
identify themselves by operator PIN (see operator_switch_service.py).

- Kiosk tokens are signed with the same secret as session tokens but carry
  type "kiosk"; neither verifier accepts the other's tokens
- Branch scope is fixed at creation and cannot be elevated
- Fixed 12-hour lifetime; no refresh path, expiry forces the branch
  password to be entered again
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from ..errors import DependencyUnavailable, Forbidden, InvalidCredentialFormat, NotFound, Unauthenticated
from ..extensions import db
from ..models import Branch
from . import auth_service, token_codec
from .permission_service import log_security_event
from .token_codec import TokenFailure, TokenResult
from cspace.time_utils import from_epoch, to_epoch, utcnow


KIOSK_SESSION_HOURS = 12
KIOSK_COOKIE_NAME = "reception-kiosk"
KIOSK_HEADER_NAME = "X-Kiosk-Token"


@dataclass(frozen=True)
class KioskPrincipal:
    """A terminal authorized for one branch. Not an individual identity."""
    branch_id: str
    authenticated_at: int  # epoch seconds

    kind = "kiosk"

    @property
    def session_key(self) -> str:
        return f"kiosk:{self.branch_id}:{self.authenticated_at}"

    def to_dict(self) -> dict:
        return {
            "branchId": self.branch_id,
            "authenticatedAt": self.authenticated_at,
        }


@dataclass(frozen=True)
class KioskSession:
    token: str
    expires_at: datetime
    branch: Branch


def create_kiosk_token(branch_id: str, now: datetime | None = None) -> tuple[str, datetime]:
    """Sign a kiosk token for branch_id. Returns (token, expires_at)."""
    issued_at = now or utcnow()
    return token_codec.encode(
        token_codec.KIOSK,
        {
            "sub": f"kiosk:{branch_id}",
            "branch_id": branch_id,
            "authenticated_at": to_epoch(issued_at),
        },
        timedelta(hours=KIOSK_SESSION_HOURS),
        now=issued_at,
    )


def verify_kiosk_token(token: str | None) -> TokenResult:
    result = token_codec.decode(token, token_codec.KIOSK)
    if not result.ok:
        return result

    branch_id = result.claims.get("branch_id")
    authenticated_at = result.claims.get("authenticated_at")
    if not branch_id or not isinstance(branch_id, str) or not isinstance(authenticated_at, int):
        return TokenResult(failure=TokenFailure.MALFORMED)

    return result.with_principal(KioskPrincipal(branch_id=branch_id, authenticated_at=authenticated_at))


def authenticate_kiosk(
    branch_id: str,
    password: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> KioskSession:
    """
    Verify the branch reception password and open a kiosk session.

    Raises:
        InvalidCredentialFormat: branch_id or password missing
        NotFound: branch does not exist
        Forbidden: kiosk mode not enabled for the branch
        Unauthenticated: wrong password
    """
    if not branch_id or not password or not isinstance(password, str):
        raise InvalidCredentialFormat("branch_id_and_password_required")

    try:
        branch = db.session.get(Branch, branch_id)
    except SQLAlchemyError as e:
        db.session.rollback()
        raise DependencyUnavailable("Credential store unavailable") from e

    if branch is None or not branch.is_active:
        raise NotFound("branch_not_found", branchId=branch_id)

    if not branch.kiosk_enabled:
        raise Forbidden("Reception kiosk is not enabled for this branch", reason="reception_not_enabled")

    if not auth_service.verify_password(password, branch.reception_password_hash):
        log_security_event(
            event_type="KIOSK_LOGIN_FAILED",
            success=False,
            branch_id=branch_id,
            resource="/api/reception/kiosk/authenticate",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        raise Unauthenticated("invalid_password")

    token, expires_at = create_kiosk_token(branch_id)
    log_security_event(
        event_type="KIOSK_LOGIN",
        success=True,
        branch_id=branch_id,
        resource="/api/reception/kiosk/authenticate",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return KioskSession(token=token, expires_at=expires_at, branch=branch)


def end_kiosk_session(branch_id: str | None, ip_address: str | None = None) -> None:
    """
    Record the end of a kiosk session. The token itself is stateless;
    the route clears the cookie.
    """
    log_security_event(
        event_type="KIOSK_LOGOUT",
        success=True,
        branch_id=branch_id,
        resource="/api/reception/kiosk/logout",
        ip_address=ip_address,
    )


def kiosk_expires_at(principal: KioskPrincipal) -> datetime:
    return from_epoch(principal.authenticated_at) + timedelta(hours=KIOSK_SESSION_HOURS)


def list_kiosk_branches() -> list[Branch]:
    """Active branches with a reception password set, by name."""
    return (
        db.session.query(Branch)
        .filter(Branch.reception_password_hash.isnot(None), Branch.is_active.is_(True))
        .order_by(Branch.name.asc())
        .all()
    )


def set_branch_password(branch_id: str, password: str | None) -> Branch:
    """Set (or with None, clear) the branch reception password."""
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise NotFound("branch_not_found", branchId=branch_id)

    branch.reception_password_hash = auth_service.hash_branch_password(password) if password else None
    db.session.commit()
    return branch
