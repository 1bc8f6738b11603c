# Overview: Service-layer operations for reception branch scope and cross-branch grants.

"""
Branch Access Service

WHY: Reception staff work at their home branch, but cover shifts elsewhere.
A BranchAccessGrant extends a user's reception scope to another branch,
optionally until expires_at. Grants are additive only: revoking a grant
never touches home-branch access.

SCOPE RULES:
- Kiosk principal: only the branch the kiosk was opened for
- Session principal with reception:view_all_branches: every branch
- Otherwise: home branch + unexpired grants + active branch assignments
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import Conflict, DependencyUnavailable, Forbidden, NotFound
from ..extensions import db
from ..models import Branch, BranchAccessGrant, BranchAssignment, Employee
from .permission_service import log_security_event, principal_has_permission
from cspace.time_utils import utcnow


MIN_SEARCH_LENGTH = 2

def _active_grant_filter(now: datetime):
    return or_(BranchAccessGrant.expires_at.is_(None), BranchAccessGrant.expires_at > now)


def get_active_grants(user_id: int, now: datetime | None = None) -> list[BranchAccessGrant]:
    now = now or utcnow()
    return (
        db.session.query(BranchAccessGrant)
        .filter(BranchAccessGrant.user_id == user_id, _active_grant_filter(now))
        .order_by(BranchAccessGrant.branch_id.asc())
        .all()
    )


def _active_assignment_branch_ids(employee_id: int, now: datetime) -> set[str]:
    today = now.date()
    rows = (
        db.session.query(BranchAssignment.branch_id)
        .filter(
            BranchAssignment.employee_id == employee_id,
            BranchAssignment.start_date <= today,
            or_(BranchAssignment.end_date.is_(None), BranchAssignment.end_date >= today),
        )
        .all()
    )
    return {row[0] for row in rows}


def get_accessible_branch_ids(principal, now: datetime | None = None) -> set[str] | None:
    """
    Branch ids the principal may act on at reception.

    Returns None for "every branch" (reception:view_all_branches).
    Raises DependencyUnavailable if grants or assignments cannot be read.
    """
    if principal.kind == "kiosk":
        return {principal.branch_id}

    if principal_has_permission(principal, "reception:view_all_branches"):
        return None

    now = now or utcnow()
    try:
        branch_ids = {grant.branch_id for grant in get_active_grants(principal.id, now)}
        branch_ids |= _active_assignment_branch_ids(principal.id, now)
    except SQLAlchemyError as e:
        db.session.rollback()
        raise DependencyUnavailable("Credential store unavailable") from e
    if principal.branch_id:
        branch_ids.add(principal.branch_id)
    return branch_ids


def can_access_branch(principal, branch_id: str | None, now: datetime | None = None) -> bool:
    if not branch_id:
        return False
    branch_ids = get_accessible_branch_ids(principal, now)
    return branch_ids is None or branch_id in branch_ids


def require_branch_access(principal, branch_id: str | None) -> None:
    """Raise Forbidden unless the principal may act on branch_id."""
    if not can_access_branch(principal, branch_id):
        raise Forbidden("No access to this branch", reason="branch_access_denied", branchId=branch_id)


def list_accessible_branches(principal) -> list[Branch]:
    branch_ids = get_accessible_branch_ids(principal)
    query = db.session.query(Branch).filter(Branch.is_active.is_(True))
    if branch_ids is not None:
        if not branch_ids:
            return []
        query = query.filter(Branch.id.in_(branch_ids))
    try:
        return query.order_by(Branch.name.asc()).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise DependencyUnavailable("Credential store unavailable") from e


def search_employees_for_assignment(term: str | None, limit: int = 20) -> list[dict]:
    """
    Active employees whose name or email contains term (case-insensitive).

    Used when setting up cross-branch assignments and grants. Terms shorter
    than MIN_SEARCH_LENGTH return nothing.
    """
    term = (term or "").strip()
    if len(term) < MIN_SEARCH_LENGTH:
        return []

    pattern = f"%{term.lower()}%"
    employees = (
        db.session.query(Employee)
        .filter(
            Employee.status == "active",
            or_(db.func.lower(Employee.full_name).like(pattern), db.func.lower(Employee.email).like(pattern)),
        )
        .order_by(Employee.full_name.asc(), Employee.id.asc())
        .limit(limit)
        .all()
    )

    return [
        {
            "id": e.id,
            "name": e.full_name,
            "email": e.email,
            "role": e.role,
            "branchId": e.branch_id,
            "branchName": e.branch.name if e.branch else None,
        }
        for e in employees
    ]


def list_grants(
    user_id: int | None = None,
    branch_id: str | None = None,
    include_expired: bool = False,
) -> list[BranchAccessGrant]:
    query = db.session.query(BranchAccessGrant)
    if user_id is not None:
        query = query.filter(BranchAccessGrant.user_id == user_id)
    if branch_id is not None:
        query = query.filter(BranchAccessGrant.branch_id == branch_id)
    if not include_expired:
        query = query.filter(_active_grant_filter(utcnow()))
    return query.order_by(BranchAccessGrant.granted_at.desc()).all()


def grant_access(
    *,
    user_id: int,
    branch_id: str,
    granted_by_id: int | None = None,
    expires_at: datetime | None = None,
    notes: str | None = None,
) -> BranchAccessGrant:
    """
    Grant reception access to branch_id.

    An expired grant for the same pair is renewed in place; an active one
    is a Conflict.

    Raises:
        ValueError: expires_at not in the future, or branch is the home branch
        NotFound: user or branch missing
        Conflict: an active grant already exists
    """
    user = db.session.get(Employee, user_id)
    if user is None:
        raise NotFound("user_not_found", userId=user_id)

    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise NotFound("branch_not_found", branchId=branch_id)

    if user.branch_id == branch_id:
        raise ValueError("Branch is already the user's home branch")

    now = utcnow()
    if expires_at is not None and expires_at <= now:
        raise ValueError("expires_at must be in the future")

    grant = db.session.query(BranchAccessGrant).filter_by(user_id=user_id, branch_id=branch_id).first()
    if grant is not None:
        if grant.is_active_at(now):
            raise Conflict("Access already granted", userId=user_id, branchId=branch_id)
        grant.granted_by_id = granted_by_id
        grant.granted_at = now
        grant.expires_at = expires_at
        grant.notes = notes
    else:
        grant = BranchAccessGrant(
            user_id=user_id,
            branch_id=branch_id,
            granted_by_id=granted_by_id,
            granted_at=now,
            expires_at=expires_at,
            notes=notes,
        )
        db.session.add(grant)

    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise Conflict("Access already granted", userId=user_id, branchId=branch_id) from e

    log_security_event(
        event_type="BRANCH_ACCESS_GRANTED",
        success=True,
        user_id=granted_by_id,
        branch_id=branch_id,
        action=f"user:{user_id}",
    )
    return grant


def revoke_access(*, user_id: int, branch_id: str, revoked_by_id: int | None = None) -> None:
    grant = db.session.query(BranchAccessGrant).filter_by(user_id=user_id, branch_id=branch_id).first()
    if grant is None:
        raise NotFound("grant_not_found", userId=user_id, branchId=branch_id)

    db.session.delete(grant)
    db.session.commit()

    log_security_event(
        event_type="BRANCH_ACCESS_REVOKED",
        success=True,
        user_id=revoked_by_id,
        branch_id=branch_id,
        action=f"user:{user_id}",
    )


def cleanup_expired_grants() -> int:
    """Delete grants past expires_at. Returns the number deleted."""
    count = (
        db.session.query(BranchAccessGrant)
        .filter(BranchAccessGrant.expires_at.isnot(None), BranchAccessGrant.expires_at <= utcnow())
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return count
