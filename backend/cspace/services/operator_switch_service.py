# Overview: Service-layer operations for reception operator switching and operator PINs.

"""
Operator Switch Service

WHY: A reception terminal (kiosk or personal session) is shared by whoever
is on shift. Operators identify themselves with a 6-digit PIN instead of a
full login; the PIN is matched against the branch roster.

ROSTER for a branch:
- Active home-branch employees with a PIN
- Active employees with a current BranchAssignment into the branch
- Active employees with an unexpired BranchAccessGrant into the branch
Home-branch employees come first, so on a PIN shared across branches the
local employee wins.

SECURITY:
- Format is validated before lockout accounting; malformed PINs never
  consume attempts
- The lockout check happens before any hash comparison; a locked key never
  touches the roster
- Hashes are independently salted bcrypt; matching is a linear scan with
  bcrypt.checkpw per candidate
- The switch log is best effort: a failed insert is logged and the switch
  still succeeds
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from ..errors import Conflict, DependencyUnavailable, InvalidCredentialFormat, NotFound
from ..extensions import db
from ..models import Branch, BranchAccessGrant, BranchAssignment, Employee, OperatorSwitchLog
from . import auth_service
from .auth_service import PinValidationError
from .lockout_service import PinLockoutGuard, get_guard, lockout_key
from cspace.time_utils import utcnow


MAX_PIN_DRAWS = 50

SWITCH_SUCCESS = "success"
SWITCH_LOCKED = "locked"
SWITCH_INVALID = "invalid"


@dataclass(frozen=True)
class OperatorCandidate:
    employee: Employee
    is_cross_branch: bool = False
    assignment_type: str | None = None

    def to_dict(self, branch_id: str) -> dict:
        payload = {
            "id": self.employee.id,
            "name": self.employee.full_name,
            "branchId": branch_id,
            "isCrossBranch": self.is_cross_branch,
        }
        if self.is_cross_branch:
            payload["homeBranchId"] = self.employee.branch_id
        return payload


@dataclass(frozen=True)
class SwitchResult:
    status: str
    branch_id: str
    operator: OperatorCandidate | None = None
    attempts_remaining: int | None = None
    lockout_remaining_seconds: int | None = None

    @property
    def success(self) -> bool:
        return self.status == SWITCH_SUCCESS

    def to_dict(self) -> dict:
        if self.status == SWITCH_SUCCESS:
            return {"success": True, "operator": self.operator.to_dict(self.branch_id)}
        if self.status == SWITCH_LOCKED:
            return {
                "success": False,
                "error": "too_many_attempts",
                "locked": True,
                "lockoutRemainingSeconds": self.lockout_remaining_seconds,
            }
        return {
            "success": False,
            "error": "invalid_pin",
            "attemptsRemaining": self.attempts_remaining,
        }


def _require_branch(branch_id: str) -> Branch:
    try:
        branch = db.session.get(Branch, branch_id)
    except SQLAlchemyError as e:
        db.session.rollback()
        raise DependencyUnavailable("Credential store unavailable") from e
    if branch is None:
        raise NotFound("branch_not_found", branchId=branch_id)
    return branch


def _roster_rows(branch_id: str, now: datetime):
    today = now.date()

    home = (
        db.session.query(Employee)
        .filter(
            Employee.branch_id == branch_id,
            Employee.status == "active",
            Employee.operator_pin_hash.isnot(None),
        )
        .order_by(Employee.id.asc())
        .all()
    )

    assignments = (
        db.session.query(BranchAssignment)
        .join(Employee, Employee.id == BranchAssignment.employee_id)
        .filter(
            BranchAssignment.branch_id == branch_id,
            BranchAssignment.start_date <= today,
            or_(BranchAssignment.end_date.is_(None), BranchAssignment.end_date >= today),
            Employee.status == "active",
            Employee.operator_pin_hash.isnot(None),
        )
        .order_by(BranchAssignment.start_date.asc(), BranchAssignment.id.asc())
        .all()
    )

    grants = (
        db.session.query(BranchAccessGrant)
        .join(Employee, Employee.id == BranchAccessGrant.user_id)
        .filter(
            BranchAccessGrant.branch_id == branch_id,
            or_(BranchAccessGrant.expires_at.is_(None), BranchAccessGrant.expires_at > now),
            Employee.status == "active",
            Employee.operator_pin_hash.isnot(None),
        )
        .order_by(BranchAccessGrant.granted_at.asc())
        .all()
    )
    return home, assignments, grants


def get_branch_operators(branch_id: str, now: datetime | None = None) -> list[OperatorCandidate]:
    """
    Every active employee who may switch in at branch_id by PIN.

    Raises DependencyUnavailable if the roster cannot be read.
    """
    try:
        home, assignments, grants = _roster_rows(branch_id, now or utcnow())
    except SQLAlchemyError as e:
        db.session.rollback()
        raise DependencyUnavailable("Credential store unavailable") from e

    roster = [OperatorCandidate(employee=e) for e in home]
    seen = {e.id for e in home}

    for assignment in assignments:
        if assignment.employee_id in seen:
            continue
        seen.add(assignment.employee_id)
        roster.append(OperatorCandidate(
            employee=assignment.employee,
            is_cross_branch=True,
            assignment_type=assignment.assignment_type,
        ))

    for grant in grants:
        if grant.user_id in seen:
            continue
        seen.add(grant.user_id)
        roster.append(OperatorCandidate(employee=grant.user, is_cross_branch=True, assignment_type="access_grant"))

    return roster


def get_assigned_operators(branch_id: str, now: datetime | None = None) -> list[dict]:
    """Employees assigned into branch_id from elsewhere, for the PIN overlay."""
    _require_branch(branch_id)
    operators = []
    for candidate in get_branch_operators(branch_id, now):
        if not candidate.is_cross_branch:
            continue
        home_branch = candidate.employee.branch
        operators.append({
            "id": candidate.employee.id,
            "name": candidate.employee.full_name,
            "homeBranchId": candidate.employee.branch_id,
            "homeBranchName": home_branch.name if home_branch else "Unknown",
            "assignmentType": candidate.assignment_type or "temporary",
        })
    return operators


def log_operator_switch(
    *,
    branch_id: str,
    session_user_id: str,
    candidate: OperatorCandidate,
) -> bool:
    """Insert an operator_switch_log row. Returns False (and warns) on failure."""
    try:
        db.session.add(OperatorSwitchLog(
            branch_id=branch_id,
            session_user_id=str(session_user_id),
            switched_to_id=candidate.employee.id,
            is_cross_branch=candidate.is_cross_branch,
            home_branch_id=candidate.employee.branch_id if candidate.is_cross_branch else None,
        ))
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning(
            "Operator switch log insert failed (PIN was valid, continuing): branch=%s operator=%s",
            branch_id,
            candidate.employee.id,
            exc_info=True,
        )
        return False
    return True


def switch_operator(
    branch_id: str,
    session_key: str,
    pin,
    session_user_id: str | None = None,
    guard: PinLockoutGuard | None = None,
) -> SwitchResult:
    """
    Identify the operator at branch_id by PIN.

    Raises:
        PinValidationError: PIN is not exactly 6 digits (no attempt consumed)
        InvalidCredentialFormat: branch_id missing
        NotFound: unknown branch
    """
    auth_service.validate_pin_format(pin)
    if not branch_id or not isinstance(branch_id, str):
        raise InvalidCredentialFormat("branchId is required", reason="missing_branch_id")
    _require_branch(branch_id)

    guard = guard or get_guard()
    key = lockout_key(branch_id, session_key)

    status = guard.check_lockout(key)
    if status.locked:
        return SwitchResult(SWITCH_LOCKED, branch_id, lockout_remaining_seconds=status.remaining_seconds)

    for candidate in get_branch_operators(branch_id):
        if auth_service.verify_pin(pin, candidate.employee.operator_pin_hash):
            guard.reset_lockout(key)
            log_operator_switch(
                branch_id=branch_id,
                session_user_id=session_user_id or session_key,
                candidate=candidate,
            )
            return SwitchResult(SWITCH_SUCCESS, branch_id, operator=candidate)

    failure = guard.record_failure(key)
    if failure.locked:
        return SwitchResult(SWITCH_LOCKED, branch_id, lockout_remaining_seconds=failure.lockout_remaining_seconds)
    return SwitchResult(SWITCH_INVALID, branch_id, attempts_remaining=failure.attempts_remaining)


def _pin_in_use(pin: str, hashes) -> bool:
    return any(auth_service.verify_pin(pin, pin_hash) for pin_hash in hashes)


def _branch_pin_hashes(branch_id: str, exclude_employee_id: int | None = None) -> dict[int, str]:
    rows = (
        db.session.query(Employee.id, Employee.operator_pin_hash)
        .filter(Employee.branch_id == branch_id, Employee.operator_pin_hash.isnot(None))
        .all()
    )
    return {emp_id: pin_hash for emp_id, pin_hash in rows if emp_id != exclude_employee_id}


def set_operator_pin(employee_id: int, pin: str) -> Employee:
    """
    Set one employee's PIN after format, strength and branch uniqueness checks.

    Raises:
        PinValidationError: bad format or weak PIN
        NotFound: unknown employee
        Conflict: another employee in the same home branch already uses the PIN
    """
    auth_service.validate_pin_format(pin)
    auth_service.validate_pin_strength(pin)

    employee = db.session.get(Employee, employee_id)
    if employee is None:
        raise NotFound("employee_not_found", employeeId=employee_id)

    if employee.branch_id:
        others = _branch_pin_hashes(employee.branch_id, exclude_employee_id=employee.id)
        if _pin_in_use(pin, others.values()):
            raise Conflict("PIN already in use in this branch", reason="pin_in_use")

    employee.operator_pin_hash = auth_service.hash_pin(pin)
    db.session.commit()
    return employee


def clear_operator_pin(employee_id: int) -> Employee:
    employee = db.session.get(Employee, employee_id)
    if employee is None:
        raise NotFound("employee_not_found", employeeId=employee_id)
    employee.operator_pin_hash = None
    db.session.commit()
    return employee


def _generate_pin() -> str:
    return str(100000 + secrets.randbelow(900000))


def _draw_unique_pin(batch_pins: set[str], existing_hashes) -> str | None:
    for _ in range(MAX_PIN_DRAWS):
        pin = _generate_pin()
        if pin in batch_pins:
            continue
        try:
            auth_service.validate_pin_strength(pin)
        except PinValidationError:
            continue
        if _pin_in_use(pin, existing_hashes):
            continue
        return pin
    return None


def bulk_assign_pins(branch_id: str | None = None, overwrite: bool = False) -> dict:
    """
    Generate a fresh PIN for every active employee that needs one.

    Employees without a home branch are not eligible (PIN uniqueness is per
    home branch). The plaintext PINs are returned once and never stored.

    Returns {"assigned": [...], "skipped": [...]}.

    Raises:
        NotFound: branch_id given but unknown
        Conflict: there were candidates but none could get a unique PIN
    """
    if branch_id is not None:
        _require_branch(branch_id)

    query = db.session.query(Employee).filter(Employee.status == "active", Employee.branch_id.isnot(None))
    if branch_id is not None:
        query = query.filter(Employee.branch_id == branch_id)
    if not overwrite:
        query = query.filter(Employee.operator_pin_hash.is_(None))
    employees = query.order_by(Employee.branch_id.asc(), Employee.id.asc()).all()

    by_branch: dict[str, list[Employee]] = {}
    for employee in employees:
        by_branch.setdefault(employee.branch_id, []).append(employee)

    assigned = []
    skipped = []

    for bid, branch_employees in by_branch.items():
        existing = _branch_pin_hashes(bid)
        batch_pins: set[str] = set()

        for employee in branch_employees:
            # The employee's own current PIN is about to be replaced
            others = [h for emp_id, h in existing.items() if emp_id != employee.id]
            pin = _draw_unique_pin(batch_pins, others)

            if pin is None:
                current_app.logger.warning(
                    "Could not generate unique PIN for employee %s after %s attempts",
                    employee.id,
                    MAX_PIN_DRAWS,
                )
                skipped.append({
                    "employeeId": employee.id,
                    "employeeName": employee.full_name,
                    "branchId": bid,
                    "reason": "pin_generation_exhausted",
                })
                continue

            employee.operator_pin_hash = auth_service.hash_pin(pin)
            existing[employee.id] = employee.operator_pin_hash
            batch_pins.add(pin)
            assigned.append({
                "employeeId": employee.id,
                "employeeName": employee.full_name,
                "branchId": bid,
                "pin": pin,
            })

    if skipped and not assigned:
        db.session.rollback()
        raise Conflict("Could not generate unique PINs", skipped=skipped)

    db.session.commit()
    return {"assigned": assigned, "skipped": skipped}
