# Overview: Service-layer operations for credentials; password and PIN hashing, employee login.

"""
Credential Service

WHY: Every dashboard action must be attributable to an employee, and every
reception operator switch to a PIN. Passwords, branch kiosk passwords and
operator PINs are all bcrypt hashed; nothing is reversible.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost BCRYPT_ROUNDS, default 12)
- PINs hashed with bcrypt (cost PIN_BCRYPT_ROUNDS, default 10); each hash
  has its own salt, so PIN lookup is a linear compare over a roster
- Minimum 8 characters, at least one letter and one digit
- PINs are exactly 6 ASCII digits
- Sessions are issued separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..errors import Conflict, InvalidCredentialFormat, NotFound
from ..extensions import db
from ..models import Branch, Employee
from ..permissions import ROLES
from cspace.time_utils import utcnow


_PIN_RE = re.compile(r"[0-9]{6}")


class PasswordValidationError(InvalidCredentialFormat):
    """Raised when password doesn't meet strength requirements."""
    code = "weak_password"


class PinValidationError(InvalidCredentialFormat):
    """Raised when a PIN is malformed or too easy to guess."""
    code = "invalid_pin_format"


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r"[A-Za-z]", password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def validate_pin_format(pin) -> None:
    """Exactly six ASCII digits. Anything else is rejected before lockout accounting."""
    if not isinstance(pin, str) or not _PIN_RE.fullmatch(pin):
        raise PinValidationError("PIN must be exactly 6 digits")


def validate_pin_strength(pin: str) -> None:
    """
    Reject trivially guessable PINs for manually chosen PINs.

    - All the same digit (111111)
    - Ascending or descending runs (123456, 654321)
    """
    validate_pin_format(pin)

    if len(set(pin)) == 1:
        raise PinValidationError("PIN cannot be a single repeated digit")

    digits = [int(c) for c in pin]
    steps = {b - a for a, b in zip(digits, digits[1:])}
    if steps == {1} or steps == {-1}:
        raise PinValidationError("PIN cannot be a sequential run of digits")


def _hash(secret: str, rounds: int) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")


def _check(secret: str, hashed: str | None) -> bool:
    if not secret or not hashed:
        return False
    try:
        return bcrypt.checkpw(secret.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Corrupt or non-bcrypt hash in the store
        return False


def hash_password(password: str) -> str:
    """Hash a password after validating its strength."""
    validate_password_strength(password)
    return _hash(password, current_app.config.get("BCRYPT_ROUNDS", 12))


def verify_password(password: str, password_hash: str | None) -> bool:
    """Timing-safe via bcrypt.checkpw."""
    return _check(password, password_hash)


def hash_pin(pin: str) -> str:
    validate_pin_format(pin)
    return _hash(pin, current_app.config.get("PIN_BCRYPT_ROUNDS", 10))


def verify_pin(pin: str, pin_hash: str | None) -> bool:
    return _check(pin, pin_hash)


def hash_branch_password(password: str) -> str:
    """Kiosk branch passwords follow the same strength rules as personal ones."""
    return hash_password(password)


def authenticate(email: str, password: str) -> Employee | None:
    """
    Authenticate an employee by email and password.

    Returns Employee if credentials valid and the employee is active, None
    otherwise. Updates last_login_at on success.
    """
    if not email or not password:
        return None

    employee = db.session.query(Employee).filter(
        db.func.lower(Employee.email) == email.strip().lower()
    ).first()

    if not employee or not employee.is_active:
        return None

    if not verify_password(password, employee.password_hash):
        return None

    employee.last_login_at = utcnow()
    db.session.commit()
    return employee


def create_employee(
    full_name: str,
    email: str | None = None,
    password: str | None = None,
    role: str = "employee",
    branch_id: str | None = None,
) -> Employee:
    """
    Create an employee (optionally with dashboard login).

    Raises:
        ValueError: unknown role
        NotFound: branch does not exist
        Conflict: email already in use
        PasswordValidationError: weak password
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    if branch_id is not None and db.session.get(Branch, branch_id) is None:
        raise NotFound("Branch not found", branchId=branch_id)

    if email:
        existing = db.session.query(Employee).filter(
            db.func.lower(Employee.email) == email.strip().lower()
        ).first()
        if existing:
            raise Conflict("Email already in use")

    employee = Employee(
        full_name=full_name,
        email=email.strip().lower() if email else None,
        role=role,
        branch_id=branch_id,
        password_hash=hash_password(password) if password else None,
    )
    db.session.add(employee)
    db.session.commit()
    return employee


def assign_role(employee_id: int, role: str) -> Employee:
    """
    Change an employee's role. Takes effect at the employee's next session
    refresh (role is re-read from the row on refresh).

    Raises:
        ValueError: unknown role
        NotFound: employee does not exist
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    employee = db.session.get(Employee, employee_id)
    if employee is None:
        raise NotFound("Employee not found", employeeId=employee_id)

    employee.role = role
    db.session.commit()
    return employee


def list_employees(branch_id: str | None = None, include_inactive: bool = False) -> list[Employee]:
    query = db.session.query(Employee)
    if branch_id is not None:
        query = query.filter(Employee.branch_id == branch_id)
    if not include_inactive:
        query = query.filter(Employee.status == "active")
    return query.order_by(Employee.full_name.asc()).all()
