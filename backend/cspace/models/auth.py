from __future__ import annotations

from datetime import datetime

from ..extensions import db
from cspace.time_utils import to_utc_z, utcnow


class Employee(db.Model):
    """
    Employee record and login account.

    WHY one table: every login belongs to an employee; the role column is a
    tag from cspace.permissions.roles (unknown tags are treated as
    "employee" at check time, never rejected at load time).

    operator_pin_hash is the bcrypt hash of the 6-digit reception PIN. PINs
    are unique within the employee's home branch and never stored in
    plaintext.
    """
    __tablename__ = "employees"
    __table_args__ = (
        db.Index("ix_employees_branch_status", "branch_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True)

    role = db.Column(db.String(32), nullable=False, default="employee")

    # Home branch (nullable for head-office staff)
    branch_id = db.Column(db.String(64), db.ForeignKey("branches.id"), nullable=True, index=True)

    # Bcrypt hashed password; NULL for employees without dashboard access
    password_hash = db.Column(db.String(255), nullable=True)

    # Bcrypt hashed 6-digit operator PIN
    operator_pin_hash = db.Column(db.String(255), nullable=True)

    # active | inactive | terminated
    status = db.Column(db.String(16), nullable=False, default="active")

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    branch = db.relationship("Branch", backref=db.backref("employees", lazy=True))

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def has_pin(self) -> bool:
        return self.operator_pin_hash is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role,
            "branch_id": self.branch_id,
            "status": self.status,
            "has_pin": self.has_pin,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class BranchAccessGrant(db.Model):
    """
    Explicit reception access to a branch beyond the user's home branch.

    Grants are additive: they never remove home-branch access. A grant with
    expires_at in the past is ignored by every access check and can be
    deleted at leisure.
    """
    __tablename__ = "reception_branch_access"
    __table_args__ = (
        db.UniqueConstraint("user_id", "branch_id", name="uq_reception_branch_access"),
        db.Index("ix_reception_branch_access_user", "user_id"),
        db.Index("ix_reception_branch_access_branch", "branch_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False)
    branch_id = db.Column(db.String(64), db.ForeignKey("branches.id"), nullable=False)
    granted_by_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    granted_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    user = db.relationship("Employee", foreign_keys=[user_id], backref=db.backref("branch_access_grants", lazy=True))
    branch = db.relationship("Branch", backref=db.backref("access_grants", lazy=True))
    granted_by = db.relationship("Employee", foreign_keys=[granted_by_id])

    def is_active_at(self, moment: datetime) -> bool:
        return self.expires_at is None or self.expires_at > moment

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "branchId": self.branch_id,
            "grantedBy": self.granted_by_id,
            "grantedAt": to_utc_z(self.granted_at),
            "expiresAt": to_utc_z(self.expires_at),
            "notes": self.notes,
            "userName": self.user.full_name if self.user else None,
            "branchName": self.branch.name if self.branch else None,
            "grantedByName": self.granted_by.full_name if self.granted_by else None,
        }


class RefreshToken(db.Model):
    """
    Issued refresh tokens.

    The token itself is a signed JWT carrying `jti`; this row is what makes
    it revocable. Rotation marks the row revoked and records the successor
    jti so a concurrent duplicate submission can be answered consistently.
    """
    __tablename__ = "refresh_tokens"
    __table_args__ = (
        db.Index("ix_refresh_tokens_user_active", "user_id", "revoked_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(64), nullable=False, unique=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False)

    issued_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)

    revoked_at = db.Column(db.DateTime, nullable=True)
    revoked_reason = db.Column(db.String(64), nullable=True)
    replaced_by_jti = db.Column(db.String(64), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    user = db.relationship("Employee", backref=db.backref("refresh_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "issued_at": to_utc_z(self.issued_at),
            "expires_at": to_utc_z(self.expires_at),
            "revoked_at": to_utc_z(self.revoked_at),
            "revoked_reason": self.revoked_reason,
        }
