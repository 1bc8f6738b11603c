from __future__ import annotations

from datetime import date

from ..extensions import db
from cspace.time_utils import to_utc_z, utcnow


class Branch(db.Model):
    """
    Physical coworking branch.

    Branch ids are stable slugs ("yunusabad", "chilanzar") shared with the
    rest of the HR system.

    KIOSK: reception_password_hash is the bcrypt hash of the shared branch
    password used to open a kiosk session. NULL means kiosk mode is disabled
    for the branch.
    """
    __tablename__ = "branches"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True)

    reception_password_hash = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def kiosk_enabled(self) -> bool:
        return bool(self.reception_password_hash)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "kiosk_enabled": self.kiosk_enabled,
            "created_at": to_utc_z(self.created_at),
        }


class BranchAssignment(db.Model):
    """
    Work assignment of an employee to a branch other than their home branch.

    Assigned employees join the branch's operator roster for PIN switching
    while the assignment is active (start_date <= today <= end_date, or no
    end_date).
    """
    __tablename__ = "branch_assignments"
    __table_args__ = (
        db.Index("ix_branch_assignments_branch_dates", "branch_id", "start_date", "end_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    branch_id = db.Column(db.String(64), db.ForeignKey("branches.id"), nullable=False, index=True)

    # temporary | permanent | cover
    assignment_type = db.Column(db.String(32), nullable=False, default="temporary")

    start_date = db.Column(db.Date, nullable=False, default=date.today)
    end_date = db.Column(db.Date, nullable=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    employee = db.relationship("Employee", foreign_keys=[employee_id], backref=db.backref("branch_assignments", lazy=True))
    branch = db.relationship("Branch", backref=db.backref("assignments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "branch_id": self.branch_id,
            "assignment_type": self.assignment_type,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }
