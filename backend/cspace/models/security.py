from __future__ import annotations

from ..extensions import db
from cspace.time_utils import to_utc_z, utcnow


class SecurityEvent(db.Model):
    """
    Security event audit log.

    WHY: Track permission denials, failed logins, refresh token reuse and
    kiosk lifecycle. Critical for detecting unauthorized access attempts.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "user_id", "event_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True, index=True)  # Nullable for anonymous/kiosk
    branch_id = db.Column(db.String(64), nullable=True, index=True)

    # PERMISSION_DENIED, LOGIN_FAILED, REFRESH_TOKEN_REUSE, KIOSK_LOGIN, ...
    event_type = db.Column(db.String(64), nullable=False, index=True)
    resource = db.Column(db.String(128), nullable=True)
    action = db.Column(db.String(128), nullable=True)

    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "branch_id": self.branch_id,
            "event_type": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class OperatorSwitchLog(db.Model):
    """
    Who took over a reception terminal, and as whom.

    session_user_id is a string: it holds an employee id for personal
    sessions and "kiosk:<branch>:<ts>" for kiosk sessions.
    """
    __tablename__ = "operator_switch_log"
    __table_args__ = (
        db.Index("ix_operator_switch_log_branch_time", "branch_id", "switched_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.String(64), db.ForeignKey("branches.id"), nullable=False)
    session_user_id = db.Column(db.String(128), nullable=False)
    switched_to_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False)
    is_cross_branch = db.Column(db.Boolean, nullable=False, default=False)
    home_branch_id = db.Column(db.String(64), nullable=True)
    switched_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    switched_to = db.relationship("Employee")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "session_user_id": self.session_user_id,
            "switched_to_id": self.switched_to_id,
            "is_cross_branch": self.is_cross_branch,
            "home_branch_id": self.home_branch_id,
            "switched_at": to_utc_z(self.switched_at),
        }


class PinLockout(db.Model):
    """Shared PIN lockout counters for multi-process deployments."""
    __tablename__ = "pin_lockouts"

    lockout_key = db.Column(db.String(255), primary_key=True)
    failure_count = db.Column(db.Integer, nullable=False, default=0)
    first_failure_at = db.Column(db.Float, nullable=True)  # epoch seconds
    locked_until = db.Column(db.Float, nullable=True)  # epoch seconds
