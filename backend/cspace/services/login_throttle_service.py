"""
Login Throttling Service

WHY: Prevent brute-force password attacks on the dashboard login by
limiting failed attempts per email. Operator PIN attempts are throttled
separately by the PIN lockout guard (see lockout_service.py).

- Lockout after MAX_FAILED_ATTEMPTS failures within LOCKOUT_WINDOW
- Lockout lasts LOCKOUT_DURATION from the most recent failure
- Uses the security_events table for tracking
- A successful login resets the count
"""

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent
from .permission_service import log_security_event
from cspace.time_utils import utcnow


MAX_FAILED_ATTEMPTS = 10
LOCKOUT_WINDOW = timedelta(minutes=15)
LOCKOUT_DURATION = timedelta(minutes=15)


def _normalize(identifier: str) -> str:
    return (identifier or "").strip().lower()


def _last_success_at(identifier: str):
    row = db.session.query(SecurityEvent.occurred_at).filter(
        SecurityEvent.event_type == "LOGIN_SUCCESS",
        SecurityEvent.action == identifier,
    ).order_by(SecurityEvent.occurred_at.desc()).first()
    return row[0] if row else None


def get_recent_failed_attempts(identifier: str) -> int:
    """Count LOGIN_FAILED events within LOCKOUT_WINDOW since the last success."""
    identifier = _normalize(identifier)
    cutoff = utcnow() - LOCKOUT_WINDOW

    last_success = _last_success_at(identifier)
    if last_success and last_success > cutoff:
        cutoff = last_success

    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == identifier,
        SecurityEvent.occurred_at > cutoff,
    ).count()


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    identifier = _normalize(identifier)
    if get_recent_failed_attempts(identifier) < MAX_FAILED_ATTEMPTS:
        return False, None

    most_recent = db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == identifier,
    ).order_by(SecurityEvent.occurred_at.desc()).first()

    if most_recent:
        lockout_end = most_recent.occurred_at + LOCKOUT_DURATION
        now = utcnow()
        if now < lockout_end:
            return True, int((lockout_end - now).total_seconds())

    return False, None


def record_failed_attempt(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials",
) -> int:
    """Record a failed login attempt; returns the recent failure count."""
    identifier = _normalize(identifier)
    log_security_event(
        event_type="LOGIN_FAILED",
        success=False,
        resource="/api/auth/login",
        action=identifier,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return get_recent_failed_attempts(identifier)


def record_successful_login(
    user_id: int,
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    log_security_event(
        event_type="LOGIN_SUCCESS",
        success=True,
        user_id=user_id,
        resource="/api/auth/login",
        action=_normalize(identifier),
        ip_address=ip_address,
        user_agent=user_agent,
    )
