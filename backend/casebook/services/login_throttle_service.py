"""
Login Throttling Service

Limits password guessing: 5 failed logins for a username within 15 minutes
locks that username for 15 minutes after the latest failure.

Attempts are tracked as LOGIN_FAILED rows in security_events (username
column). A successful login starts a fresh count.
"""

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import Employee, SecurityEvent
from casebook.time_utils import utcnow


MAX_FAILED_ATTEMPTS = 5
LOCKOUT_WINDOW = timedelta(minutes=15)
LOCKOUT_DURATION = timedelta(minutes=15)


def _last_success_at(username: str):
    event = db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_SUCCESS",
        SecurityEvent.username == username,
    ).order_by(SecurityEvent.occurred_at.desc(), SecurityEvent.id.desc()).first()
    return event.occurred_at if event else None


def _recent_failures_query(username: str):
    cutoff = utcnow() - LOCKOUT_WINDOW
    last_success = _last_success_at(username)
    if last_success is not None and last_success > cutoff:
        cutoff = last_success

    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.username == username,
        SecurityEvent.occurred_at >= cutoff,
    )


def get_recent_failed_attempts(username: str) -> int:
    return _recent_failures_query(username).count()


def is_account_locked(username: str) -> tuple[bool, int | None]:
    """
    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    failures = _recent_failures_query(username)
    if failures.count() < MAX_FAILED_ATTEMPTS:
        return False, None

    most_recent = failures.order_by(SecurityEvent.occurred_at.desc()).first()
    lockout_end = most_recent.occurred_at + LOCKOUT_DURATION
    now = utcnow()
    if now < lockout_end:
        return True, int((lockout_end - now).total_seconds())
    return False, None


def record_failed_attempt(
    username: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials",
) -> int:
    """Record a failed login; returns the number of recent failures."""
    employee = db.session.query(Employee).filter_by(username=username).first()

    db.session.add(SecurityEvent(
        employee_id=employee.id if employee else None,
        username=username,
        event_type="LOGIN_FAILED",
        resource="/api/auth/login",
        action="LOGIN",
        success=False,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    ))
    db.session.commit()

    return get_recent_failed_attempts(username)


def record_successful_login(
    employee_id: int,
    username: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    db.session.add(SecurityEvent(
        employee_id=employee_id,
        username=username,
        event_type="LOGIN_SUCCESS",
        resource="/api/auth/login",
        action="LOGIN",
        success=True,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    ))
    db.session.commit()
