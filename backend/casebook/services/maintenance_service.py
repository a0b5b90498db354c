# Overview: Service-layer operations for maintenance; pruning security events and stale sessions.

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent
from . import session_service
from casebook.time_utils import utcnow


def cleanup_security_events(*, retention_days: int = 90) -> int:
    """
    Delete security events older than retention_days.

    Failed logins inside the lockout window are always newer than any
    sensible retention, so throttling is unaffected.
    """
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def cleanup_sessions() -> int:
    """Delete expired or revoked session tokens older than 30 days."""
    return session_service.cleanup_expired_sessions()
