# Overview: Service-layer operations for maintenance; retention cleanup of the audit trail.

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent
from pharmapos.time_utils import utcnow

# Kept regardless of age: each one marks stock that may need manual repair
RETAINED_EVENT_TYPES = ("LEDGER_INCONSISTENT", "BOOTSTRAP_ADMIN_CREATED")


def cleanup_security_events(*, retention_days: int = 90) -> int:
    """Delete security events older than retention_days, except RETAINED_EVENT_TYPES."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff,
        SecurityEvent.event_type.notin_(RETAINED_EVENT_TYPES),
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def list_ledger_inconsistencies(limit: int = 50) -> list[SecurityEvent]:
    """Most recent ledger inconsistency events, newest first."""
    return (
        db.session.query(SecurityEvent)
        .filter(SecurityEvent.event_type == "LEDGER_INCONSISTENT")
        .order_by(SecurityEvent.occurred_at.desc(), SecurityEvent.id.desc())
        .limit(limit)
        .all()
    )
