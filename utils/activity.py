"""Best-effort user activity trail."""
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app, has_request_context
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import ActivityLog
from utils.security import client_ip


def log_activity(user_id: Optional[int], action: str, details: Optional[dict] = None) -> None:
    """Record an activity row after the primary work has committed.

    Failures are logged and swallowed so they never undo or abort the caller.
    """
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        details=details or {},
        ip_address=client_ip() if has_request_context() else None,
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning(
            "Activity log write failed",
            extra={"user_id": user_id, "action": action},
            exc_info=True,
        )


def recent_activity(window_days: int = 30, limit: int = 100) -> list[ActivityLog]:
    since = datetime.utcnow() - timedelta(days=window_days)
    return (
        ActivityLog.query.filter(ActivityLog.created_at >= since)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .limit(limit)
        .all()
    )
