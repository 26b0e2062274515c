from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from studybuddy.database import get_db, is_configured
from studybuddy.models import ModerationEvent

logger = logging.getLogger(__name__)


def record_flagged_message(session_id: str, message: str, reason: str) -> int | None:
    """Store a flagged message. Returns the event id, or None when the DB is off or failing."""
    if not is_configured():
        return None
    try:
        with get_db() as db:
            event = ModerationEvent(session_id=session_id, message=message, reason=reason)
            db.add(event)
            db.flush()
            return event.id
    except SQLAlchemyError:
        logger.exception("Failed to record moderation event", extra={"session_id": session_id})
        return None


def list_flagged_messages(session_id: str, limit: int = 50) -> list[dict]:
    """Newest first; empty when the DB is not configured."""
    if not is_configured():
        return []
    with get_db() as db:
        rows = (
            db.query(ModerationEvent)
            .filter(ModerationEvent.session_id == session_id)
            .order_by(ModerationEvent.created_at.desc(), ModerationEvent.id.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                "id": row.id,
                "message": row.message,
                "reason": row.reason,
                "created_at": row.created_at.isoformat(),
            }
            for row in rows
        ]
