from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from secrets import token_urlsafe
from typing import Dict, List, Optional

from studybuddy.lock import ParentLock
from studybuddy.settings import settings


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{token_urlsafe(8)}"


@dataclass
class StudySession:
    """One student's chat: kept in memory only, gone on restart or after SESSION_TTL_SECONDS idle."""

    id: str
    student_name: str
    parent_email: str
    created_at: datetime = field(default_factory=_now)
    last_active_at: datetime = field(default_factory=_now)
    history: List[dict] = field(default_factory=list)
    lock: Optional[ParentLock] = None
    # True while a completion call is in flight; a second message is refused.
    pending: bool = False

    @property
    def locked(self) -> bool:
        return self.lock is not None

    def append(self, role: str, content: str, flagged: bool = False) -> None:
        self.history.append({"role": role, "content": content, "flagged": flagged})

    def recent_history(self, limit: int) -> List[dict]:
        """Last `limit` turns in completion format. Flagged turns are never included."""
        if limit <= 0:
            return []
        allowed = [m for m in self.history if not m["flagged"]]
        return [{"role": m["role"], "content": m["content"]} for m in allowed[-limit:]]

    def lock_chat(self, reason: str, ttl_seconds: int, resend_after_seconds: int) -> ParentLock:
        self.lock = ParentLock(
            parent_email=self.parent_email,
            reason=reason,
            ttl_seconds=ttl_seconds,
            resend_after_seconds=resend_after_seconds,
        )
        return self.lock

    def unlock(self) -> None:
        self.lock = None

    def is_expired(self, now: datetime) -> bool:
        return now - self.last_active_at >= timedelta(seconds=settings.session_ttl_seconds)


SESSIONS: Dict[str, StudySession] = {}


def purge_expired_sessions(now: Optional[datetime] = None) -> int:
    now = now or _now()
    expired = [sid for sid, session in SESSIONS.items() if session.is_expired(now)]
    for sid in expired:
        del SESSIONS[sid]
    return len(expired)


def create_session(student_name: str, parent_email: str) -> StudySession:
    purge_expired_sessions()
    session = StudySession(id=_new_id("sess"), student_name=student_name, parent_email=parent_email)
    SESSIONS[session.id] = session
    return session


def get_session(session_id: str) -> Optional[StudySession]:
    """Look up a live session and mark it active. Idle sessions past the TTL are dropped."""
    session = SESSIONS.get(session_id)
    if session is None:
        return None
    now = _now()
    if session.is_expired(now):
        del SESSIONS[session_id]
        return None
    session.last_active_at = now
    return session


def delete_session(session_id: str) -> bool:
    return SESSIONS.pop(session_id, None) is not None


def reset_sessions_for_tests() -> None:
    SESSIONS.clear()
