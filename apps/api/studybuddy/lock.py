"""
Parent lock for a chat session.

When a message is flagged the chat is locked behind a six-digit one-time code
that is (notionally) sent to the parent. The code is valid for a fixed
countdown; a new code may be requested once the first minute has passed.
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

CODE_TTL_SECONDS = 300
RESEND_AFTER_SECONDS = 60


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_code() -> str:
    """Random six-digit code in the range 100000..999999."""
    return str(100000 + secrets.randbelow(900000))


class UnlockResult(str, Enum):
    UNLOCKED = "unlocked"
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass
class ParentLock:
    parent_email: str
    reason: str
    ttl_seconds: int = CODE_TTL_SECONDS
    resend_after_seconds: int = RESEND_AFTER_SECONDS
    code: str = field(default_factory=generate_code)
    issued_at: datetime = field(default_factory=_now)
    attempts: int = 0

    def time_remaining(self, now: Optional[datetime] = None) -> int:
        elapsed = int(((now or _now()) - self.issued_at).total_seconds())
        return max(0, self.ttl_seconds - elapsed)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.time_remaining(now) == 0

    def can_resend(self, now: Optional[datetime] = None) -> bool:
        return self.time_remaining(now) <= self.ttl_seconds - self.resend_after_seconds

    def seconds_until_resend(self, now: Optional[datetime] = None) -> int:
        return max(0, self.time_remaining(now) - (self.ttl_seconds - self.resend_after_seconds))

    def reissue(self, now: Optional[datetime] = None) -> str:
        """Replace the code and restart the countdown. Callers check can_resend() first."""
        self.code = generate_code()
        self.issued_at = now or _now()
        self.attempts = 0
        return self.code

    def verify(self, code: str, now: Optional[datetime] = None) -> UnlockResult:
        if self.is_expired(now):
            return UnlockResult.EXPIRED
        if secrets.compare_digest(code.strip().encode(), self.code.encode()):
            return UnlockResult.UNLOCKED
        self.attempts += 1
        return UnlockResult.INVALID
