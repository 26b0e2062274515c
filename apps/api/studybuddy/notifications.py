"""
Parent notifications.

Delivery is simulated: the notice is written to the log instead of being
emailed. The code itself only appears in the log when EXPOSE_OTP_IN_LOGS is
enabled, which is meant for local development.
"""
from __future__ import annotations

import logging

from studybuddy.lock import ParentLock
from studybuddy.settings import settings

logger = logging.getLogger(__name__)


def mask_email(email: str) -> str:
    """p***@example.com style masking for display and logs."""
    local, sep, domain = (email or "").partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def notify_parent(session_id: str, student_name: str, lock: ParentLock) -> None:
    extra = {"session_id": session_id}
    logger.info(
        "Verification code for %s sent to %s (%s)",
        student_name,
        mask_email(lock.parent_email),
        lock.reason,
        extra=extra,
    )
    if settings.expose_otp_in_logs:
        logger.info("Generated code: %s (this would be sent to %s)", lock.code, lock.parent_email, extra=extra)
