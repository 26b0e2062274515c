import logging
from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from studybuddy.database import init_db
from studybuddy.events import list_flagged_messages, record_flagged_message
from studybuddy.llm import generate_reply
from studybuddy.logging import configure_logging
from studybuddy.lock import UnlockResult
from studybuddy.moderation import ModerationFilter, load_rules
from studybuddy.notifications import mask_email, notify_parent
from studybuddy.schemas import (
    ChatRequest,
    ChatResponse,
    ClassifyRequest,
    CreateSessionRequest,
    LockStatus,
    ModerationEventOut,
    SessionCreated,
    SessionResponse,
    VerdictResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from studybuddy.sessions import StudySession, create_session, delete_session, get_session
from studybuddy.settings import settings
from studybuddy.subjects import build_greeting

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    init_db()
    yield


app = FastAPI(title="StudyBuddy API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache
def get_moderation_filter() -> ModerationFilter:
    if settings.moderation_rules_file:
        return ModerationFilter(load_rules(settings.moderation_rules_file))
    return ModerationFilter()


def _require_session(session_id: str) -> StudySession:
    session = get_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


def _lock_status(session: StudySession) -> LockStatus:
    lock = session.lock
    if lock is None:
        return LockStatus(locked=False)
    return LockStatus(
        locked=True,
        time_remaining=lock.time_remaining(),
        can_resend=lock.can_resend(),
        parent_email=mask_email(lock.parent_email),
        reason=lock.reason,
    )


@app.get("/health")
def health() -> dict:
    return {"ok": True, "env": settings.env}


@app.post("/api/moderation/classify", response_model=VerdictResponse)
def classify_message(
    req: ClassifyRequest,
    content_filter: ModerationFilter = Depends(get_moderation_filter),
) -> VerdictResponse:
    verdict = content_filter.classify(req.message)
    return VerdictResponse(flagged=verdict.flagged, reason=verdict.reason)


@app.post("/api/sessions", response_model=SessionCreated, status_code=status.HTTP_201_CREATED)
def start_session(req: CreateSessionRequest) -> SessionCreated:
    session = create_session(student_name=req.student_name, parent_email=req.parent_email)
    logger.info("Session started for %s", session.student_name, extra={"session_id": session.id})
    return SessionCreated(
        session_id=session.id,
        student_name=session.student_name,
        greeting=build_greeting(session.student_name),
    )


@app.get("/api/sessions/{session_id}", response_model=SessionResponse)
def read_session(session_id: str) -> SessionResponse:
    session = _require_session(session_id)
    return SessionResponse(
        session_id=session.id,
        student_name=session.student_name,
        parent_email=mask_email(session.parent_email),
        locked=session.locked,
        message_count=len(session.history),
        created_at=session.created_at.isoformat(),
    )


@app.delete("/api/sessions/{session_id}")
def end_session(session_id: str) -> dict:
    if not delete_session(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return {"ok": True, "message": "Session ended"}


@app.post("/api/sessions/{session_id}/chat", response_model=ChatResponse)
async def chat(
    session_id: str,
    req: ChatRequest,
    content_filter: ModerationFilter = Depends(get_moderation_filter),
) -> ChatResponse:
    """
    Send one student message.

    The message is moderated before anything else happens. A flagged message
    locks the session; it stays in the history but is never forwarded to the completion backend.
    """
    session = _require_session(session_id)
    if session.locked:
        raise HTTPException(
            status_code=status.HTTP_423_LOCKED,
            detail="Chat is locked. Enter the verification code sent to your parent.",
        )
    if session.pending:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Still answering your previous message.",
        )
    if not req.message.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="message must not be empty")

    verdict = content_filter.classify(req.message)
    if verdict.flagged:
        # Kept for the record; recent_history() never sends flagged turns to the backend.
        session.append("user", req.message, flagged=True)
        lock = session.lock_chat(
            verdict.reason,
            ttl_seconds=settings.otp_ttl_seconds,
            resend_after_seconds=settings.otp_resend_after_seconds,
        )
        logger.warning("Message flagged: %s", verdict.reason, extra={"session_id": session.id})
        notify_parent(session.id, session.student_name, lock)
        record_flagged_message(session.id, req.message, verdict.reason)
        return ChatResponse(locked=True, reason=verdict.reason)

    session.append("user", req.message)
    session.pending = True
    try:
        result = await generate_reply(
            session.student_name,
            session.recent_history(settings.max_history_messages),
        )
    finally:
        session.pending = False
    session.append("assistant", result.content)

    return ChatResponse(
        locked=False,
        reply=result.content,
        reason=verdict.reason,
        model=result.model,
        stub=result.stub,
        fallback=result.fallback,
    )


@app.get("/api/sessions/{session_id}/lock", response_model=LockStatus)
def lock_status(session_id: str) -> LockStatus:
    return _lock_status(_require_session(session_id))


@app.post("/api/sessions/{session_id}/lock/resend", response_model=LockStatus)
def resend_code(session_id: str) -> LockStatus:
    session = _require_session(session_id)
    lock = session.lock
    if lock is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Chat is not locked")
    if not lock.can_resend():
        wait = lock.seconds_until_resend()
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"You can request a new code in {wait} seconds.",
        )
    lock.reissue()
    notify_parent(session.id, session.student_name, lock)
    return _lock_status(session)


@app.post("/api/sessions/{session_id}/lock/verify", response_model=VerifyCodeResponse)
def verify_code(session_id: str, req: VerifyCodeRequest) -> VerifyCodeResponse:
    session = _require_session(session_id)
    lock = session.lock
    if lock is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Chat is not locked")

    result = lock.verify(req.code)
    if result is UnlockResult.EXPIRED:
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="The verification code has expired. Request a new code.",
        )
    if result is UnlockResult.INVALID:
        logger.info("Invalid unlock attempt %d", lock.attempts, extra={"session_id": session.id})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid code. Please check the code sent to your parent's email.",
        )

    session.unlock()
    logger.info("Session unlocked", extra={"session_id": session.id})
    return VerifyCodeResponse(ok=True, message="Welcome back! Remember to keep conversations study-focused.")


@app.get("/api/sessions/{session_id}/events", response_model=list[ModerationEventOut])
def moderation_events(session_id: str, limit: int = 50) -> list[ModerationEventOut]:
    _require_session(session_id)
    return [ModerationEventOut(**row) for row in list_flagged_messages(session_id, limit=limit)]
