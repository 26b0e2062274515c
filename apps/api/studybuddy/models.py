from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, DateTime, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ModerationEvent(Base):
    """A flagged student message, kept so a parent can review why the chat was locked."""
    __tablename__ = "moderation_events"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(64), nullable=False, index=True)
    message = Column(Text, nullable=False)
    reason = Column(String(256), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index("ix_moderation_events_session_created", "session_id", "created_at"),
    )
