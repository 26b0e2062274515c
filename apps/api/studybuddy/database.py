import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from studybuddy.models import Base
from studybuddy.settings import settings

logger = logging.getLogger(__name__)

engine = None
SessionLocal = None


def init_db(database_url: str | None = None) -> None:
    """Create the engine and tables. The audit log stays off when no URL is configured."""
    global engine, SessionLocal
    url = database_url if database_url is not None else settings.database_url
    if not url:
        logger.info("DATABASE_URL not set; moderation events will not be stored")
        return

    # SQLite connections are used from FastAPI's threadpool.
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)


def is_configured() -> bool:
    return SessionLocal is not None


@contextmanager
def get_db() -> Generator[Session, None, None]:
    """Transactional session scope. Raises RuntimeError when init_db() configured nothing."""
    if SessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
