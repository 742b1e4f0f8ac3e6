"""Database connection and session management."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.services.config import get_settings


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for the given URL.

    SQLite uses StaticPool so an in-memory database is shared by every
    session of the process.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


_settings = get_settings()
engine = build_engine(_settings.database_url, echo=_settings.database_echo)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(session_factory: sessionmaker = SessionLocal) -> Generator[Session, None, None]:
    """Session context manager for scripts and background callers.

    Example:
        ```python
        with session_scope() as db:
            PaymentService(db).record_payment(...)
        ```
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


__all__ = ["engine", "SessionLocal", "build_engine", "get_db", "session_scope"]
