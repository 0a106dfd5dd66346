# mlmd_viewer/db/engine.py
"""
Database engine and session management.

Connects read-only to an ML-Metadata database. SQLite is the default
backend; any SQLAlchemy URL that points at an MLMD schema (e.g. MySQL)
works as well.
"""

from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from ..settings import settings


def build_engine(url: str) -> Engine:
    """
    Create an engine for the given MLMD database URL.

    SQLite connections are shared across FastAPI worker threads, so the
    same-thread check is disabled there. Other backends get pooling.
    """
    kwargs: Dict[str, Any] = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_size"] = 5
        kwargs["max_overflow"] = 10
    return create_engine(url, **kwargs)


engine = build_engine(settings.mlmd_database_url)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_engine() -> Engine:
    """Get SQLAlchemy engine."""
    return engine


def get_session() -> Generator[Session, None, None]:
    """
    Get database session.

    Yields a session that is closed when the request finishes.
    For use with FastAPI Depends.
    """
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Context manager for read-only sessions.

    The viewer never writes, so the session is rolled back on exit.

    Usage:
        with session_scope() as session:
            session.execute(...)
    """
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


def check_connection() -> bool:
    """
    Check database connection.

    Returns:
        True if connection successful
    """
    try:
        with session_scope() as session:
            session.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False


def get_schema_version() -> Optional[int]:
    """
    Read the MLMD schema version from the MLMDEnv table.

    Returns:
        Schema version, or None when the table is absent or unreadable
    """
    try:
        with session_scope() as session:
            row = session.execute(
                text("SELECT schema_version FROM MLMDEnv")
            ).fetchone()
            return int(row[0]) if row else None
    except SQLAlchemyError:
        return None
