# Database module
from .engine import get_engine, get_session, session_scope, SessionLocal

__all__ = ["get_engine", "get_session", "session_scope", "SessionLocal"]
