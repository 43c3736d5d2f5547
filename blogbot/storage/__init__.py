"""Session storage module."""

from .factory import create_session_store
from .session_store import ISessionStore, SQLiteSessionStore

__all__ = ["ISessionStore", "SQLiteSessionStore", "create_session_store"]
