"""Factory for session stores selected by configuration."""

from ..config import SessionStoreConfig
from .session_store import ISessionStore, SQLiteSessionStore


def create_session_store(config: SessionStoreConfig) -> ISessionStore:
    """Create the configured session store. Only implemented backends are built."""
    if config.type == "sqlite":
        return SQLiteSessionStore(config.db_path, ttl_seconds=config.ttl_seconds)

    raise ValueError(f"Unsupported session store type: {config.type}")
