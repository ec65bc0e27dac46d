"""
Session storage backends.
"""
from .base import SessionStore
from .memory import InMemorySessionStore
from utils.config import config


def build_session_store() -> SessionStore:
    """Create the store selected by SESSION_STORE (memory or mongo)."""
    backend = config.storage.backend.lower()
    if backend == "mongo":
        from .mongo import MongoSessionStore
        return MongoSessionStore.from_config()
    if backend != "memory":
        raise ValueError(f"Unknown session store backend: {config.storage.backend}")
    return InMemorySessionStore()


__all__ = ["SessionStore", "InMemorySessionStore", "build_session_store"]
