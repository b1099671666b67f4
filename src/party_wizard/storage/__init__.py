"""Session and transcript persistence backends."""

from __future__ import annotations

from .base import SessionStore
from .memory import AsyncMemorySessionStore
from .sqlite import AsyncSQLiteSessionStore


def create_store(database_path: str | None) -> SessionStore:
    """Create the SQLite store for a path, or the in-memory store for None."""
    if database_path is None:
        return AsyncMemorySessionStore()
    return AsyncSQLiteSessionStore(database_path)


__all__ = [
    "AsyncMemorySessionStore",
    "AsyncSQLiteSessionStore",
    "SessionStore",
    "create_store",
]
