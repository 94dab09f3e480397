"""
Memory stores for the agent core.

Provides the persistent SQLite store and the in-memory store, both
implementing the Memory protocol, plus a factory that picks one by path.
"""

from core.constants import DEFAULT_SESSION_CAP, IN_MEMORY_PATHS
from memory.in_memory import InMemoryMemory
from memory.sqlite_store import SqliteMemory


def open_memory(path: str, session_cap: int = DEFAULT_SESSION_CAP):
    """
    Open the store for `path`.

    "none", ":memory:" and the empty string select the non-persistent store.
    """
    if path.strip().lower() in IN_MEMORY_PATHS:
        return InMemoryMemory(session_cap=session_cap)
    return SqliteMemory(path, session_cap=session_cap)


__all__ = [
    "InMemoryMemory",
    "SqliteMemory",
    "open_memory",
]
