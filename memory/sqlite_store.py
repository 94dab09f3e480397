"""
SQLite-backed memory.

One database file holds three tables:
- task_transcript: entries of the running task, cleared at the start of each run
- session_history: question/answer summaries kept across restarts (FIFO cap)
- settings: small key/value table (e.g. the last selected model)
"""

import json
import re
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from loguru import logger

from core.constants import DEFAULT_SESSION_CAP
from core.context import SessionEntry, SessionStatus, TranscriptEntry
from core.errors import MemoryStoreError

_SCHEMA = """
CREATE TABLE IF NOT EXISTS task_transcript (
    id    INTEGER PRIMARY KEY AUTOINCREMENT,
    entry TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS session_history (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp TEXT NOT NULL,
    question  TEXT NOT NULL,
    answer    TEXT NOT NULL,
    status    TEXT NOT NULL DEFAULT 'finished'
);
CREATE TABLE IF NOT EXISTS settings (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


def _session_entries(rows: List[tuple]) -> List[SessionEntry]:
    return [
        SessionEntry(
            question=question,
            answer=answer,
            timestamp=datetime.fromisoformat(timestamp),
            status=SessionStatus(status),
        )
        for timestamp, question, answer, status in rows
    ]


class SqliteMemory:
    """
    Persistent implementation of the Memory protocol.

    Statements are short and run inline; a lock serializes access to the
    single connection.

    Args:
        path: Database file (parent directories are created)
        session_cap: Maximum session entries kept; oldest evicted first
    """

    def __init__(self, path: str, session_cap: int = DEFAULT_SESSION_CAP):
        if session_cap < 1:
            raise ValueError("session_cap must be at least 1")
        self.path = path
        self.session_cap = session_cap
        self._lock = threading.Lock()
        try:
            Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(Path(path).expanduser()), check_same_thread=False)
            self._conn.executescript(_SCHEMA)
        except (sqlite3.Error, OSError) as e:
            raise MemoryStoreError(f"cannot open memory store at {path}: {e}") from e
        logger.debug(f"Opened memory store at {path}")

    def _execute(self, sql: str, params: tuple = ()) -> List[tuple]:
        with self._lock:
            try:
                with self._conn:
                    return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise MemoryStoreError(f"memory store failure: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # --- Task transcript ---

    async def append_task_entry(self, entry: TranscriptEntry) -> None:
        self._execute(
            "INSERT INTO task_transcript (entry) VALUES (?)",
            (json.dumps(entry.to_dict()),),
        )

    async def task_transcript(self) -> List[TranscriptEntry]:
        rows = self._execute("SELECT entry FROM task_transcript ORDER BY id ASC")
        return [TranscriptEntry.from_dict(json.loads(row[0])) for row in rows]

    async def clear_task(self) -> None:
        self._execute("DELETE FROM task_transcript")

    # --- Session history ---

    async def append_session_entry(self, entry: SessionEntry) -> None:
        """Insert and evict in one transaction so the cap is never exceeded."""
        with self._lock:
            try:
                with self._conn:
                    self._conn.execute(
                        "INSERT INTO session_history (timestamp, question, answer, status) "
                        "VALUES (?, ?, ?, ?)",
                        (entry.timestamp.isoformat(), entry.question, entry.answer, entry.status.value),
                    )
                    self._conn.execute(
                        "DELETE FROM session_history WHERE id NOT IN ("
                        "SELECT id FROM session_history ORDER BY id DESC LIMIT ?)",
                        (self.session_cap,),
                    )
            except sqlite3.Error as e:
                raise MemoryStoreError(f"memory store failure: {e}") from e

    async def session_history(self, limit: int = DEFAULT_SESSION_CAP) -> List[SessionEntry]:
        """
        Most recent `limit` entries (never more than the cap), oldest first.
        """
        if limit <= 0:
            return []
        rows = self._execute(
            "SELECT timestamp, question, answer, status FROM ("
            "SELECT id, timestamp, question, answer, status FROM session_history "
            "ORDER BY id DESC LIMIT ?) ORDER BY id ASC",
            (min(limit, self.session_cap),),
        )
        return _session_entries(rows)

    async def recall(self, query: str) -> List[SessionEntry]:
        """Substring search over questions and answers, oldest first."""
        pattern = "%" + re.sub(r"([\\%_])", r"\\\1", query) + "%"
        rows = self._execute(
            "SELECT timestamp, question, answer, status FROM session_history "
            "WHERE question LIKE ? ESCAPE '\\' OR answer LIKE ? ESCAPE '\\' ORDER BY id ASC",
            (pattern, pattern),
        )
        return _session_entries(rows)

    async def clear_sessions(self) -> None:
        self._execute("DELETE FROM session_history")

    # --- Settings ---

    async def get_setting(self, key: str) -> Optional[str]:
        rows = self._execute("SELECT value FROM settings WHERE key = ?", (key,))
        return rows[0][0] if rows else None

    async def set_setting(self, key: str, value: str) -> None:
        self._execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )

    async def remove_setting(self, key: str) -> None:
        self._execute("DELETE FROM settings WHERE key = ?", (key,))
