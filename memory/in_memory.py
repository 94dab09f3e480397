"""
Non-persistent memory for ephemeral runs and tests.

Same contract as SqliteMemory; nothing survives the process.
"""

from collections import deque
from typing import Deque, Dict, List, Optional

from core.constants import DEFAULT_SESSION_CAP
from core.context import SessionEntry, TranscriptEntry


class InMemoryMemory:
    """Memory protocol backed by Python containers."""

    def __init__(self, session_cap: int = DEFAULT_SESSION_CAP):
        if session_cap < 1:
            raise ValueError("session_cap must be at least 1")
        self.path = ":memory:"
        self.session_cap = session_cap
        self._transcript: List[TranscriptEntry] = []
        # deque evicts from the left as part of the append itself
        self._sessions: Deque[SessionEntry] = deque(maxlen=session_cap)
        self._settings: Dict[str, str] = {}

    def close(self) -> None:
        pass

    async def append_task_entry(self, entry: TranscriptEntry) -> None:
        self._transcript.append(entry)

    async def task_transcript(self) -> List[TranscriptEntry]:
        return list(self._transcript)

    async def clear_task(self) -> None:
        self._transcript.clear()

    async def append_session_entry(self, entry: SessionEntry) -> None:
        self._sessions.append(entry)

    async def session_history(self, limit: int = DEFAULT_SESSION_CAP) -> List[SessionEntry]:
        """Most recent `limit` entries, oldest first."""
        if limit <= 0:
            return []
        return list(self._sessions)[-limit:]

    async def recall(self, query: str) -> List[SessionEntry]:
        needle = query.casefold()
        return [
            entry for entry in self._sessions
            if needle in entry.question.casefold() or needle in entry.answer.casefold()
        ]

    async def clear_sessions(self) -> None:
        self._sessions.clear()

    async def get_setting(self, key: str) -> Optional[str]:
        return self._settings.get(key)

    async def set_setting(self, key: str, value: str) -> None:
        self._settings[key] = value

    async def remove_setting(self, key: str) -> None:
        self._settings.pop(key, None)
