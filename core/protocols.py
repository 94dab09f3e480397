"""
Protocol definitions for the agent core.

These protocols define the contracts between components, enabling:
- Dependency injection
- Easy mocking for tests
- Swappable implementations (human, remote LLM or scripted thinkers;
  SQLite or in-memory stores)

Depend on abstractions, not concretions.
"""

from typing import Protocol, Dict, Any, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from core.context import (
        Completion,
        Context,
        Outcome,
        SessionEntry,
        StepResult,
        TranscriptEntry,
    )
    from core.tool_decorator import ToolSpec


class Thinker(Protocol):
    """
    The decision maker - chooses the next step for the loop.

    Purely advisory: it must not mutate engine state.
    """

    @property
    def model(self) -> str:
        """Identifier of the model (or mode) behind this thinker."""
        ...

    async def next_step(self, context: "Context") -> "StepResult":
        """
        Produce the next step given the current context.

        Args:
            context: Task, tool catalog, transcript and session history

        Returns:
            The chosen step plus optional token usage
        """
        ...


class Tool(Protocol):
    """
    A named, schema-described executable action.

    Implementations return an Outcome; anything they raise is converted to an
    error Outcome by the registry.
    """

    spec: "ToolSpec"

    async def execute(self, args: Dict[str, str]) -> "Outcome":
        """
        Run the tool.

        Args:
            args: Argument name to string value, already schema-validated

        Returns:
            Success or error outcome
        """
        ...


class Memory(Protocol):
    """
    Two-tier memory: the running task's transcript and persisted session
    summaries, plus a small key/value settings table.
    """

    async def append_task_entry(self, entry: "TranscriptEntry") -> None:
        ...

    async def task_transcript(self) -> List["TranscriptEntry"]:
        ...

    async def clear_task(self) -> None:
        ...

    async def append_session_entry(self, entry: "SessionEntry") -> None:
        """Store a summary, evicting the oldest entries beyond the cap."""
        ...

    async def session_history(self, limit: int = 50) -> List["SessionEntry"]:
        """Most recent entries, returned oldest first."""
        ...

    async def recall(self, query: str) -> List["SessionEntry"]:
        """Session entries whose question or answer contains `query` (case-insensitive), oldest first."""
        ...

    async def clear_sessions(self) -> None:
        ...

    async def get_setting(self, key: str) -> Optional[str]:
        ...

    async def set_setting(self, key: str, value: str) -> None:
        ...

    async def remove_setting(self, key: str) -> None:
        ...


class LLMClient(Protocol):
    """
    Abstraction for any chat-completion provider (Groq, Mock).

    Implementations take chat messages and return the text plus usage.
    """

    async def complete(self, messages: List[Dict[str, str]], **kwargs: Any) -> "Completion":
        ...

    async def list_models(self) -> List[str]:
        ...


class ApprovalGate(Protocol):
    """
    Decides whether a shell command may run.

    Returning False, raising, or never answering are all denials.
    """

    async def request(self, command: str) -> bool:
        ...
