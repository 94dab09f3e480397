"""
Data model for the agent core.

Contains:
- ToolCall / Outcome / ToolResult: one tool invocation and what came back
- Thought / Act / Finish: the steps a Thinker can produce
- TokenUsage / StepResult: a step plus optional metering
- TranscriptEntry / SessionEntry: task-scoped and cross-task memory records
- Task: the state of one run
- Context: everything handed to the Thinker for one decision
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, List, Optional, Union


# =============================================================================
# TOOLS
# =============================================================================

@dataclass
class ToolCall:
    """A single tool invocation request. Argument order is preserved."""
    tool: str
    args: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Outcome:
    """
    Result of one tool execution.

    Errors are information for the Thinker, not faults for the loop.
    """
    ok: bool
    text: str

    @classmethod
    def success(cls, text: str) -> "Outcome":
        return cls(ok=True, text=text)

    @classmethod
    def error(cls, text: str) -> "Outcome":
        return cls(ok=False, text=text)


@dataclass
class ToolResult:
    """Outcome of a call, tagged with the tool that produced it."""
    tool: str
    outcome: Outcome

    def format(self) -> str:
        mark = "ok" if self.outcome.ok else "error"
        return f"[{self.tool}] {mark}: {self.outcome.text}"


@dataclass
class ToolDescription:
    """Catalog entry shown to the Thinker."""
    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# STEPS
# =============================================================================

@dataclass
class Thought:
    """Reasoning only. No side effect, still consumes an iteration."""
    text: str


@dataclass
class Act:
    """Execute one or many tool calls concurrently."""
    calls: List[ToolCall]
    thought: str = ""


@dataclass
class Finish:
    """Terminal step carrying the answer."""
    answer: str
    thought: str = ""


Step = Union[Thought, Act, Finish]


@dataclass
class TokenUsage:
    """Token counts reported by a metered provider."""
    input_tokens: int = 0
    output_tokens: int = 0

    def add(self, other: "TokenUsage") -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class StepResult:
    """A step plus token usage, present only for metered providers."""
    step: Step
    usage: Optional[TokenUsage] = None


@dataclass
class Completion:
    """Raw text returned by an LLM client, with usage when reported."""
    text: str
    usage: Optional[TokenUsage] = None


# =============================================================================
# MEMORY RECORDS
# =============================================================================

class EntryKind(str, Enum):
    TASK = "task"
    THOUGHT = "thought"
    ACTION = "action"
    OBSERVATION = "observation"
    ANSWER = "answer"


@dataclass
class TranscriptEntry:
    """One line of the running task's transcript."""
    kind: EntryKind
    content: str
    tool: Optional[str] = None
    args: Optional[Dict[str, str]] = None
    ok: Optional[bool] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "content": self.content,
            "tool": self.tool,
            "args": self.args,
            "ok": self.ok,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptEntry":
        return cls(
            kind=EntryKind(data["kind"]),
            content=data["content"],
            tool=data.get("tool"),
            args=data.get("args"),
            ok=data.get("ok"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


class SessionStatus(str, Enum):
    FINISHED = "finished"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SessionEntry:
    """
    Cross-task summary: question, final answer (or failure summary), time.

    Immutable once written. Entries for failed or cancelled runs carry their
    status so they are never mistaken for answers.
    """
    question: str
    answer: str
    timestamp: datetime = field(default_factory=datetime.now)
    status: SessionStatus = SessionStatus.FINISHED

    @property
    def complete(self) -> bool:
        return self.status == SessionStatus.FINISHED


# =============================================================================
# TASK AND CONTEXT
# =============================================================================

class TaskStatus(str, Enum):
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class Task:
    """State of a single run, created at run() entry and dropped at the end."""
    question: str
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    iteration: int = 0
    status: TaskStatus = TaskStatus.RUNNING
    answer: Optional[str] = None
    reason: Optional[str] = None

    def finish(self, answer: str) -> None:
        self.status = TaskStatus.FINISHED
        self.answer = answer

    def fail(self, reason: str) -> None:
        self.status = TaskStatus.FAILED
        self.reason = reason

    def cancel(self) -> None:
        self.status = TaskStatus.CANCELLED
        self.reason = "cancelled"


@dataclass
class Context:
    """Everything a Thinker sees when choosing the next step."""
    task: str
    tools: List[ToolDescription] = field(default_factory=list)
    transcript: List[TranscriptEntry] = field(default_factory=list)
    session_history: List[SessionEntry] = field(default_factory=list)
