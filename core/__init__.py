"""
Core module for the agent.

This module contains the core abstractions and implementations of the
ReAct loop: protocols, data model, the engine, the tool registry, events,
settings and errors.
"""

from core.protocols import ApprovalGate, LLMClient, Memory, Thinker, Tool
from core.context import (
    Act,
    Context,
    Finish,
    Outcome,
    SessionEntry,
    StepResult,
    Thought,
    TokenUsage,
    ToolCall,
    ToolResult,
    TranscriptEntry,
)
from core.errors import (
    AgentError,
    InfrastructureError,
    LoopFailure,
    MaxIterationsExceeded,
    RunCancelled,
)
from core.engine import EngineState, LoopEngine
from core.events import ChangeKind, EventBus, StateChange
from core.registry import ToolRegistry
from core.settings import Settings
from core.tool_decorator import tool, ToolSpec

__all__ = [
    # Protocols
    "ApprovalGate",
    "LLMClient",
    "Memory",
    "Thinker",
    "Tool",
    # Data model
    "Act",
    "Context",
    "Finish",
    "Outcome",
    "SessionEntry",
    "StepResult",
    "Thought",
    "TokenUsage",
    "ToolCall",
    "ToolResult",
    "TranscriptEntry",
    # Errors
    "AgentError",
    "InfrastructureError",
    "LoopFailure",
    "MaxIterationsExceeded",
    "RunCancelled",
    # Core classes
    "EngineState",
    "LoopEngine",
    "ToolRegistry",
    "ChangeKind",
    "EventBus",
    "StateChange",
    "Settings",
    # Tool decorator
    "tool",
    "ToolSpec",
]
