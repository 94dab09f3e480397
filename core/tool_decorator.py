"""
Tool specification and decorator system.

Provides:
- ToolSpec: name, description and JSON Schema of a tool's arguments
- Schema helpers for the common parameter shapes
- validate_args(): JSON Schema validation run before every dispatch
- @tool: turns a plain async function into a registrable Tool

Tool arguments travel as strings, so every property schema is a string
schema. Schemas stay compatible with OpenAI/Groq function calling.
"""

from dataclasses import dataclass, field
from functools import wraps
from typing import Dict, Any, Callable, Awaitable, Optional, List, Union

from jsonschema import Draft202012Validator

from core.context import Outcome, ToolDescription


@dataclass
class ToolSpec:
    """
    Specification for a tool using JSON Schema format.

    Attributes:
        name: The tool's registered name (used to call the tool)
        description: Human-readable description of what the tool does
        input_schema: JSON Schema defining the input parameters
        returns_description: Description of what the tool returns
    """
    name: str
    description: str
    input_schema: Dict[str, Any] = field(default_factory=lambda: {
        "type": "object",
        "properties": {},
        "required": []
    })
    returns_description: Optional[str] = None

    def describe(self) -> ToolDescription:
        """Catalog entry for context construction."""
        description = self.description
        if self.returns_description:
            description += f" Returns: {self.returns_description}"
        return ToolDescription(
            name=self.name,
            description=description,
            parameters=self.input_schema,
        )


# =============================================================================
# SCHEMA HELPERS
# =============================================================================

def string_param(description: str, enum: Optional[List[str]] = None) -> Dict[str, Any]:
    """Create a string parameter schema."""
    schema = {"type": "string", "description": description}
    if enum:
        schema["enum"] = enum
    return schema


def make_schema(
    properties: Dict[str, Dict[str, Any]],
    required: Optional[List[str]] = None,
    allow_extra: bool = False,
) -> Dict[str, Any]:
    """
    Create a complete input schema.

    Args:
        properties: Dict mapping parameter names to their schemas
        required: List of required parameter names
        allow_extra: Accept arguments not listed in properties

    Returns:
        Complete JSON Schema object
    """
    return {
        "type": "object",
        "properties": properties,
        "required": required or [],
        "additionalProperties": allow_extra,
    }


def validate_args(spec: ToolSpec, args: Dict[str, str]) -> Optional[str]:
    """
    Validate call arguments against the tool's schema.

    Returns:
        None when valid, otherwise a message describing every violation
    """
    validator = Draft202012Validator(spec.input_schema)
    errors = sorted(validator.iter_errors(args), key=lambda e: list(e.path))
    if not errors:
        return None
    return "; ".join(error.message for error in errors)


# =============================================================================
# DECORATOR
# =============================================================================

ToolFunc = Callable[..., Awaitable[Union[str, Outcome]]]


class FunctionTool:
    """Adapts an async function taking keyword string arguments to the Tool protocol."""

    def __init__(self, spec: ToolSpec, func: ToolFunc):
        self.spec = spec
        self._func = func

    @property
    def name(self) -> str:
        return self.spec.name

    async def execute(self, args: Dict[str, str]) -> Outcome:
        result = await self._func(**args)
        if isinstance(result, Outcome):
            return result
        return Outcome.success(str(result))

    def __repr__(self) -> str:
        return f"FunctionTool({self.spec.name!r})"


def tool(spec: ToolSpec) -> Callable[[ToolFunc], FunctionTool]:
    """
    Decorator that wraps an async function into a registrable tool.

    Usage:
        @tool(ToolSpec(
            name="echo",
            description="Repeats the message back",
            input_schema=make_schema(
                properties={"message": string_param("Text to repeat")},
                required=["message"]
            ),
        ))
        async def echo(message: str) -> str:
            return message

        await registry.register(echo)

    Args:
        spec: The tool specification

    Returns:
        Decorator producing a FunctionTool
    """
    def decorator(func: ToolFunc) -> FunctionTool:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await func(*args, **kwargs)

        return FunctionTool(spec, wrapper)
    return decorator
