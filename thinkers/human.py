"""
HumanThinker - you are the brain.

Prints the context and reads the next step from the terminal:
    Thought: <free text>
    Action:  tool:arg | tool:key=val,key=val | several joined by ';' | finish
An empty action records the thought alone.
"""

from typing import Awaitable, Callable, Dict, List, Optional

from core.console import default_console
from core.context import Act, Context, Finish, StepResult, Thought, ToolCall


def parse_action(action: str) -> List[ToolCall]:
    """
    Parse `tool:arg` / `tool:key=val,key=val` calls separated by ';'.

    A bare argument without '=' is taken as the `command` argument.
    """
    calls = []
    for chunk in action.split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        tool, _, args_str = chunk.partition(":")
        args: Dict[str, str] = {}
        if args_str:
            if "=" in args_str:
                for pair in args_str.split(","):
                    key, sep, value = pair.partition("=")
                    if sep:
                        args[key.strip()] = value.strip()
            else:
                args["command"] = args_str.strip()
        calls.append(ToolCall(tool=tool.strip(), args=args))
    return calls


def render_context(context: Context) -> str:
    lines = ["=" * 60, f"Task: {context.task}", "-" * 60]
    if context.transcript:
        lines.append("History:")
        for entry in context.transcript:
            label = entry.kind.value if entry.tool is None else f"{entry.kind.value} [{entry.tool}]"
            lines.append(f"  {label}: {entry.content}")
        lines.append("-" * 60)
    lines.append("Available tools:")
    for tool in context.tools:
        lines.append(f"  {tool.name} - {tool.description}")
    lines.append("=" * 60)
    return "\n".join(lines)


class HumanThinker:
    """
    Interactive thinker reading from the terminal.

    Args:
        ask: Async prompt-and-read function (defaults to the shared
             console reader)
        write: Output function (defaults to print)
    """

    def __init__(
        self,
        ask: Optional[Callable[[str], Awaitable[str]]] = None,
        write: Callable[[str], None] = print,
    ):
        self._ask_line = ask or default_console().ask
        self._write = write

    @property
    def model(self) -> str:
        return "human"

    async def _ask(self, prompt: str) -> str:
        return (await self._ask_line(prompt)).strip()

    async def next_step(self, context: Context) -> StepResult:
        self._write(render_context(context))

        thought = await self._ask("\nThought: ")
        action = await self._ask("Action (tool:arg, 'finish', or empty): ")

        if action.lower() == "finish":
            answer = await self._ask("Answer: ")
            return StepResult(step=Finish(answer=answer, thought=thought))

        calls = parse_action(action)
        if not calls:
            return StepResult(step=Thought(text=thought))
        return StepResult(step=Act(calls=calls, thought=thought))
