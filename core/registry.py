"""
ToolRegistry - the Body of the agent.

Maps tool names to tools and executes them. Safe for concurrent use:
dispatch and listing share a read lock, registration takes the write lock,
so the tool set can change at runtime without tearing a batch in flight.
"""

import asyncio
from typing import Dict, List, Optional

from loguru import logger

from core.context import Outcome, ToolCall, ToolDescription, ToolResult
from core.locks import RWLock
from core.protocols import Tool
from core.tool_decorator import validate_args


class ToolRegistry:
    """
    Concurrent-safe name -> tool mapping with batch dispatch.

    Every fault inside a tool is caught here and returned as an error
    Outcome. Nothing a tool does can crash the loop or a sibling call.
    """

    def __init__(self):
        self._registry: Dict[str, Tool] = {}
        self._lock = RWLock()

    async def register(self, tool: Tool) -> None:
        """
        Register a tool under its spec name, replacing any previous one.

        Args:
            tool: Object implementing the Tool protocol
        """
        async with self._lock.write():
            self._registry[tool.spec.name] = tool
        logger.debug(f"Registered tool '{tool.spec.name}'")

    async def unregister(self, name: str) -> bool:
        """
        Unregister a tool.

        Args:
            name: The name of the tool to remove

        Returns:
            True if the tool was removed, False if it wasn't found
        """
        async with self._lock.write():
            removed = self._registry.pop(name, None) is not None
        if removed:
            logger.debug(f"Unregistered tool '{name}'")
        return removed

    async def get(self, name: str) -> Optional[Tool]:
        async with self._lock.read():
            return self._registry.get(name)

    async def list_tools(self) -> List[str]:
        """List all available tool names, sorted."""
        async with self._lock.read():
            return sorted(self._registry)

    async def descriptions(self) -> List[ToolDescription]:
        """Catalog of every tool (name, purpose, parameter schema)."""
        async with self._lock.read():
            return [self._registry[name].spec.describe() for name in sorted(self._registry)]

    async def execute(self, call: ToolCall) -> ToolResult:
        """
        Validate and execute a single call.

        Args:
            call: Tool name and string arguments

        Returns:
            ToolResult; unknown tools, bad arguments and tool exceptions
            all become error outcomes
        """
        async with self._lock.read():
            tool = self._registry.get(call.tool)
        return await self._run(tool, call)

    async def dispatch(self, calls: List[ToolCall], deadline: float) -> List[ToolResult]:
        """
        Execute a batch concurrently under one shared deadline.

        The tools for the whole batch are looked up under a single read lock,
        so a registration racing with the batch is seen by all of its calls
        or by none.

        Args:
            calls: Ordered tool calls from one Act step
            deadline: Absolute event-loop time (loop.time()) shared by all calls

        Returns:
            Results in call order, regardless of completion order. A call
            still running at the deadline yields Outcome.error("timeout");
            its siblings are unaffected.
        """
        if not calls:
            return []

        async with self._lock.read():
            tools = [self._registry.get(call.tool) for call in calls]

        async def bounded(tool: Optional[Tool], call: ToolCall) -> ToolResult:
            try:
                async with asyncio.timeout_at(deadline):
                    return await self._run(tool, call)
            except TimeoutError:
                logger.info(f"Tool '{call.tool}' hit the step deadline")
                return ToolResult(call.tool, Outcome.error("timeout"))

        results = await asyncio.gather(*(bounded(t, c) for t, c in zip(tools, calls)))
        return list(results)

    async def _run(self, tool: Optional[Tool], call: ToolCall) -> ToolResult:
        if tool is None:
            return ToolResult(call.tool, Outcome.error(f"unknown tool: {call.tool}"))

        try:
            problem = validate_args(tool.spec, call.args)
        except Exception as e:
            # malformed schema, e.g. an unknown "type"
            logger.warning(f"Tool '{call.tool}' has an unusable schema: {e!r}")
            return ToolResult(
                call.tool,
                Outcome.error(f"invalid schema for {call.tool}: {type(e).__name__}"),
            )
        if problem:
            return ToolResult(
                call.tool,
                Outcome.error(f"invalid arguments for {call.tool}: {problem}"),
            )

        try:
            outcome = await tool.execute(dict(call.args))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Tool '{call.tool}' raised: {e!r}")
            outcome = Outcome.error(str(e) or type(e).__name__)

        if not isinstance(outcome, Outcome):
            outcome = Outcome.error(f"tool returned {type(outcome).__name__}, expected Outcome")
        return ToolResult(call.tool, outcome)
