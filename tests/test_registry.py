"""Unit tests for the ToolRegistry, tool decorator and RWLock."""
import asyncio

import pytest

from core.context import Outcome, ToolCall
from core.locks import RWLock
from core.registry import ToolRegistry
from core.tool_decorator import ToolSpec, make_schema, string_param, tool, validate_args


ECHO_SPEC = ToolSpec(
    name="echo",
    description="Repeats the message back",
    input_schema=make_schema(
        properties={"message": string_param("Text to repeat")},
        required=["message"],
    ),
    returns_description="the message",
)


@tool(ECHO_SPEC)
async def echo(message: str) -> str:
    return message


@tool(ToolSpec(name="boom", description="Always raises"))
async def boom() -> str:
    raise RuntimeError("kaboom")


@tool(ToolSpec(name="refuse", description="Returns an error outcome"))
async def refuse():
    return Outcome.error("explicit failure")


@tool(ToolSpec(name="broken", description="Schema jsonschema cannot use", input_schema={"type": "nosuchtype"}))
async def broken() -> str:
    return "unreachable"


@tool(ToolSpec(name="hang", description="Never returns"))
async def hang() -> str:
    await asyncio.sleep(60)
    return "unreachable"


class TestValidation:
    """Schema validation before dispatch."""

    def test_valid_args(self):
        assert validate_args(ECHO_SPEC, {"message": "hi"}) is None

    def test_missing_required(self):
        problem = validate_args(ECHO_SPEC, {})
        assert "message" in problem

    def test_extra_args_rejected(self):
        problem = validate_args(ECHO_SPEC, {"message": "hi", "loud": "yes"})
        assert "loud" in problem

    def test_enum(self):
        spec = ToolSpec(
            name="mode",
            description="Pick a mode",
            input_schema=make_schema({"mode": string_param("Mode", enum=["a", "b"])}, ["mode"]),
        )
        assert validate_args(spec, {"mode": "a"}) is None
        assert validate_args(spec, {"mode": "c"}) is not None


class TestRegistry:
    """Registration and lookup."""

    @pytest.mark.asyncio
    async def test_register_and_list(self):
        registry = ToolRegistry()
        await registry.register(echo)
        await registry.register(boom)

        assert await registry.list_tools() == ["boom", "echo"]
        assert await registry.get("echo") is echo

    @pytest.mark.asyncio
    async def test_unregister(self):
        registry = ToolRegistry()
        await registry.register(echo)

        assert await registry.unregister("echo") is True
        assert await registry.unregister("echo") is False
        assert await registry.get("echo") is None

    @pytest.mark.asyncio
    async def test_descriptions(self):
        registry = ToolRegistry()
        await registry.register(echo)

        [description] = await registry.descriptions()
        assert description.name == "echo"
        assert "Returns: the message" in description.description
        assert description.parameters["required"] == ["message"]


class TestExecute:
    """Every failure becomes an error outcome."""

    @pytest.mark.asyncio
    async def test_success(self):
        registry = ToolRegistry()
        await registry.register(echo)

        result = await registry.execute(ToolCall("echo", {"message": "hello"}))

        assert result.tool == "echo"
        assert result.outcome == Outcome.success("hello")
        assert result.format() == "[echo] ok: hello"

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        result = await ToolRegistry().execute(ToolCall("ghost", {}))

        assert result.outcome == Outcome.error("unknown tool: ghost")

    @pytest.mark.asyncio
    async def test_invalid_arguments(self):
        registry = ToolRegistry()
        await registry.register(echo)

        result = await registry.execute(ToolCall("echo", {}))

        assert not result.outcome.ok
        assert result.outcome.text.startswith("invalid arguments for echo:")

    @pytest.mark.asyncio
    async def test_exception_becomes_error(self):
        registry = ToolRegistry()
        await registry.register(boom)

        result = await registry.execute(ToolCall("boom", {}))

        assert result.outcome == Outcome.error("kaboom")

    @pytest.mark.asyncio
    async def test_tool_returned_outcome_passes_through(self):
        registry = ToolRegistry()
        await registry.register(refuse)

        result = await registry.execute(ToolCall("refuse", {}))

        assert result.outcome == Outcome.error("explicit failure")


class TestDispatch:
    """Concurrent batch execution under one deadline."""

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        loop = asyncio.get_running_loop()
        assert await ToolRegistry().dispatch([], loop.time() + 1) == []

    @pytest.mark.asyncio
    async def test_results_keep_call_order(self):
        registry = ToolRegistry()
        await registry.register(echo)
        await registry.register(boom)
        loop = asyncio.get_running_loop()

        results = await registry.dispatch(
            [ToolCall("echo", {"message": "1"}), ToolCall("boom", {}), ToolCall("echo", {"message": "3"})],
            loop.time() + 1,
        )

        assert [r.outcome.text for r in results] == ["1", "kaboom", "3"]

    @pytest.mark.asyncio
    async def test_malformed_schema_is_contained(self):
        registry = ToolRegistry()
        await registry.register(echo)
        await registry.register(broken)
        loop = asyncio.get_running_loop()

        results = await registry.dispatch(
            [ToolCall("broken", {}), ToolCall("echo", {"message": "still here"})],
            loop.time() + 1,
        )

        assert results[0].outcome == Outcome.error("invalid schema for broken: UnknownType")
        assert results[1].outcome == Outcome.success("still here")

    @pytest.mark.asyncio
    async def test_deadline_yields_timeout(self):
        registry = ToolRegistry()
        await registry.register(echo)
        await registry.register(hang)
        loop = asyncio.get_running_loop()

        results = await registry.dispatch(
            [ToolCall("hang", {}), ToolCall("echo", {"message": "ok"})],
            loop.time() + 0.1,
        )

        assert results[0].outcome == Outcome.error("timeout")
        assert results[1].outcome == Outcome.success("ok")

    @pytest.mark.asyncio
    async def test_register_during_dispatch(self):
        registry = ToolRegistry()
        await registry.register(hang)
        loop = asyncio.get_running_loop()

        batch = asyncio.create_task(registry.dispatch([ToolCall("hang", {})], loop.time() + 0.3))
        await asyncio.sleep(0.05)
        await asyncio.wait_for(registry.register(echo), timeout=0.2)

        assert "echo" in await registry.list_tools()
        [result] = await batch
        assert result.outcome.text == "timeout"


class TestRWLock:
    """Readers share, writers exclude."""

    @pytest.mark.asyncio
    async def test_readers_share(self):
        lock = RWLock()
        async with lock.read():
            async with lock.read():
                assert lock.readers == 2

    @pytest.mark.asyncio
    async def test_writer_waits_for_readers(self):
        lock = RWLock()
        order = []

        async def writer():
            async with lock.write():
                order.append("write")

        async with lock.read():
            task = asyncio.create_task(writer())
            await asyncio.sleep(0.01)
            assert not task.done()
            order.append("read")

        await task
        assert order == ["read", "write"]

    @pytest.mark.asyncio
    async def test_waiting_writer_blocks_new_readers(self):
        lock = RWLock()
        order = []

        async def writer():
            async with lock.write():
                order.append("write")

        async def reader():
            async with lock.read():
                order.append("late read")

        async with lock.read():
            w = asyncio.create_task(writer())
            await asyncio.sleep(0.01)
            r = asyncio.create_task(reader())
            await asyncio.sleep(0.01)
            assert order == []

        await asyncio.gather(w, r)
        assert order == ["write", "late read"]
