"""Unit tests for the LoopEngine."""
import asyncio
import time

import pytest
import pytest_asyncio

from core.context import (
    Act,
    EntryKind,
    Finish,
    SessionStatus,
    StepResult,
    Thought,
    TokenUsage,
    ToolCall,
)
from core.engine import EngineState, LoopEngine
from core.errors import (
    ConfigurationError,
    MaxIterationsExceeded,
    RunCancelled,
    ThinkerError,
)
from core.events import ChangeKind, EventBus
from core.registry import ToolRegistry
from core.tool_decorator import ToolSpec, make_schema, string_param, tool
from memory.in_memory import InMemoryMemory
from thinkers.scripted import ScriptedThinker


@tool(ToolSpec(
    name="echo",
    description="Repeats the message back",
    input_schema=make_schema(
        properties={"message": string_param("Text to repeat")},
        required=["message"],
    ),
))
async def echo(message: str) -> str:
    return message


@tool(ToolSpec(
    name="sleep",
    description="Sleeps, then reports how long",
    input_schema=make_schema(
        properties={"seconds": string_param("Seconds to sleep")},
        required=["seconds"],
    ),
))
async def sleep(seconds: str) -> str:
    await asyncio.sleep(float(seconds))
    return f"slept {seconds}"


class BlockingThinker:
    """Never answers until released."""

    model = "blocking"

    def __init__(self):
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def next_step(self, context):
        self.entered.set()
        await self.release.wait()
        return StepResult(step=Finish(answer="late"))


class FailingThinker:
    model = "broken"

    async def next_step(self, context):
        raise RuntimeError("provider exploded")


@pytest.fixture
def memory():
    return InMemoryMemory()


@pytest_asyncio.fixture
async def registry():
    reg = ToolRegistry()
    await reg.register(echo)
    await reg.register(sleep)
    return reg


def make_engine(thinker, registry, memory, **kwargs):
    return LoopEngine(thinker=thinker, registry=registry, memory=memory, **kwargs)


class TestFinish:
    """Runs that end with an answer."""

    @pytest.mark.asyncio
    async def test_finish_immediately(self, registry, memory):
        thinker = ScriptedThinker([Finish(answer="42")])
        engine = make_engine(thinker, registry, memory)

        answer = await engine.run("what is the answer?")

        assert answer == "42"
        assert thinker.calls == 1
        assert engine.state == EngineState.FINISHED

    @pytest.mark.asyncio
    async def test_exactly_one_session_entry(self, registry, memory):
        thinker = ScriptedThinker([
            Thought(text="thinking"),
            Act(calls=[ToolCall("echo", {"message": "hi"})]),
            Finish(answer="done"),
        ])
        engine = make_engine(thinker, registry, memory)

        await engine.run("say hi")

        history = await memory.session_history()
        assert len(history) == 1
        assert history[0].question == "say hi"
        assert history[0].answer == "done"
        assert history[0].complete

    @pytest.mark.asyncio
    async def test_transcript_records_every_step(self, registry, memory):
        thinker = ScriptedThinker([
            Thought(text="hmm"),
            Act(calls=[ToolCall("echo", {"message": "hi"})], thought="echo it"),
            Finish(answer="hi"),
        ])
        engine = make_engine(thinker, registry, memory)

        await engine.run("say hi")

        kinds = [e.kind for e in await engine.transcript()]
        assert kinds == [
            EntryKind.TASK,
            EntryKind.THOUGHT,
            EntryKind.ACTION,
            EntryKind.OBSERVATION,
            EntryKind.ANSWER,
        ]

    @pytest.mark.asyncio
    async def test_each_run_starts_with_clean_transcript(self, registry, memory):
        thinker = ScriptedThinker([Thought(text="a"), Finish(answer="1"), Finish(answer="2")])
        engine = make_engine(thinker, registry, memory)

        await engine.run("first")
        await engine.run("second")

        transcript = await engine.transcript()
        assert transcript[0].content == "second"
        assert all(e.kind != EntryKind.THOUGHT for e in transcript)

    @pytest.mark.asyncio
    async def test_prior_sessions_visible_to_thinker(self, registry, memory):
        thinker = ScriptedThinker([Finish(answer="1"), Finish(answer="2")])
        engine = make_engine(thinker, registry, memory)

        await engine.run("first")
        await engine.run("second")

        second_context = thinker.contexts[1]
        assert [e.question for e in second_context.session_history] == ["first"]
        assert [t.name for t in second_context.tools] == ["echo", "sleep"]


class TestLimits:
    """Iteration budget."""

    @pytest.mark.asyncio
    async def test_max_iterations(self, registry, memory):
        thinker = ScriptedThinker([Thought(text=str(i)) for i in range(10)])
        engine = make_engine(thinker, registry, memory, max_iterations=3)

        with pytest.raises(MaxIterationsExceeded) as exc:
            await engine.run("loop forever")

        assert exc.value.reason == "max iterations exceeded"
        assert thinker.calls == 3
        assert engine.state == EngineState.FAILED

        history = await memory.session_history()
        assert len(history) == 1
        assert history[0].status == SessionStatus.FAILED
        assert not history[0].complete

    @pytest.mark.asyncio
    async def test_finish_on_last_iteration_counts(self, registry, memory):
        thinker = ScriptedThinker([Thought(text="a"), Thought(text="b"), Finish(answer="ok")])
        engine = make_engine(thinker, registry, memory, max_iterations=3)

        assert await engine.run("task") == "ok"

    def test_rejects_zero_iterations(self, memory):
        with pytest.raises(ValueError):
            make_engine(ScriptedThinker([]), ToolRegistry(), memory, max_iterations=0)


class TestAct:
    """Tool dispatch from Act steps."""

    @pytest.mark.asyncio
    async def test_observations_in_call_order(self, registry, memory):
        thinker = ScriptedThinker([
            Act(calls=[
                ToolCall("sleep", {"seconds": "0.1"}),
                ToolCall("echo", {"message": "fast"}),
            ]),
            Finish(answer="done"),
        ])
        engine = make_engine(thinker, registry, memory)

        await engine.run("two calls")

        observations = [e for e in await engine.transcript() if e.kind == EntryKind.OBSERVATION]
        assert [o.tool for o in observations] == ["sleep", "echo"]
        assert [o.content for o in observations] == ["slept 0.1", "fast"]

    @pytest.mark.asyncio
    async def test_parallel_calls_take_max_not_sum(self, registry, memory):
        thinker = ScriptedThinker([
            Act(calls=[ToolCall("sleep", {"seconds": "0.3"}) for _ in range(3)]),
            Finish(answer="done"),
        ])
        engine = make_engine(thinker, registry, memory)

        start = time.monotonic()
        await engine.run("parallel")
        elapsed = time.monotonic() - start

        assert elapsed < 0.8

    @pytest.mark.asyncio
    async def test_timeout_affects_only_slow_call(self, registry, memory):
        thinker = ScriptedThinker([
            Act(calls=[
                ToolCall("sleep", {"seconds": "5"}),
                ToolCall("echo", {"message": "quick"}),
            ]),
            Finish(answer="done"),
        ])
        engine = make_engine(thinker, registry, memory, tool_timeout=0.2)

        assert await engine.run("one slow") == "done"

        observations = [e for e in await engine.transcript() if e.kind == EntryKind.OBSERVATION]
        assert observations[0].ok is False
        assert observations[0].content == "timeout"
        assert observations[1].ok is True
        assert observations[1].content == "quick"

    @pytest.mark.asyncio
    async def test_tool_errors_are_observations(self, registry, memory):
        thinker = ScriptedThinker([
            Act(calls=[ToolCall("nope", {})]),
            Finish(answer="recovered"),
        ])
        engine = make_engine(thinker, registry, memory)

        assert await engine.run("bad tool") == "recovered"

        observation = [e for e in await engine.transcript() if e.kind == EntryKind.OBSERVATION][0]
        assert observation.ok is False
        assert observation.content == "unknown tool: nope"


class TestThinkerSlot:
    """Swapping thinkers and models."""

    @pytest.mark.asyncio
    async def test_set_thinker_publishes_model_change(self, registry, memory):
        bus = EventBus()
        engine = make_engine(ScriptedThinker([]), registry, memory, events=bus)

        with bus.subscribe() as sub:
            await engine.set_thinker(ScriptedThinker([Finish(answer="new")], model="other"))
            change = sub.get_nowait()

        assert change.kind == ChangeKind.MODEL
        assert change.detail == "other"
        assert await engine.run("task") == "new"

    @pytest.mark.asyncio
    async def test_set_model_delegates(self, registry, memory):
        thinker = ScriptedThinker([])
        engine = make_engine(thinker, registry, memory)

        await engine.set_model("bigger")

        assert thinker.model == "bigger"

    @pytest.mark.asyncio
    async def test_set_model_without_models(self, registry, memory):
        engine = make_engine(FailingThinker(), registry, memory)

        with pytest.raises(ConfigurationError):
            await engine.set_model("x")

    @pytest.mark.asyncio
    async def test_swap_waits_for_inflight_decision(self, registry, memory):
        blocking = BlockingThinker()
        engine = make_engine(blocking, registry, memory)

        run = asyncio.create_task(engine.run("task"))
        await blocking.entered.wait()
        swap = asyncio.create_task(engine.set_thinker(ScriptedThinker([], model="next")))
        await asyncio.sleep(0.05)
        assert not swap.done()

        blocking.release.set()
        assert await run == "late"
        await swap
        assert engine.thinker.model == "next"


class TestUsage:
    """Token accounting."""

    @pytest.mark.asyncio
    async def test_usage_accumulates(self, registry, memory):
        thinker = ScriptedThinker([
            StepResult(Thought(text="a"), TokenUsage(10, 5)),
            StepResult(Finish(answer="b"), TokenUsage(3, 2)),
        ])
        engine = make_engine(thinker, registry, memory)

        await engine.run("task")

        assert engine.session_usage.input_tokens == 13
        assert engine.session_usage.output_tokens == 7

    @pytest.mark.asyncio
    async def test_unmetered_steps_add_nothing(self, registry, memory):
        engine = make_engine(ScriptedThinker([Finish(answer="x")]), registry, memory)

        await engine.run("task")

        assert engine.session_usage.total == 0


class TestFailures:
    """Cancellation and infrastructure faults."""

    @pytest.mark.asyncio
    async def test_cancel_during_thinking(self, registry, memory):
        blocking = BlockingThinker()
        engine = make_engine(blocking, registry, memory)

        run = asyncio.create_task(engine.run("task"))
        await blocking.entered.wait()
        engine.cancel()

        with pytest.raises(RunCancelled):
            await run

        assert engine.state == EngineState.CANCELLED
        history = await memory.session_history()
        assert len(history) == 1
        assert history[0].status == SessionStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_during_tool_call(self, registry, memory):
        thinker = ScriptedThinker([Act(calls=[ToolCall("sleep", {"seconds": "10"})])])
        engine = make_engine(thinker, registry, memory)

        run = asyncio.create_task(engine.run("slow"))
        await asyncio.sleep(0.1)
        engine.cancel()

        with pytest.raises(RunCancelled):
            await asyncio.wait_for(run, timeout=2)

    @pytest.mark.asyncio
    async def test_task_cancellation_records_entry(self, registry, memory):
        blocking = BlockingThinker()
        engine = make_engine(blocking, registry, memory)

        run = asyncio.create_task(engine.run("task"))
        await blocking.entered.wait()
        run.cancel()

        with pytest.raises(asyncio.CancelledError):
            await run

        history = await memory.session_history()
        assert [h.status for h in history] == [SessionStatus.CANCELLED]

    @pytest.mark.asyncio
    async def test_thinker_exception_is_infrastructure_error(self, registry, memory):
        engine = make_engine(FailingThinker(), registry, memory)

        with pytest.raises(ThinkerError, match="provider exploded"):
            await engine.run("task")

        history = await memory.session_history()
        assert history[0].status == SessionStatus.FAILED

    @pytest.mark.asyncio
    async def test_exhausted_script_is_thinker_error(self, registry, memory):
        engine = make_engine(ScriptedThinker([]), registry, memory)

        with pytest.raises(ThinkerError):
            await engine.run("task")

        assert engine.state == EngineState.FAILED
