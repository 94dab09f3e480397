"""
LoopEngine - the ReAct loop.

Drives Think -> Act -> Observe until the Thinker finishes, the iteration
budget runs out, or the run is cancelled:

    IDLE -> THINKING -> {ACTING -> THINKING | FINISHED | FAILED | CANCELLED}

The engine never retries. Tool failures come back as observations; the
Thinker decides what to do with them.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, List, Optional, TypeVar

from loguru import logger

from core.constants import DEFAULT_MAX_ITERATIONS, DEFAULT_SESSION_CONTEXT, DEFAULT_TOOL_TIMEOUT
from core.context import (
    Act,
    Context,
    EntryKind,
    Finish,
    SessionEntry,
    SessionStatus,
    StepResult,
    Task,
    TaskStatus,
    Thought,
    TokenUsage,
    TranscriptEntry,
)
from core.errors import (
    ConfigurationError,
    InfrastructureError,
    LoopFailure,
    MaxIterationsExceeded,
    RunCancelled,
    ThinkerError,
)
from core.events import ChangeKind, EventBus, StateChange
from core.locks import RWLock
from core.protocols import Memory, Thinker
from core.registry import ToolRegistry

T = TypeVar("T")


class EngineState(str, Enum):
    IDLE = "idle"
    THINKING = "thinking"
    ACTING = "acting"
    FINISHED = "finished"
    FAILED = "failed"
    CANCELLED = "cancelled"


_SESSION_STATUS = {
    TaskStatus.FINISHED: SessionStatus.FINISHED,
    TaskStatus.FAILED: SessionStatus.FAILED,
    TaskStatus.CANCELLED: SessionStatus.CANCELLED,
}


class LoopEngine:
    """
    Runs one task at a time against a Thinker, a ToolRegistry and Memory.

    Args:
        thinker: Decision maker (swappable at iteration boundaries)
        registry: Tools available to the Thinker
        memory: Task transcript and session history store
        max_iterations: Thinker calls allowed per run
        tool_timeout: Seconds shared by all calls of one Act step
        session_context: Prior session entries shown to the Thinker
        events: Optional bus for MODEL state changes
    """

    def __init__(
        self,
        thinker: Thinker,
        registry: ToolRegistry,
        memory: Memory,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        tool_timeout: float = DEFAULT_TOOL_TIMEOUT,
        session_context: int = DEFAULT_SESSION_CONTEXT,
        events: Optional[EventBus] = None,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._thinker = thinker
        self._thinker_lock = RWLock()
        self.registry = registry
        self.memory = memory
        self.max_iterations = max_iterations
        self.tool_timeout = tool_timeout
        self.session_context = session_context
        self.events = events

        self.session_usage = TokenUsage()
        self._state = EngineState.IDLE
        self._cancel = asyncio.Event()
        self._run_lock = asyncio.Lock()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def thinker(self) -> Thinker:
        return self._thinker

    async def set_thinker(self, thinker: Thinker) -> None:
        """Swap the Thinker. Waits for any in-flight decision to complete."""
        async with self._thinker_lock.write():
            self._thinker = thinker
        logger.info(f"Thinker switched to '{thinker.model}'")
        self._publish_model(thinker.model)

    async def set_model(self, model: str) -> None:
        """
        Change the model of the current Thinker.

        Raises:
            ConfigurationError: The current Thinker has no selectable model
        """
        async with self._thinker_lock.write():
            set_model = getattr(self._thinker, "set_model", None)
            if set_model is None:
                raise ConfigurationError(f"thinker '{self._thinker.model}' has no selectable model")
            set_model(model)
        logger.info(f"Model switched to '{model}'")
        self._publish_model(model)

    def cancel(self) -> None:
        """Request cancellation of the current run."""
        self._cancel.set()

    async def transcript(self) -> List[TranscriptEntry]:
        return await self.memory.task_transcript()

    async def run(self, question: str) -> str:
        """
        Run a task to completion.

        Args:
            question: The user's task

        Returns:
            The Thinker's final answer

        Raises:
            MaxIterationsExceeded: No answer within max_iterations
            RunCancelled: cancel() was called during the run
            InfrastructureError: Thinker, memory or credentials broke
        """
        async with self._run_lock:
            self._cancel.clear()
            task = Task(question=question)
            logger.info(f"[{task.id}] Task: {question}")
            try:
                return await self._run(task)
            except asyncio.CancelledError:
                task.cancel()
                self._state = EngineState.CANCELLED
                logger.info(f"[{task.id}] Cancelled")
                await self._record(task)
                raise
            except LoopFailure as e:
                if isinstance(e, RunCancelled):
                    task.cancel()
                    self._state = EngineState.CANCELLED
                else:
                    task.fail(e.reason)
                    self._state = EngineState.FAILED
                logger.info(f"[{task.id}] Ended without answer: {e.reason}")
                await self._record(task)
                raise
            except InfrastructureError as e:
                task.fail(f"error: {e}")
                self._state = EngineState.FAILED
                logger.error(f"[{task.id}] Infrastructure failure: {e}")
                await self._record_best_effort(task)
                raise

    # =========================================================================
    # LOOP
    # =========================================================================

    async def _run(self, task: Task) -> str:
        await self.memory.clear_task()
        await self.memory.append_task_entry(TranscriptEntry(kind=EntryKind.TASK, content=task.question))

        while task.iteration < self.max_iterations:
            if self._cancel.is_set():
                raise RunCancelled()
            task.iteration += 1

            self._state = EngineState.THINKING
            context = await self._build_context(task)
            result = await self._think(context)
            if result.usage is not None:
                self.session_usage.add(result.usage)
            step = result.step

            if isinstance(step, Finish):
                await self.memory.append_task_entry(
                    TranscriptEntry(kind=EntryKind.ANSWER, content=step.answer)
                )
                task.finish(step.answer)
                self._state = EngineState.FINISHED
                logger.info(f"[{task.id}] Finished after {task.iteration} iteration(s)")
                await self._record(task)
                return step.answer

            if isinstance(step, Thought):
                logger.debug(f"[{task.id}] Thought: {step.text}")
                await self.memory.append_task_entry(
                    TranscriptEntry(kind=EntryKind.THOUGHT, content=step.text)
                )
            elif isinstance(step, Act):
                await self._act(task, step)
            else:
                raise ThinkerError(f"unknown step type: {type(step).__name__}")

        raise MaxIterationsExceeded(self.max_iterations)

    async def _build_context(self, task: Task) -> Context:
        return Context(
            task=task.question,
            tools=await self.registry.descriptions(),
            transcript=await self.memory.task_transcript(),
            session_history=await self.memory.session_history(self.session_context),
        )

    async def _think(self, context: Context) -> StepResult:
        async with self._thinker_lock.read():
            thinker = self._thinker
            try:
                return await self._race(thinker.next_step(context))
            except (LoopFailure, InfrastructureError):
                raise
            except Exception as e:
                raise ThinkerError(f"thinker '{thinker.model}' failed: {e}") from e

    async def _act(self, task: Task, step: Act) -> None:
        self._state = EngineState.ACTING
        for call in step.calls:
            logger.info(f"[{task.id}] Action: {call.tool} {call.args}")
            await self.memory.append_task_entry(
                TranscriptEntry(
                    kind=EntryKind.ACTION,
                    content=step.thought,
                    tool=call.tool,
                    args=dict(call.args),
                )
            )

        deadline = asyncio.get_running_loop().time() + self.tool_timeout
        results = await self._race(self.registry.dispatch(step.calls, deadline))

        for result in results:
            logger.debug(f"[{task.id}] Observation: {result.format()}")
            await self.memory.append_task_entry(
                TranscriptEntry(
                    kind=EntryKind.OBSERVATION,
                    content=result.outcome.text,
                    tool=result.tool,
                    ok=result.outcome.ok,
                )
            )

    async def _race(self, work: Awaitable[T]) -> T:
        """Await `work`, abandoning it if cancel() is called first."""
        job = asyncio.ensure_future(work)
        stop = asyncio.ensure_future(self._cancel.wait())
        try:
            done, _ = await asyncio.wait({job, stop}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            stop.cancel()
            await self._abandon(job)
            raise
        stop.cancel()
        if job in done:
            return job.result()
        await self._abandon(job)
        raise RunCancelled()

    @staticmethod
    async def _abandon(job: "asyncio.Future[Any]") -> None:
        job.cancel()
        # wait for cleanup (e.g. killing a subprocess); its outcome is moot
        await asyncio.gather(job, return_exceptions=True)

    # =========================================================================
    # SESSION RECORDS
    # =========================================================================

    async def _record(self, task: Task) -> None:
        status = _SESSION_STATUS[task.status]
        answer = task.answer if status == SessionStatus.FINISHED else (task.reason or status.value)
        await self.memory.append_session_entry(
            SessionEntry(question=task.question, answer=answer, status=status)
        )

    async def _record_best_effort(self, task: Task) -> None:
        try:
            await self._record(task)
        except InfrastructureError as e:
            logger.error(f"[{task.id}] Could not record failed session: {e}")

    def _publish_model(self, model: str) -> None:
        if self.events is not None:
            self.events.publish(StateChange(kind=ChangeKind.MODEL, detail=model))
