"""
LLMThinker - remote-LLM-driven decision maker.

Turns the Context into chat messages, asks the LLM client, and parses the
JSON reply into a Step. Malformed replies get a bounded number of correction
rounds before the failure is reported as an infrastructure error.
"""

import json
from typing import Dict, List, Optional

from loguru import logger

from core.constants import MAX_PARSE_RETRIES
from core.context import Context, EntryKind, StepResult, TokenUsage
from core.errors import MalformedThinkerOutput
from core.prompt_builder import PARSE_RETRY_PROMPT, build_system_prompt
from core.protocols import LLMClient
from thinkers.parsing import parse_response


def build_messages(context: Context) -> List[Dict[str, str]]:
    """
    Chat messages for the context (system prompt excluded).

    Prior sessions come first as task/answer pairs, then the current task,
    then the transcript: each action as an assistant turn followed by its
    observations as one user turn.
    """
    messages: List[Dict[str, str]] = []

    for entry in context.session_history:
        messages.append({"role": "user", "content": f"Task: {entry.question}"})
        messages.append({
            "role": "assistant",
            "content": json.dumps({"thought": entry.status.value, "answer": entry.answer}),
        })

    messages.append({"role": "user", "content": f"Task: {context.task}"})

    pending_calls: List[Dict[str, object]] = []
    pending_thought = ""
    observations: List[str] = []

    def flush() -> None:
        nonlocal pending_calls, pending_thought, observations
        if pending_calls:
            messages.append({
                "role": "assistant",
                "content": json.dumps({"thought": pending_thought, "action": {"calls": pending_calls}}),
            })
        if observations:
            messages.append({"role": "user", "content": "Tool results:\n" + "\n".join(observations)})
        pending_calls, pending_thought, observations = [], "", []

    for entry in context.transcript:
        if entry.kind == EntryKind.THOUGHT:
            flush()
            messages.append({"role": "assistant", "content": json.dumps({"thought": entry.content})})
        elif entry.kind == EntryKind.ACTION:
            if observations:
                flush()
            if not pending_calls:
                pending_thought = entry.content
            pending_calls.append({"tool": entry.tool, "args": entry.args or {}})
        elif entry.kind == EntryKind.OBSERVATION:
            mark = "ok" if entry.ok else "error"
            observations.append(f"[{entry.tool}] {mark}: {entry.content}")
    flush()

    return messages


class LLMThinker:
    """
    Decision maker backed by a chat-completion client.

    Args:
        client: LLM client implementing the LLMClient protocol
        max_parse_retries: Correction rounds allowed for malformed replies
    """

    def __init__(self, client: LLMClient, max_parse_retries: int = MAX_PARSE_RETRIES):
        self.client = client
        self.max_parse_retries = max_parse_retries

    @property
    def model(self) -> str:
        return getattr(self.client, "model", "unknown")

    def set_model(self, model: str) -> None:
        self.client.model = model

    async def list_models(self) -> List[str]:
        return await self.client.list_models()

    async def next_step(self, context: Context) -> StepResult:
        messages = [{"role": "system", "content": build_system_prompt(context.tools)}]
        messages.extend(build_messages(context))

        total = TokenUsage()
        metered = False
        last_error: Optional[MalformedThinkerOutput] = None

        for attempt in range(self.max_parse_retries + 1):
            completion = await self.client.complete(
                messages=messages,
                response_format={"type": "json_object"},
                temperature=0.0,
            )
            if completion.usage is not None:
                total.add(completion.usage)
                metered = True

            try:
                step = parse_response(completion.text)
            except MalformedThinkerOutput as e:
                last_error = e
                logger.warning(f"LLM returned invalid output (attempt {attempt + 1}): {e}")
                messages.append({"role": "assistant", "content": completion.text})
                messages.append({"role": "user", "content": PARSE_RETRY_PROMPT})
                continue

            return StepResult(step=step, usage=total if metered else None)

        raise MalformedThinkerOutput(
            f"no valid step after {self.max_parse_retries + 1} attempts: {last_error}",
            last_error.raw if last_error else "",
        )
