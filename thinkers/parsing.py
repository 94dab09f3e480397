"""
Parse LLM output into steps.

Accepted shapes (JSON object, optionally wrapped in a ```json fence):
    {"thought": ..., "action": {"calls": [{"tool": ..., "args": {...}}]}}  -> Act
    {"thought": ..., "answer": ...}                                        -> Finish
    {"thought": ...}                                                       -> Thought
"""

import json
import re
from typing import Any, Dict, List

from core.context import Act, Finish, Step, Thought, ToolCall
from core.errors import MalformedThinkerOutput

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def _arg_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _parse_calls(raw_calls: Any, text: str) -> List[ToolCall]:
    if not isinstance(raw_calls, list) or not raw_calls:
        raise MalformedThinkerOutput("'action.calls' must be a non-empty list", text)
    calls = []
    for raw in raw_calls:
        if not isinstance(raw, dict) or not isinstance(raw.get("tool"), str) or not raw["tool"]:
            raise MalformedThinkerOutput("each call needs a 'tool' name", text)
        args = raw.get("args") or {}
        if not isinstance(args, dict):
            raise MalformedThinkerOutput(f"args of '{raw['tool']}' must be an object", text)
        calls.append(ToolCall(tool=raw["tool"], args={str(k): _arg_value(v) for k, v in args.items()}))
    return calls


def parse_response(text: str) -> Step:
    """
    Turn raw model output into a Step.

    Raises:
        MalformedThinkerOutput: Not JSON, or JSON of an unknown shape
    """
    stripped = text.strip()
    fenced = _FENCE.match(stripped)
    if fenced:
        stripped = fenced.group(1)

    try:
        data: Dict[str, Any] = json.loads(stripped)
    except json.JSONDecodeError as e:
        raise MalformedThinkerOutput(f"invalid JSON: {e}", text) from e
    if not isinstance(data, dict):
        raise MalformedThinkerOutput("expected a JSON object", text)

    thought = str(data.get("thought", ""))

    if "answer" in data:
        return Finish(answer=_arg_value(data["answer"]), thought=thought)

    if "action" in data:
        action = data["action"]
        if not isinstance(action, dict):
            raise MalformedThinkerOutput("'action' must be an object", text)
        return Act(calls=_parse_calls(action.get("calls"), text), thought=thought)

    if thought:
        return Thought(text=thought)

    raise MalformedThinkerOutput("response has neither 'action', 'answer' nor 'thought'", text)
