"""
Mock LLM adapter for running without an API key.

Replays queued responses, or falls back to a pattern-based reply that
simulates an LLM answering in the ReAct JSON format.
"""

import json
import re
from collections import deque
from typing import List, Dict, Any, Iterable, Optional

from core.context import Completion, TokenUsage


class MockLLMAdapter:
    """
    Implements the LLMClient protocol without a network.

    Args:
        responses: Texts returned in order before the fallback kicks in
        usage: Usage reported with every completion (None = unmetered)
    """

    def __init__(self, responses: Optional[Iterable[str]] = None, usage: Optional[TokenUsage] = None):
        self.model = "mock"
        self._responses = deque(responses or [])
        self._usage = usage
        self.calls: List[List[Dict[str, str]]] = []

    async def complete(self, messages: List[Dict[str, str]], **kwargs: Any) -> Completion:
        self.calls.append(list(messages))
        if self._responses:
            text = self._responses.popleft()
        else:
            text = json.dumps(self._mock_decide(messages))
        usage = TokenUsage(self._usage.input_tokens, self._usage.output_tokens) if self._usage else None
        return Completion(text=text, usage=usage)

    async def list_models(self) -> List[str]:
        return ["mock"]

    def _mock_decide(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        """
        Pattern-based stand-in for an LLM.

        Answers once a tool result is present; otherwise maps a few phrasings
        to a shell command.
        """
        last = messages[-1].get("content", "") if messages else ""
        if last.startswith("Tool results:"):
            return {"thought": "I have the tool output.", "answer": last[len("Tool results:"):].strip()}

        task = ""
        for msg in reversed(messages):
            if msg.get("role") == "user" and msg.get("content", "").startswith("Task:"):
                task = msg["content"][len("Task:"):].strip()
                break
        lowered = task.lower()

        quoted = re.search(r"['\"]([^'\"]+)['\"]", task)
        if lowered.startswith("run ") and quoted:
            command = quoted.group(1)
        elif "list" in lowered and "file" in lowered:
            command = "ls -la"
        elif "date" in lowered or "time" in lowered:
            command = "date"
        elif "who" in lowered and "am" in lowered:
            command = "whoami"
        else:
            return {"thought": "Mock mode cannot handle this.", "answer": f"Mock mode: cannot solve '{task}'"}

        return {
            "thought": f"Run `{command}`.",
            "action": {"calls": [{"tool": "shell", "args": {"command": command}}]},
        }
