"""
Thinker implementations: remote LLM, human at the terminal, scripted.
"""

from thinkers.human import HumanThinker, parse_action
from thinkers.llm_thinker import LLMThinker, build_messages
from thinkers.parsing import parse_response
from thinkers.scripted import ScriptedThinker

__all__ = [
    "HumanThinker",
    "LLMThinker",
    "ScriptedThinker",
    "build_messages",
    "parse_action",
    "parse_response",
]
