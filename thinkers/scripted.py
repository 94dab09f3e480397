"""
ScriptedThinker - replays pre-defined steps. For tests and demos.
"""

from typing import Iterable, List, Union

from core.context import Context, Step, StepResult
from core.errors import ThinkerError


class ScriptedThinker:
    """
    Returns the given steps in order, one per call.

    Args:
        steps: Steps or StepResults (plain steps are unmetered)
        model: Name reported as the model
    """

    def __init__(self, steps: Iterable[Union[Step, StepResult]], model: str = "scripted"):
        self._steps: List[StepResult] = [
            s if isinstance(s, StepResult) else StepResult(step=s) for s in steps
        ]
        self._index = 0
        self._model = model
        self.contexts: List[Context] = []

    @property
    def model(self) -> str:
        return self._model

    def set_model(self, model: str) -> None:
        self._model = model

    @property
    def calls(self) -> int:
        return self._index

    async def next_step(self, context: Context) -> StepResult:
        self.contexts.append(context)
        if self._index >= len(self._steps):
            raise ThinkerError(f"ScriptedThinker: no more steps (called {self._index + 1} times)")
        result = self._steps[self._index]
        self._index += 1
        return result
