"""
Approval gates for shell commands.

A gate answers "may this command run?". Anything other than an explicit yes
is a no: a False answer, an exception, or silence past the caller's timeout.
"""

import asyncio
from collections import deque
from typing import Deque, Optional, Tuple

from loguru import logger

from core.console import ConsoleInput, default_console


class AutoApprove:
    """Approves everything. For trusted, non-interactive runs."""

    async def request(self, command: str) -> bool:
        return True


class ConsoleApproval:
    """
    Asks on the terminal with a y/N prompt.

    Reads through the shared ConsoleInput, so a prompt abandoned on timeout
    does not swallow the next line typed.
    """

    def __init__(self, console: Optional[ConsoleInput] = None, prompt: str = "  Execute: {command} [y/N] "):
        self.console = console or default_console()
        self.prompt = prompt

    async def request(self, command: str) -> bool:
        answer = await self.console.ask(self.prompt.format(command=command))
        return answer.strip().lower() in ("y", "yes")


class SignalApproval:
    """
    Approval decided by an external party.

    Each request parks on a future until someone calls approve() or deny();
    pending() lists what is waiting. Requests are answered oldest first.
    """

    def __init__(self):
        self._waiting: Deque[Tuple[str, asyncio.Future]] = deque()

    def pending(self) -> list:
        return [command for command, future in self._waiting if not future.done()]

    async def request(self, command: str) -> bool:
        future = asyncio.get_running_loop().create_future()
        self._waiting.append((command, future))
        logger.info(f"Awaiting approval for: {command}")
        try:
            return await future
        finally:
            try:
                self._waiting.remove((command, future))
            except ValueError:
                pass

    def approve(self) -> bool:
        return self._answer(True)

    def deny(self) -> bool:
        return self._answer(False)

    def _answer(self, decision: bool) -> bool:
        for _, future in self._waiting:
            if not future.done():
                future.set_result(decision)
                return True
        return False
