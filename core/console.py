"""
Terminal input shared by the REPL, the approval prompt and HumanThinker.

One daemon thread owns stdin and feeds complete lines into an asyncio.Queue.
Callers await ask(); cancelling an ask (approval timeout, step deadline,
run cancellation) only abandons the wait, so the next line typed goes to
whoever asks next instead of to an orphaned input() call.
"""

import asyncio
import sys
import threading
from typing import Callable, Optional, TextIO

from loguru import logger


def _show(text: str) -> None:
    print(text, end="", flush=True)


class ConsoleInput:
    """
    Single reader of a line-oriented stream.

    Args:
        stream: Source of lines (defaults to sys.stdin)
        write: Prompt output (defaults to stdout without newline)
    """

    def __init__(self, stream: Optional[TextIO] = None, write: Callable[[str], None] = _show):
        self._stream = stream or sys.stdin
        self._write = write
        self._lines: Optional[asyncio.Queue] = None
        self._eof = False

    def _start(self) -> None:
        if self._lines is not None:
            return
        loop = asyncio.get_running_loop()
        self._lines = asyncio.Queue()
        threading.Thread(target=self._pump, args=(loop,), name="console-input", daemon=True).start()

    def _pump(self, loop: asyncio.AbstractEventLoop) -> None:
        while True:
            line = self._stream.readline()
            try:
                loop.call_soon_threadsafe(self._lines.put_nowait, line)
            except RuntimeError:
                return  # loop closed
            if not line:
                return

    def _drain(self) -> None:
        """Drop lines typed while nobody was asking (e.g. a late y/N)."""
        while not self._lines.empty():
            line = self._lines.get_nowait()
            if not line:
                self._eof = True
            else:
                logger.debug(f"Discarded unprompted input: {line.rstrip()!r}")

    async def ask(self, prompt: str) -> str:
        """
        Show `prompt` and return the next line, without its newline.

        Raises:
            EOFError: The stream is exhausted
        """
        self._start()
        self._drain()
        if self._eof:
            raise EOFError
        self._write(prompt)
        line = await self._lines.get()
        if not line:
            self._eof = True
            raise EOFError
        return line.rstrip("\r\n")


_console: Optional[ConsoleInput] = None


def default_console() -> ConsoleInput:
    """The process-wide reader of sys.stdin."""
    global _console
    if _console is None:
        _console = ConsoleInput()
    return _console
