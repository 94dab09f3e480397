"""
Sandboxed shell execution.

ShellTool runs `sh -c <command>` after a fixed sequence of gates:
1. denylist   - destructive patterns, blocked in every mode
2. write mode - mutating verbs blocked unless write mode is on
3. approval   - optional explicit yes from an ApprovalGate, bounded in time
4. sandbox    - cwd pinned to the sandbox dir, environment reduced to an allow-list
5. truncation - stdout and stderr each capped at a byte ceiling
"""

import asyncio
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from core.constants import (
    BLOCKED_PATTERNS,
    DEFAULT_APPROVAL_TIMEOUT,
    MAX_OUTPUT_BYTES,
    SAFE_ENV_VARS,
    WRITE_PATTERNS,
    WRITE_REGEXES,
)
from core.context import Outcome
from core.protocols import ApprovalGate
from core.tool_decorator import ToolSpec, make_schema, string_param

_SEGMENT_SPLIT = re.compile(r"\|\||&&|[|;&\n]")
_VERB_BOUNDARY = r"(?:^|[\s/(`])"
# any output redirection (>, >>, 1>, 2>>, &>), except duplication onto a descriptor (2>&1, >&2, 3>&-)
_REDIRECT = re.compile(r">>?(?!&[0-9-])")
# removed before matching, so \rm, 'rm' and r"m" all read as rm
_QUOTING = str.maketrans("", "", "\\'\"")


@dataclass
class ShellConfig:
    """
    Configuration for the shell tool.

    Attributes:
        working_dir: Sandbox directory every command runs in
        allow_write: Permit mutating commands (denylist still applies)
        require_confirmation: Ask the approval gate before each command
        approval_timeout: Seconds to wait for an answer; silence is denial
        max_output_bytes: Ceiling applied to stdout and stderr separately
        env_allowlist: Variable names passed through to the subprocess
    """
    working_dir: str
    allow_write: bool = False
    require_confirmation: bool = True
    approval_timeout: float = DEFAULT_APPROVAL_TIMEOUT
    max_output_bytes: int = MAX_OUTPUT_BYTES
    env_allowlist: List[str] = field(default_factory=lambda: list(SAFE_ENV_VARS))


class ShellPolicy:
    """Pattern checks applied before any command runs."""

    def __init__(
        self,
        blocked_patterns: Optional[List[str]] = None,
        write_patterns: Optional[List[str]] = None,
        write_regexes: Optional[List[str]] = None,
    ):
        self._blocked = [re.compile(p, re.IGNORECASE) for p in (blocked_patterns or BLOCKED_PATTERNS)]
        self._write = [
            re.compile(_VERB_BOUNDARY + re.escape(p.lower()))
            for p in (write_patterns or WRITE_PATTERNS)
        ]
        self._write_re = [re.compile(p, re.IGNORECASE) for p in (write_regexes or WRITE_REGEXES)]

    def blocked_reason(self, command: str) -> Optional[str]:
        """Return the matching denylist pattern, or None."""
        for pattern in self._blocked:
            if pattern.search(command):
                return pattern.pattern
        return None

    def is_write(self, command: str) -> bool:
        """True when any pipe/chain segment mutates state or redirects output."""
        lowered = command.lower().translate(_QUOTING)
        if _REDIRECT.search(lowered):
            return True
        if any(regex.search(lowered) for regex in self._write_re):
            return True
        for segment in _SEGMENT_SPLIT.split(lowered):
            if self._segment_is_write(segment.strip()):
                return True
        return False

    def _segment_is_write(self, segment: str) -> bool:
        if not segment:
            return False
        return any(pattern.search(segment) for pattern in self._write)


def truncate_output(data: bytes, max_bytes: int) -> str:
    """
    Decode and cap output at `max_bytes`, appending a marker when cut.

    A multi-byte character split by the cut is dropped rather than mangled.
    """
    if len(data) <= max_bytes:
        return data.decode("utf-8", errors="replace")
    head = data[:max_bytes].decode("utf-8", errors="ignore")
    return f"{head}\n\n[truncated: showing {max_bytes}/{len(data)} bytes]"


class ShellTool:
    """
    Executes shell commands with safety controls.

    Args:
        config: Sandbox and policy configuration
        approval: Gate consulted when config.require_confirmation is set
        policy: Pattern policy (defaults to the built-in tables)
    """

    def __init__(
        self,
        config: ShellConfig,
        approval: Optional[ApprovalGate] = None,
        policy: Optional[ShellPolicy] = None,
    ):
        if config.require_confirmation and approval is None:
            raise ValueError("require_confirmation needs an approval gate")
        self.config = config
        self.approval = approval
        self.policy = policy or ShellPolicy()
        mode = "Write operations are allowed." if config.allow_write else "Write operations are blocked."
        self.spec = ToolSpec(
            name="shell",
            description=f"Execute a shell command in the sandbox directory. {mode}",
            input_schema=make_schema(
                properties={"command": string_param("Shell command to run with sh -c")},
                required=["command"],
            ),
            returns_description="stdout on success; exit code, stdout and stderr on failure",
        )

    def _filtered_env(self) -> Dict[str, str]:
        return {key: os.environ[key] for key in self.config.env_allowlist if key in os.environ}

    async def _approved(self, command: str) -> bool:
        try:
            return bool(await asyncio.wait_for(
                self.approval.request(command), timeout=self.config.approval_timeout
            ))
        except TimeoutError:
            logger.info(f"No approval within {self.config.approval_timeout}s for: {command}")
            return False

    async def execute(self, args: Dict[str, str]) -> Outcome:
        command = args.get("command", "").strip()
        if not command:
            return Outcome.error("missing required arg: command")

        pattern = self.policy.blocked_reason(command)
        if pattern:
            logger.warning(f"Blocked denylisted command: {command}")
            return Outcome.error("blocked: command is on the deny list")

        if not self.config.allow_write and self.policy.is_write(command):
            return Outcome.error(
                "blocked: write operation not allowed in read-only mode. "
                "Enable write mode (AGENT_ALLOW_WRITE=true) to run it."
            )

        if self.config.require_confirmation and not await self._approved(command):
            return Outcome.error("cancelled: command was not approved")

        work_dir = Path(self.config.working_dir).expanduser()
        work_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"$ {command}")
        process = await asyncio.create_subprocess_exec(
            "sh", "-c", command,
            cwd=str(work_dir),
            env=self._filtered_env(),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            # deadline or run cancellation; do not leave the child running
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        limit = self.config.max_output_bytes
        out = truncate_output(stdout, limit)
        if process.returncode == 0:
            return Outcome.success(out)
        err = truncate_output(stderr, limit)
        return Outcome.error(f"exit code {process.returncode}\nstdout: {out}\nstderr: {err}")
