"""
LocalAgent - High-level facade for the agent.

Wires up settings, memory, credentials, the shell tool, the Thinker and the
LoopEngine, and provides a simple execute() interface.
"""

import sys
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from auth.manager import CredentialManager, PendingAuthorization
from auth.oauth import OAuthClient
from auth.storage import CredentialStore
from core.console import default_console
from core.engine import LoopEngine
from core.context import SessionEntry
from core.errors import CredentialError, InfrastructureError, LoopFailure
from core.events import EventBus
from core.protocols import ApprovalGate, Thinker
from core.registry import ToolRegistry
from core.settings import Settings
from llm.groq_adapter import GroqAdapter
from llm.mock_adapter import MockLLMAdapter
from memory import open_memory
from thinkers.human import HumanThinker
from thinkers.llm_thinker import LLMThinker
from tools.approval import ConsoleApproval
from tools.shell import ShellConfig, ShellTool

MODEL_SETTING = "model"

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}"


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default handler with a compact stderr one."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level)


class LocalAgent:
    """
    High-level facade for the agent.

    Args:
        settings: Runtime configuration (defaults to Settings.from_env()
                  after loading a .env file)
        approval: Gate for shell commands (defaults to a console y/N prompt)
        thinker: Decision maker; by default an LLMThinker over Groq when
                 credentials are available, over the mock client otherwise
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        approval: Optional[ApprovalGate] = None,
        thinker: Optional[Thinker] = None,
    ):
        if settings is None:
            load_dotenv()
            settings = Settings.from_env()
        self.settings = settings
        self.console = default_console()

        self.events = EventBus()
        self.memory = open_memory(settings.memory_path, session_cap=settings.session_cap)
        self.credentials = CredentialManager(
            store=CredentialStore(settings.credentials_path),
            oauth=OAuthClient(settings.oauth),
            api_key_env_var=settings.api_key_env_var,
            events=self.events,
        )

        self.registry = ToolRegistry()
        self.shell = ShellTool(
            ShellConfig(
                working_dir=settings.sandbox_dir,
                allow_write=settings.allow_write,
                require_confirmation=settings.confirm_commands,
                approval_timeout=settings.approval_timeout,
                max_output_bytes=settings.max_output_bytes,
            ),
            approval=approval or ConsoleApproval(self.console),
        )

        self.engine = LoopEngine(
            thinker=thinker or self._default_thinker(),
            registry=self.registry,
            memory=self.memory,
            max_iterations=settings.max_iterations,
            tool_timeout=settings.tool_timeout,
            session_context=settings.session_context,
            events=self.events,
        )
        self._started = False

    def _default_thinker(self) -> Thinker:
        try:
            status = self.credentials.status()
        except CredentialError as e:
            logger.warning(f"Credential store unusable: {e}")
            status = "unauthenticated"

        if status == "unauthenticated":
            logger.warning(
                f"No credentials found (log in or set {self.settings.api_key_env_var}). "
                "Agent will run in MOCK mode."
            )
            return LLMThinker(MockLLMAdapter())

        logger.info(f"Using Groq model {self.settings.model} ({status})")
        return LLMThinker(GroqAdapter(self.credentials, model=self.settings.model))

    async def start(self) -> None:
        """Register tools and restore the last selected model."""
        if self._started:
            return
        await self.registry.register(self.shell)

        saved = await self.memory.get_setting(MODEL_SETTING)
        if saved and isinstance(self.engine.thinker, LLMThinker) and saved != self.engine.thinker.model:
            await self.engine.set_model(saved)
            logger.info(f"Restored model '{saved}'")
        self._started = True

    async def execute(self, user_input: str) -> Optional[str]:
        """
        Run one task to completion.

        Bounded failures and infrastructure faults are reported and end this
        task only; the agent stays usable.

        Args:
            user_input: The user's task

        Returns:
            The answer, or None if the run ended without one
        """
        await self.start()
        print(f"\nUser: '{user_input}'")

        try:
            answer = await self.engine.run(user_input)
        except LoopFailure as e:
            print(f"[ERR] Task ended without answer: {e.reason}")
            return None
        except InfrastructureError as e:
            print(f"[ERR] {type(e).__name__}: {e}")
            return None

        print(f"[OK] {answer}")
        usage = self.engine.session_usage
        if usage.total:
            print(f"[TOKENS] in={usage.input_tokens} out={usage.output_tokens}")
        return answer

    def cancel(self) -> None:
        self.engine.cancel()

    # --- Thinker / model ---

    async def set_model(self, model: str) -> None:
        """Switch the active model and remember it across restarts."""
        await self.engine.set_model(model)
        await self.memory.set_setting(MODEL_SETTING, model)

    async def use_human(self) -> None:
        """Hand the decisions to the person at the terminal."""
        await self.engine.set_thinker(HumanThinker(ask=self.console.ask))

    @property
    def model(self) -> str:
        return self.engine.thinker.model

    # --- Session history ---

    async def history(self, limit: int = 10) -> List[SessionEntry]:
        return await self.memory.session_history(limit)

    async def recall(self, query: str) -> List[SessionEntry]:
        """Past tasks whose question or answer mentions `query`."""
        return await self.memory.recall(query)

    async def new_session(self) -> None:
        """Forget earlier tasks; the next run starts without session context."""
        await self.memory.clear_sessions()
        logger.info("Session history cleared")

    # --- Credentials ---

    def begin_login(self) -> PendingAuthorization:
        return self.credentials.begin_login()

    async def complete_login(self, code: str, verifier: str) -> None:
        """Store the new credential and move an LLM thinker onto Groq, keeping the chosen model."""
        await self.credentials.complete_login(code, verifier)
        if not isinstance(self.engine.thinker, HumanThinker):
            model = await self.memory.get_setting(MODEL_SETTING) or self.settings.model
            await self.engine.set_thinker(LLMThinker(GroqAdapter(self.credentials, model=model)))

    def logout(self) -> bool:
        return self.credentials.logout()

    def auth_status(self) -> str:
        return self.credentials.status()

    def close(self) -> None:
        self.memory.close()
