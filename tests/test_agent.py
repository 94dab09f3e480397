"""Integration tests for the LocalAgent facade (mock LLM, real shell)."""
from unittest.mock import AsyncMock

import pytest

from core.agent import LocalAgent
from core.context import SessionStatus, Thought
from core.settings import Settings
from llm.groq_adapter import GroqAdapter
from thinkers.human import HumanThinker
from thinkers.scripted import ScriptedThinker
from tools.approval import AutoApprove


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.delenv("AGENT_TEST_API_KEY", raising=False)
    return Settings(
        memory_path="none",
        sandbox_dir=str(tmp_path / "sandbox"),
        credentials_path=str(tmp_path / "credentials.json"),
        api_key_env_var="AGENT_TEST_API_KEY",
        confirm_commands=False,
        max_iterations=4,
    )


class TestLocalAgent:

    @pytest.mark.asyncio
    async def test_mock_mode_runs_shell(self, settings):
        agent = LocalAgent(settings=settings)

        answer = await agent.execute("Run 'echo hello'")

        assert agent.model == "mock"
        assert agent.auth_status() == "unauthenticated"
        assert "hello" in answer
        [entry] = await agent.memory.session_history()
        assert entry.status == SessionStatus.FINISHED

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self, settings):
        agent = LocalAgent(settings=settings, thinker=ScriptedThinker([Thought(text="x")] * 10))

        assert await agent.execute("never ends") is None

        [entry] = await agent.memory.session_history()
        assert entry.status == SessionStatus.FAILED
        assert entry.answer == "max iterations exceeded"

    @pytest.mark.asyncio
    async def test_shell_registered_on_start(self, settings):
        agent = LocalAgent(settings=settings, approval=AutoApprove())

        await agent.start()

        assert await agent.registry.list_tools() == ["shell"]

    @pytest.mark.asyncio
    async def test_model_choice_persists(self, settings, tmp_path):
        settings.memory_path = str(tmp_path / "memory.db")
        agent = LocalAgent(settings=settings)
        await agent.set_model("llama-3.1-8b-instant")
        agent.close()

        restarted = LocalAgent(settings=settings)
        await restarted.start()
        try:
            assert restarted.model == "llama-3.1-8b-instant"
        finally:
            restarted.close()

    @pytest.mark.asyncio
    async def test_use_human(self, settings):
        agent = LocalAgent(settings=settings)

        await agent.use_human()

        assert isinstance(agent.engine.thinker, HumanThinker)

    @pytest.mark.asyncio
    async def test_login_keeps_chosen_model(self, settings, monkeypatch):
        agent = LocalAgent(settings=settings)
        await agent.set_model("llama-3.1-8b-instant")
        monkeypatch.setattr(agent.credentials, "complete_login", AsyncMock())

        await agent.complete_login("code#state", "verifier")

        assert isinstance(agent.engine.thinker.client, GroqAdapter)
        assert agent.model == "llama-3.1-8b-instant"
        assert await agent.memory.get_setting("model") == "llama-3.1-8b-instant"

    @pytest.mark.asyncio
    async def test_recall_and_new_session(self, settings):
        agent = LocalAgent(settings=settings)
        await agent.execute("Run 'echo hello'")

        [entry] = await agent.recall("ECHO")
        assert entry.question == "Run 'echo hello'"

        await agent.new_session()

        assert await agent.history() == []
        assert await agent.recall("echo") == []
