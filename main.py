#!/usr/bin/env python3
"""
Agent - CLI Entry Point.

A ReAct agent that answers tasks by thinking and running sandboxed shell
commands until it can give an answer.

Usage:
    python main.py            # LLM thinker (mock mode without credentials)
    python main.py --human    # You are the thinker
    python main.py --model NAME
"""

import asyncio
import sys

from dotenv import load_dotenv

from core.agent import LocalAgent, configure_logging
from core.errors import AgentError
from core.settings import Settings


# =============================================================================
# SAMPLE TASKS
# =============================================================================

SAMPLE_TASKS = [
    "What is the current date and time?",
    "Who am I logged in as?",
    "List the files in the sandbox",
    "Run 'uname -a'",
]

COMMANDS = """
  /login          Log in with the provider (OAuth, PKCE)
  /logout         Remove the stored credential
  /status         Show credential status and model
  /models         List available models
  /model NAME     Switch model
  /human          Take over as the thinker
  /history        Show recent session entries
  /recall TEXT    Search past tasks and answers
  /new            Start a new session (forget past tasks)
  exit            Quit
"""


def show_menu():
    """Display the sample tasks and commands."""
    print("\n" + "="*50)
    print("SAMPLE TASKS (enter number or type your own):")
    print("="*50)
    for i, task in enumerate(SAMPLE_TASKS, 1):
        print(f"  {i:2}. {task}")
    print("="*50)
    print(COMMANDS.rstrip())
    print("="*50)


def print_entry(entry) -> None:
    print(f"  [{entry.status.value}] {entry.question} -> {entry.answer}")


async def login(agent: LocalAgent) -> None:
    pending = agent.begin_login()
    print("\nOpen this URL in a browser and approve access:\n")
    print(f"  {pending.url}\n")
    code = (await agent.console.ask("Paste the authorization code: ")).strip()
    if not code:
        print("Login aborted.")
        return
    await agent.complete_login(code, pending.verifier)
    print("[AUTH] Logged in.")


async def handle_command(agent: LocalAgent, req: str) -> None:
    name, _, arg = req.partition(" ")
    if name == "/login":
        await login(agent)
    elif name == "/logout":
        print("[AUTH] Logged out." if agent.logout() else "[AUTH] No stored credential.")
    elif name == "/status":
        print(f"[AUTH] {agent.auth_status()}  [MODEL] {agent.model}")
    elif name == "/models":
        thinker = agent.engine.thinker
        if hasattr(thinker, "list_models"):
            for model in await thinker.list_models():
                print(f"  {model}")
        else:
            print("Current thinker has no models.")
    elif name == "/model" and arg:
        await agent.set_model(arg.strip())
        print(f"[MODEL] {agent.model}")
    elif name == "/human":
        await agent.use_human()
        print("[MODEL] human")
    elif name == "/history":
        for entry in await agent.history(10):
            print_entry(entry)
    elif name == "/recall" and arg:
        found = await agent.recall(arg.strip())
        for entry in found:
            print_entry(entry)
        if not found:
            print("Nothing found.")
    elif name == "/new":
        await agent.new_session()
        print("[SESSION] History cleared.")
    else:
        print(f"Unknown command: {req}")


async def run(argv):
    load_dotenv()
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    if "--model" in argv:
        idx = argv.index("--model")
        if idx + 1 < len(argv):
            settings.model = argv[idx + 1]

    agent = LocalAgent(settings=settings)
    await agent.start()
    if "--human" in argv:
        await agent.use_human()

    print("[AGENT] Agent Initialized.")
    print(f"[AGENT] Model: {agent.model}  Auth: {agent.auth_status()}")
    print(f"[AGENT] Sandbox: {settings.sandbox_dir}")
    show_menu()

    try:
        while True:
            try:
                req = (await agent.console.ask("\n> ")).strip()
            except (KeyboardInterrupt, EOFError):
                print("\nGoodbye!")
                break

            if req.lower() in ["exit", "quit", "q", "0"]:
                print("Goodbye!")
                break

            if req.lower() == "help":
                show_menu()
                continue

            if not req:
                continue

            if req.startswith("/"):
                try:
                    await handle_command(agent, req)
                except AgentError as e:
                    print(f"[ERR] {e}")
                continue

            # Handle numbered tasks
            if req.isdigit():
                idx = int(req)
                if 1 <= idx <= len(SAMPLE_TASKS):
                    req = SAMPLE_TASKS[idx - 1]
                    print(f"Running: {req}")

            await agent.execute(req)
    finally:
        agent.close()


def main():
    """Main entry point for the agent."""
    try:
        asyncio.run(run(sys.argv[1:]))
    except KeyboardInterrupt:
        print("\nGoodbye!")


if __name__ == "__main__":
    main()
