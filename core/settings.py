"""
Runtime configuration.

Values come from the environment (optionally seeded from a .env file by the
facade via python-dotenv). Every knob has a default so an empty environment
yields a working, read-only, confirmation-gated agent.
"""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from core.constants import (
    API_KEY_ENV_VAR,
    DEFAULT_APPROVAL_TIMEOUT,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_SESSION_CAP,
    DEFAULT_SESSION_CONTEXT,
    DEFAULT_TOOL_TIMEOUT,
    MAX_OUTPUT_BYTES,
    MODEL_DEFAULT,
)
from core.errors import ConfigurationError

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _agent_home() -> Path:
    return Path(os.path.expanduser("~")) / ".agent"


def _bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {raw!r}")


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ConfigurationError(f"{key} must be positive, got {value}")
    return value


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {value}")
    return value


@dataclass
class OAuthSettings:
    """Endpoints of the provider's authorization server."""
    client_id: str = ""
    authorize_url: str = ""
    token_url: str = ""
    redirect_uri: str = ""
    scopes: str = ""

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.authorize_url and self.token_url and self.redirect_uri)


@dataclass
class Settings:
    """All runtime configuration in one place."""

    # --- Loop ---
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    tool_timeout: float = DEFAULT_TOOL_TIMEOUT

    # --- Memory ---
    memory_path: str = field(default_factory=lambda: str(_agent_home() / "memory.db"))
    session_cap: int = DEFAULT_SESSION_CAP
    session_context: int = DEFAULT_SESSION_CONTEXT

    # --- Shell sandbox ---
    allow_write: bool = False
    confirm_commands: bool = True
    approval_timeout: float = DEFAULT_APPROVAL_TIMEOUT
    sandbox_dir: str = field(
        default_factory=lambda: str(Path(tempfile.gettempdir()) / "agent-sandbox")
    )
    max_output_bytes: int = MAX_OUTPUT_BYTES

    # --- Provider ---
    model: str = MODEL_DEFAULT
    api_key_env_var: str = API_KEY_ENV_VAR
    credentials_path: str = field(
        default_factory=lambda: str(_agent_home() / "credentials.json")
    )
    oauth: OAuthSettings = field(default_factory=OAuthSettings)

    # --- Logging ---
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read instead of os.environ (used by tests)

        Raises:
            ConfigurationError: A variable is present but malformed
        """
        env = os.environ if env is None else env
        defaults = cls()
        return cls(
            max_iterations=_int(env, "AGENT_MAX_ITERATIONS", defaults.max_iterations),
            tool_timeout=_float(env, "AGENT_TOOL_TIMEOUT", defaults.tool_timeout),
            memory_path=env.get("AGENT_MEMORY_PATH", defaults.memory_path),
            session_cap=_int(env, "AGENT_SESSION_CAP", defaults.session_cap),
            session_context=_int(env, "AGENT_SESSION_CONTEXT", defaults.session_context),
            allow_write=_bool(env, "AGENT_ALLOW_WRITE", defaults.allow_write),
            confirm_commands=_bool(env, "AGENT_CONFIRM_COMMANDS", defaults.confirm_commands),
            approval_timeout=_float(env, "AGENT_APPROVAL_TIMEOUT", defaults.approval_timeout),
            sandbox_dir=env.get("AGENT_SANDBOX_DIR", defaults.sandbox_dir),
            model=env.get("AGENT_MODEL", defaults.model),
            api_key_env_var=env.get("AGENT_API_KEY_VAR", defaults.api_key_env_var),
            credentials_path=env.get("AGENT_CREDENTIALS_PATH", defaults.credentials_path),
            oauth=OAuthSettings(
                client_id=env.get("AGENT_OAUTH_CLIENT_ID", ""),
                authorize_url=env.get("AGENT_OAUTH_AUTHORIZE_URL", ""),
                token_url=env.get("AGENT_OAUTH_TOKEN_URL", ""),
                redirect_uri=env.get("AGENT_OAUTH_REDIRECT_URI", ""),
                scopes=env.get("AGENT_OAUTH_SCOPES", ""),
            ),
            log_level=env.get("AGENT_LOG_LEVEL", defaults.log_level).upper(),
        )
