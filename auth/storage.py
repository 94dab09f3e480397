"""
Credential file store.

The file holds a single JSON object:
    {"access_token": ..., "refresh_token": ..., "expires_at": ..., "token_type": ...}

It is always written owner read/write only (0600). A file found with group or
other permission bits is repaired before use; if it cannot be repaired the
store refuses to read it.
"""

import json
import os
import stat
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from loguru import logger

from core.errors import CredentialError, InsecureCredentialStore

_OWNER_ONLY = 0o600


class TokenType(str, Enum):
    BEARER = "bearer"
    API_KEY = "api_key"


@dataclass(frozen=True)
class Credential:
    """
    A provider credential.

    Attributes:
        access_token: Token sent with each request
        refresh_token: OAuth refresh token (bearer credentials only)
        expires_at: Epoch seconds after which the token is stale; None never expires
        token_type: bearer (OAuth) or api_key (static)
    """
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[float] = None
    token_type: TokenType = TokenType.BEARER

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        return (time.time() if now is None else now) >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "token_type": self.token_type.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Credential":
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=data.get("expires_at"),
            token_type=TokenType(data.get("token_type", TokenType.BEARER.value)),
        )


class CredentialStore:
    """Reads and writes the credential file with owner-only permissions."""

    def __init__(self, path: str):
        self.path = Path(path).expanduser()

    def exists(self) -> bool:
        return self.path.exists()

    def _enforce_permissions(self) -> None:
        if os.name == "nt":
            return
        mode = stat.S_IMODE(self.path.stat().st_mode)
        if mode & 0o077 == 0:
            return
        logger.warning(f"Credential file {self.path} had mode {oct(mode)}; repairing to 0600")
        try:
            os.chmod(self.path, _OWNER_ONLY)
        except OSError as e:
            raise InsecureCredentialStore(
                f"credential file {self.path} is accessible by others and could not be repaired: {e}"
            ) from e
        if stat.S_IMODE(self.path.stat().st_mode) & 0o077:
            raise InsecureCredentialStore(f"credential file {self.path} is still accessible by others")

    def load(self) -> Optional[Credential]:
        """Return the stored credential, or None when nothing is stored."""
        if not self.path.exists():
            return None
        self._enforce_permissions()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return Credential.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise CredentialError(f"cannot read credential file {self.path}: {e}") from e

    def save(self, credential: Credential) -> None:
        """Write atomically: temp file created 0600, then renamed over the target."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        payload = json.dumps(credential.to_dict(), indent=2)
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _OWNER_ONLY)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            if os.name != "nt":
                os.chmod(tmp, _OWNER_ONLY)
            os.replace(tmp, self.path)
        except OSError as e:
            raise CredentialError(f"cannot write credential file {self.path}: {e}") from e

    def clear(self) -> bool:
        """Delete the stored credential. Returns False if there was none."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        return True
