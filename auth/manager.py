"""
CredentialManager - acquires, refreshes and resolves provider credentials.

Resolution order on every authenticated call:
1. stored OAuth credential, refreshed first if expired
2. static API key from the configured environment variable
3. Unauthenticated

Refresh is single-flight: concurrent callers that find the token expired
queue on one lock; the first performs the network refresh, the rest re-read
the store and reuse its result.
"""

import asyncio
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from loguru import logger

from auth.oauth import OAuthClient, build_authorize_url
from auth.storage import Credential, CredentialStore, TokenType
from core.errors import CredentialRefreshError, Unauthenticated
from core.events import ChangeKind, EventBus, StateChange


@dataclass(frozen=True)
class PendingAuthorization:
    """A login in progress: the consent URL and the verifier to keep."""
    url: str
    verifier: str


class CredentialManager:
    """
    Owns the credential lifecycle for one provider.

    Args:
        store: File store for the OAuth credential
        oauth: Token endpoint client
        api_key_env_var: Environment variable holding a static API key
        events: Optional bus notified on login, refresh and logout
        env: Environment mapping (defaults to os.environ)
    """

    def __init__(
        self,
        store: CredentialStore,
        oauth: OAuthClient,
        api_key_env_var: str,
        events: Optional[EventBus] = None,
        env: Optional[Mapping[str, str]] = None,
    ):
        self.store = store
        self.oauth = oauth
        self.api_key_env_var = api_key_env_var
        self.events = events
        self._env = env
        self._refresh_lock = asyncio.Lock()
        self.refresh_count = 0

    # --- Login / logout ---

    def begin_login(self) -> PendingAuthorization:
        """Generate a PKCE pair and the consent URL for the user."""
        url, verifier = build_authorize_url(self.oauth.config)
        return PendingAuthorization(url=url, verifier=verifier)

    async def complete_login(self, code: str, verifier: str) -> Credential:
        """
        Exchange the code returned by the consent page and persist the tokens.

        Args:
            code: Pasted authorization code (`code` or `code#state`)
            verifier: Verifier from begin_login()
        """
        credential = await self.oauth.exchange_code(code, verifier)
        self.store.save(credential)
        logger.info("Logged in; OAuth credential stored")
        self._publish("login")
        return credential

    def logout(self) -> bool:
        """Delete the stored OAuth credential. Returns False if none was stored."""
        removed = self.store.clear()
        if removed:
            logger.info("Logged out; OAuth credential removed")
            self._publish("logout")
        return removed

    # --- Resolution ---

    async def resolve(self) -> Credential:
        """
        Return a usable credential.

        Raises:
            CredentialRefreshError: The stored token expired and refresh failed
            Unauthenticated: Nothing stored and no API key configured
        """
        stored = self.store.load()
        if stored is not None:
            if not stored.is_expired():
                return stored
            return await self._refresh()

        key = self._api_key()
        if key:
            return Credential(access_token=key, token_type=TokenType.API_KEY)

        raise Unauthenticated(
            f"No credentials found. Log in or set {self.api_key_env_var}."
        )

    async def access_token(self) -> str:
        return (await self.resolve()).access_token

    def status(self) -> str:
        """Short description of what resolve() would use, without network calls."""
        stored = self.store.load()
        if stored is not None:
            return "oauth (expired, will refresh)" if stored.is_expired() else "oauth"
        if self._api_key():
            return f"api key ({self.api_key_env_var})"
        return "unauthenticated"

    async def _refresh(self) -> Credential:
        async with self._refresh_lock:
            # another caller may have refreshed while we waited
            current = self.store.load()
            if current is not None and not current.is_expired():
                return current
            if current is None:
                raise Unauthenticated("Stored credential was removed during refresh")
            if not current.refresh_token:
                raise CredentialRefreshError("Stored credential expired and has no refresh token")

            logger.info("Access token expired; refreshing")
            self.refresh_count += 1
            refreshed = await self.oauth.refresh(current.refresh_token)
            self.store.save(refreshed)
            self._publish("refreshed")
            return refreshed

    def _api_key(self) -> Optional[str]:
        env = os.environ if self._env is None else self._env
        key = env.get(self.api_key_env_var, "")
        return key or None

    def _publish(self, detail: str) -> None:
        if self.events is not None:
            self.events.publish(StateChange(ChangeKind.AUTH, detail))
