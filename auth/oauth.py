"""
Authorization-code-with-PKCE helpers and token endpoint client.

Flow:
1. generate_pkce() -> verifier + S256 challenge
2. build_authorize_url() -> URL the user opens to grant consent
3. OAuthClient.exchange_code() -> access/refresh token pair
4. OAuthClient.refresh() when the access token expires
"""

import base64
import hashlib
import secrets
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode, quote

import httpx
from loguru import logger

from auth.storage import Credential, TokenType
from core.constants import TOKEN_EXPIRY_BUFFER
from core.errors import ConfigurationError, CredentialRefreshError
from core.settings import OAuthSettings


@dataclass(frozen=True)
class Pkce:
    """PKCE verifier and its S256 challenge."""
    verifier: str
    challenge: str


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_pkce() -> Pkce:
    """32 random bytes -> 43-char verifier; SHA-256 of it -> 43-char challenge."""
    verifier = _b64url(secrets.token_bytes(32))
    challenge = _b64url(hashlib.sha256(verifier.encode("ascii")).digest())
    return Pkce(verifier=verifier, challenge=challenge)


def verify_pkce(verifier: str, challenge: str) -> bool:
    """True when `challenge` is the base64url SHA-256 of `verifier`."""
    expected = _b64url(hashlib.sha256(verifier.encode("ascii")).digest())
    return secrets.compare_digest(expected, challenge)


def build_authorize_url(config: OAuthSettings, pkce: Optional[Pkce] = None) -> Tuple[str, str]:
    """
    Build the consent URL for the user to visit.

    The verifier doubles as the `state` value and must be kept by the caller
    for the token exchange.

    Returns:
        (url, verifier)
    """
    if not config.configured:
        raise ConfigurationError(
            "OAuth is not configured. Set AGENT_OAUTH_CLIENT_ID, AGENT_OAUTH_AUTHORIZE_URL, "
            "AGENT_OAUTH_TOKEN_URL and AGENT_OAUTH_REDIRECT_URI."
        )
    pkce = pkce or generate_pkce()
    params = {
        "code": "true",
        "client_id": config.client_id,
        "response_type": "code",
        "redirect_uri": config.redirect_uri,
        "scope": config.scopes,
        "code_challenge": pkce.challenge,
        "code_challenge_method": "S256",
        "state": pkce.verifier,
    }
    query = urlencode(params, quote_via=quote, safe="")
    return f"{config.authorize_url}?{query}", pkce.verifier


def split_authorization_code(raw: str) -> Tuple[str, str]:
    """The consent page hands back `code#state`; the state part is optional."""
    code, _, state = raw.strip().partition("#")
    return code, state


class OAuthClient:
    """
    Talks to the token endpoint.

    Args:
        config: Provider endpoints and client id
        http: Optional shared httpx.AsyncClient (tests inject a mock transport)
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        config: OAuthSettings,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.config = config
        self._http = http
        self._timeout = timeout

    async def exchange_code(self, raw_code: str, verifier: str) -> Credential:
        """
        Exchange an authorization code for an access/refresh token pair.

        Args:
            raw_code: What the user pasted, `code` or `code#state`
            verifier: The PKCE verifier from build_authorize_url()
        """
        code, state = split_authorization_code(raw_code)
        body = {
            "grant_type": "authorization_code",
            "client_id": self.config.client_id,
            "code": code,
            "state": state,
            "redirect_uri": self.config.redirect_uri,
            "code_verifier": verifier,
        }
        data = await self._post(body, "token exchange")
        return self._credential_from(data)

    async def refresh(self, refresh_token: str) -> Credential:
        """Trade a refresh token for a fresh access token."""
        body = {
            "grant_type": "refresh_token",
            "client_id": self.config.client_id,
            "refresh_token": refresh_token,
        }
        data = await self._post(body, "token refresh")
        credential = self._credential_from(data)
        if not credential.refresh_token:
            # servers that do not rotate refresh tokens omit it
            credential = Credential(
                access_token=credential.access_token,
                refresh_token=refresh_token,
                expires_at=credential.expires_at,
                token_type=credential.token_type,
            )
        return credential

    async def _post(self, body: Dict[str, Any], what: str) -> Dict[str, Any]:
        if not self.config.token_url:
            raise ConfigurationError("AGENT_OAUTH_TOKEN_URL is not set")
        logger.debug(f"POST {self.config.token_url} ({what})")
        try:
            if self._http is not None:
                response = await self._http.post(self.config.token_url, json=body, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as http:
                    response = await http.post(self.config.token_url, json=body)
        except httpx.HTTPError as e:
            raise CredentialRefreshError(f"{what} failed: {e}") from e

        if response.status_code >= 400:
            raise CredentialRefreshError(f"{what} failed ({response.status_code}): {response.text}")
        try:
            return response.json()
        except ValueError as e:
            raise CredentialRefreshError(f"{what} returned invalid JSON") from e

    @staticmethod
    def _credential_from(data: Dict[str, Any]) -> Credential:
        try:
            access = data["access_token"]
            expires_in = int(data["expires_in"])
        except (KeyError, TypeError, ValueError) as e:
            raise CredentialRefreshError(f"token response missing field: {e}") from e
        return Credential(
            access_token=access,
            refresh_token=data.get("refresh_token"),
            expires_at=time.time() + expires_in - TOKEN_EXPIRY_BUFFER,
            token_type=TokenType.BEARER,
        )
