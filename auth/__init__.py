"""
Credential lifecycle: PKCE login, token refresh, resolution.
"""

from auth.manager import CredentialManager, PendingAuthorization
from auth.oauth import OAuthClient, Pkce, build_authorize_url, generate_pkce, verify_pkce
from auth.storage import Credential, CredentialStore, TokenType

__all__ = [
    "CredentialManager",
    "PendingAuthorization",
    "OAuthClient",
    "Pkce",
    "build_authorize_url",
    "generate_pkce",
    "verify_pkce",
    "Credential",
    "CredentialStore",
    "TokenType",
]
