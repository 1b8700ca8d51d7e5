"""OpenAI (ChatGPT / Codex) OAuth provider.

Mirrors the login performed by the Codex CLI: three extra authorize
parameters, one of which identifies the calling client (the
"originator"), and form-encoded token requests.
"""

from __future__ import annotations

import copy

from ai_connect.providers.base import OAuthProvider, TokenRequestFormat

AUTHORIZE_URL = "https://auth.openai.com/oauth/authorize"
TOKEN_URL = "https://auth.openai.com/oauth/token"
DEFAULT_SCOPE = "openid profile email offline_access"

DEFAULT_CLIENT_ID = "app_EMoamEEZ73f0CkXaXp7hrann"
DEFAULT_REDIRECT_URI = "http://localhost:1455/auth/callback"
DEFAULT_ORIGINATOR = "codex_cli_rs"


class OpenAIProvider(OAuthProvider):
    DEFAULT_CLIENT_ID = DEFAULT_CLIENT_ID
    DEFAULT_REDIRECT_URI = DEFAULT_REDIRECT_URI
    DEFAULT_ORIGINATOR = DEFAULT_ORIGINATOR

    def __init__(self, originator: str = DEFAULT_ORIGINATOR):
        self.originator = originator

    def with_originator(self, originator: str) -> OpenAIProvider:
        """Return a copy that identifies itself with another originator."""
        provider = copy.copy(self)
        provider.originator = originator
        return provider

    @property
    def id(self) -> str:
        return "openai"

    @property
    def authorize_url(self) -> str:
        return AUTHORIZE_URL

    @property
    def token_url(self) -> str:
        return TOKEN_URL

    @property
    def default_scope(self) -> str:
        return DEFAULT_SCOPE

    def authorize_params(self) -> list[tuple[str, str]]:
        return [
            ("id_token_add_organizations", "true"),
            ("codex_cli_simplified_flow", "true"),
            ("originator", self.originator),
        ]

    @property
    def token_request_format(self) -> TokenRequestFormat:
        return TokenRequestFormat.FORM

    def token_headers(self) -> list[tuple[str, str]]:
        return [("Accept", "application/json")]

    def __repr__(self) -> str:
        return f"OpenAIProvider(originator={self.originator!r})"
