"""Anthropic (Claude) OAuth provider."""

from __future__ import annotations

from ai_connect.providers.base import OAuthProvider

AUTHORIZE_URL = "https://claude.ai/oauth/authorize"
TOKEN_URL = "https://console.anthropic.com/v1/oauth/token"
DEFAULT_SCOPE = "org:create_api_key user:profile user:inference"

DEFAULT_CLIENT_ID = "9d1c250a-e61b-44d9-88ed-5944d1962f5e"
DEFAULT_REDIRECT_URI = "http://localhost:8765/callback"


class AnthropicProvider(OAuthProvider):
    """Claude account login.

    Asks the consent page to display the code (``code=true``) and sends
    token requests as JSON.
    """

    DEFAULT_CLIENT_ID = DEFAULT_CLIENT_ID
    DEFAULT_REDIRECT_URI = DEFAULT_REDIRECT_URI

    @property
    def id(self) -> str:
        return "anthropic"

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
        return [("code", "true")]
