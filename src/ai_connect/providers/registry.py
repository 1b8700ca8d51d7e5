"""Lookup of the built-in providers by identifier."""

from __future__ import annotations

from typing import Any

from ai_connect.providers.anthropic import AnthropicProvider
from ai_connect.providers.base import OAuthProvider
from ai_connect.providers.openai import OpenAIProvider

PROVIDERS: dict[str, type[OAuthProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
}


def get_provider(provider_id: str, **kwargs: Any) -> OAuthProvider:
    """Instantiate a built-in provider.

    Args:
        provider_id: ``"anthropic"`` or ``"openai"``
        **kwargs: Provider constructor arguments (e.g. ``originator``)

    Raises:
        KeyError: If the provider is unknown
    """
    try:
        provider_cls = PROVIDERS[provider_id]
    except KeyError:
        raise KeyError(
            f"Unknown provider {provider_id!r}; expected one of {sorted(PROVIDERS)}"
        ) from None
    return provider_cls(**kwargs)
