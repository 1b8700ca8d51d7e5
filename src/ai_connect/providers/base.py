"""Provider capability set.

A provider describes one OAuth service: where to send the user, where to
exchange codes, and how to shape both requests. Only the endpoints and
default scope are required; every other capability has a documented
default so providers only override what they need.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum


class TokenRequestFormat(Enum):
    """Body encoding of token endpoint requests."""

    JSON = "json"
    FORM = "form"


class OAuthProvider(ABC):
    """Base class for the built-in OAuth providers.

    Defaults:
    - ``authorize_params()``: no extra authorize parameters
    - ``token_params()``: no extra token parameters
    - ``token_request_format``: JSON body
    - ``token_headers()``: no extra headers
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Stable provider identifier (e.g. ``"anthropic"``)."""

    @property
    @abstractmethod
    def authorize_url(self) -> str:
        """Authorization endpoint the user's browser is sent to."""

    @property
    @abstractmethod
    def token_url(self) -> str:
        """Token endpoint used for code exchange and refresh."""

    @property
    @abstractmethod
    def default_scope(self) -> str:
        """Scope requested when the client config does not override it."""

    def authorize_params(self) -> list[tuple[str, str]]:
        """Extra query parameters added to every authorization URL."""
        return []

    def token_params(self) -> list[tuple[str, str]]:
        """Extra fields added to every token request body."""
        return []

    @property
    def token_request_format(self) -> TokenRequestFormat:
        return TokenRequestFormat.JSON

    def token_headers(self) -> list[tuple[str, str]]:
        """Extra headers attached to every token request."""
        return []

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"
