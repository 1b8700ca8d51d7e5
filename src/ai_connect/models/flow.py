"""Authorization flow models.

Contains models for authorization requests and callback handling.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qsl, urlsplit

from ai_connect.models.errors import MissingAuthorizationCodeError, URLParseError
from ai_connect.models.security import PKCEPair


@dataclass(frozen=True)
class AuthorizationRequest:
    """A browser-ready authorization URL plus the secrets needed to finish.

    The PKCE pair and state are retained so the callback can be verified
    and the code exchanged without recomputation.
    """

    authorization_url: str
    pkce: PKCEPair
    state: str
    scope: str


@dataclass(frozen=True)
class AuthorizationResponse:
    code: str
    state: str | None = None

    @classmethod
    def from_callback(
        cls, code: str, state: str | None = None
    ) -> AuthorizationResponse:
        """Build a response from raw callback values.

        Some providers hand back ``code#state`` in a single value. When no
        explicit state is present the value is split on the first ``#``;
        an explicit state parameter always wins.
        """
        if state is None and "#" in code:
            code_part, state_part = code.split("#", 1)
            return cls(code=code_part, state=state_part)

        return cls(code=code, state=state)

    @classmethod
    def from_url(cls, callback_url: str) -> AuthorizationResponse:
        """Parse a full callback URL into an AuthorizationResponse.

        Args:
            callback_url: Absolute URL the provider redirected to

        Returns:
            AuthorizationResponse: Parsed callback parameters

        Raises:
            URLParseError: If the URL is malformed
            MissingAuthorizationCodeError: If no ``code`` parameter is present
        """
        try:
            parsed = urlsplit(callback_url)
            if not parsed.scheme:
                raise ValueError("relative URL without a base")
            pairs = parse_qsl(parsed.query, keep_blank_values=True)
        except ValueError as e:
            raise URLParseError(f"Failed to parse callback URL: {e}") from e

        code: str | None = None
        state: str | None = None
        for key, value in pairs:
            if key == "code":
                code = value
            elif key == "state":
                state = value

        if code is None:
            raise MissingAuthorizationCodeError()

        return cls.from_callback(code, state)
