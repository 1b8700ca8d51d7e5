"""Exception hierarchy for OAuth 2.0 + PKCE client errors.

Provides specific exception types for different failure modes to enable
precise error handling. Exceptions that describe a protocol outcome carry
their structured fields as attributes so callers never need to parse
messages.
"""

from __future__ import annotations


class OAuth2Error(Exception):
    """Base exception for all OAuth related errors."""

    pass


class URLParseError(OAuth2Error):
    """Raised when a URL cannot be parsed or is missing required parts."""

    pass


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation fails."""

    pass


class RandomSourceError(PKCEError):
    """Raised when the operating system's random source is unavailable."""

    pass


class LocalServerError(OAuth2Error):
    """Raised when the local redirect capture server fails."""

    pass


class InvalidRedirectURIError(LocalServerError):
    """Raised when a redirect URI cannot be served by the local server.

    The redirect URI must use the ``http`` scheme and name a host.
    """

    pass


class LocalIOError(LocalServerError):
    """Raised when binding, accepting or writing on the local socket fails."""

    pass


class ListenTimeoutError(LocalServerError):
    """Raised when no authorization callback arrives before the deadline."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Local server timed out after {timeout} seconds")


class AuthorizationCallbackError(OAuth2Error):
    """Raised when authorization server callback data is malformed or invalid.

    This indicates the authorization server sent an invalid callback URL,
    not that our callback handling code failed.
    """

    pass


class MissingAuthorizationCodeError(AuthorizationCallbackError):
    """Raised when a callback URL carries no ``code`` parameter."""

    def __init__(self) -> None:
        super().__init__("Missing authorization code in callback URL")


class StateValidationError(AuthorizationCallbackError):
    """Raised when OAuth state parameter validation fails.

    This indicates a state mismatch, which could indicate a CSRF attack
    or authorization server issue.
    """

    pass


class StateMismatchError(StateValidationError):
    """Raised when the callback state differs from the state we sent."""

    def __init__(self, expected: str, received: str):
        self.expected = expected
        self.received = received
        super().__init__(
            f"State mismatch (expected={expected}, received={received})"
        )


class TokenError(OAuth2Error):
    """Raised when token endpoint operations fail."""

    pass


class InvalidHeaderError(TokenError):
    """Raised when a provider declares a header that cannot be sent."""

    def __init__(self, name: str, value: str):
        self.name = name
        self.value = value
        super().__init__(f"Invalid header: {name}={value}")


class HTTPTransportError(TokenError):
    """Raised when the token request fails before a response is received."""

    pass


class HTTPStatusError(TokenError):
    """Raised when the token endpoint answers with a non-2xx status.

    The response body is kept verbatim for diagnostics.
    """

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"HTTP status {status}: {body}")


class InvalidResponseBodyError(TokenError):
    """Raised when a 2xx token response cannot be decoded."""

    def __init__(self, message: str, body: str):
        self.message = message
        self.body = body
        super().__init__(f"Invalid token response: {message}")
