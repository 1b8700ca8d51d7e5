"""Redirect target parsing for the local capture server."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

from ai_connect.models.errors import InvalidRedirectURIError, URLParseError

DEFAULT_HTTP_PORT = 80


@dataclass(frozen=True)
class RedirectTarget:
    """Where the local server listens, derived from a redirect URI.

    ``host`` is stored without IPv6 brackets so it can be handed to
    ``socket.bind`` directly.
    """

    scheme: str
    host: str
    port: int
    path: str

    @classmethod
    def parse(cls, redirect_uri: str) -> RedirectTarget:
        """Parse and validate a redirect URI.

        Raises:
            URLParseError: If the URI is malformed
            InvalidRedirectURIError: If the URI is not plain http or lacks a host
        """
        try:
            parsed = urlsplit(redirect_uri)
            port = parsed.port
        except ValueError as e:
            raise URLParseError(f"Failed to parse redirect URI: {e}") from e

        if not parsed.scheme:
            raise URLParseError(f"Redirect URI is not absolute: {redirect_uri}")
        if parsed.scheme != "http":
            raise InvalidRedirectURIError("redirect uri must use http scheme")
        if not parsed.hostname:
            raise InvalidRedirectURIError("redirect uri is missing host")

        return cls(
            scheme=parsed.scheme,
            host=parsed.hostname,
            port=port if port is not None else DEFAULT_HTTP_PORT,
            path=parsed.path or "/",
        )

    @property
    def netloc(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"

    @property
    def redirect_uri(self) -> str:
        return f"{self.scheme}://{self.netloc}{self.path}"

    def build_callback_url(self, query: str) -> str:
        """Rebuild the absolute callback URL for a received query string.

        Raises:
            URLParseError: If the resulting URL cannot be parsed
        """
        if not query:
            return self.redirect_uri

        callback_url = f"{self.redirect_uri}?{query}"
        try:
            urlsplit(callback_url)
        except ValueError as e:
            raise URLParseError(f"Failed to rebuild callback URL: {e}") from e
        return callback_url
