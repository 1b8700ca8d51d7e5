"""Client and local server configuration.

Both are plain dataclasses handed to constructors; nothing is read from
the environment.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Literal

from ai_connect.local_server.pages import DEFAULT_ERROR_HTML, DEFAULT_SUCCESS_HTML
from ai_connect.local_server.target import RedirectTarget

ServerMode = Literal["async", "blocking"]

DEFAULT_POLL_INTERVAL = 0.05


def _normalize_path(path: str) -> str:
    if not path:
        return "/"
    if path.startswith("/"):
        return path
    return f"/{path}"


@dataclass
class LocalServerConfig:
    """Settings for the local redirect capture server.

    Attributes:
        host: Interface to bind, usually ``localhost`` or ``127.0.0.1``
        port: TCP port to bind
        path: Callback path; a leading ``/`` is added when missing
        timeout: Seconds to wait for the callback, ``None`` waits forever
        success_html: Page rendered after a code is captured
        error_html: Page rendered for every other response
        mode: ``"async"`` serves through uvicorn on the running event loop,
            ``"blocking"`` runs a socket accept loop
        poll_interval: Seconds between deadline checks in blocking mode.
            Lower values tighten timeout precision at the cost of CPU.
    """

    host: str
    port: int
    path: str = "/"
    timeout: float | None = None
    success_html: str = DEFAULT_SUCCESS_HTML
    error_html: str = DEFAULT_ERROR_HTML
    mode: ServerMode = "async"
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def __post_init__(self) -> None:
        self.path = _normalize_path(self.path)

    @classmethod
    def from_redirect_uri(cls, redirect_uri: str, **kwargs) -> LocalServerConfig:
        """Derive host, port and path from a redirect URI.

        Raises:
            InvalidRedirectURIError: If the URI is not plain http or lacks a host
        """
        target = RedirectTarget.parse(redirect_uri)
        return cls(host=target.host, port=target.port, path=target.path, **kwargs)

    @property
    def redirect_uri(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}{self.path}"


@dataclass
class OAuthClientConfig:
    """Per-client settings for authorization and token requests.

    ``authorize_params`` and ``token_params`` are ordered key/value pairs
    layered over the provider's own extras; on a key collision the values
    here win.
    """

    client_id: str
    redirect_uri: str
    client_secret: str | None = None
    scope: str | None = None
    authorize_params: list[tuple[str, str]] = field(default_factory=list)
    token_params: list[tuple[str, str]] = field(default_factory=list)
    timeout: float | None = None  # HTTP timeout, and listen timeout fallback
    local_server: LocalServerConfig | None = None

    def with_local_server(self, local_server: LocalServerConfig) -> OAuthClientConfig:
        """Return a copy that captures callbacks with the given server.

        The redirect URI is rewritten to point at the server so the
        authorization request and the listener always agree.
        """
        return dataclasses.replace(
            self, redirect_uri=local_server.redirect_uri, local_server=local_server
        )
