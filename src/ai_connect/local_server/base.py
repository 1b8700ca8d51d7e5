"""Lifecycle shared by the blocking and cooperative capture servers.

A capture server moves through ``IDLE -> BOUND -> LISTENING`` and ends in
exactly one of ``COMPLETED``, ``FAILED`` or ``TIMED_OUT``. Servers are
single use: a finished server cannot listen again.
"""

from __future__ import annotations

import logging
import socket
import threading
from enum import Enum
from typing import Self

from ai_connect.local_server.completion import CompletionSlot
from ai_connect.local_server.pages import DEFAULT_ERROR_HTML, DEFAULT_SUCCESS_HTML
from ai_connect.local_server.target import RedirectTarget
from ai_connect.models.config import DEFAULT_POLL_INTERVAL, LocalServerConfig
from ai_connect.models.errors import (
    ListenTimeoutError,
    LocalIOError,
)
from ai_connect.models.flow import AuthorizationResponse

logger = logging.getLogger(__name__)

LISTEN_BACKLOG = 16


class ServerState(Enum):
    IDLE = "idle"
    BOUND = "bound"
    LISTENING = "listening"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class BaseLocalServer:
    """Binds the redirect target and tracks the listener state machine.

    Subclasses implement ``listen``: call ``_begin_listening``, run until
    the completion slot is filled, ``close`` in a ``finally`` block, then
    return ``_finish()``.
    """

    def __init__(
        self,
        redirect_uri: str,
        *,
        timeout: float | None = None,
        success_html: str = DEFAULT_SUCCESS_HTML,
        error_html: str = DEFAULT_ERROR_HTML,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        """Initialize the server for a redirect URI.

        Args:
            redirect_uri: ``http`` URI the provider redirects to
            timeout: Default seconds ``listen`` waits for a callback
            success_html: Page served once a code is captured
            error_html: Page served for every other response
            poll_interval: Seconds between deadline checks in blocking mode

        Raises:
            InvalidRedirectURIError: If the URI is not plain http or lacks a host
            URLParseError: If the URI is malformed
        """
        self.target = RedirectTarget.parse(redirect_uri)
        self.timeout = timeout
        self.success_html = success_html
        self.error_html = error_html
        self.poll_interval = poll_interval

        self._state = ServerState.IDLE
        self._state_lock = threading.Lock()
        self._slot = CompletionSlot()
        self._socket: socket.socket | None = None
        self._closed = False
        self._effective_timeout: float | None = None

    @classmethod
    def from_config(cls, config: LocalServerConfig) -> Self:
        return cls(
            config.redirect_uri,
            timeout=config.timeout,
            success_html=config.success_html,
            error_html=config.error_html,
            poll_interval=config.poll_interval,
        )

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def address(self) -> tuple[str, int] | None:
        """Bound (host, port), or None before ``bind``."""
        if self._socket is None:
            return None
        host, port = self._socket.getsockname()[:2]
        return host, port

    def bind(self) -> Self:
        """Reserve the redirect target's host and port.

        Returns:
            The server itself, now BOUND

        Raises:
            LocalIOError: If the port is in use, not permitted, or the
                host does not resolve
            RuntimeError: If the server is not IDLE
        """
        with self._state_lock:
            if self._state is not ServerState.IDLE or self._closed:
                raise RuntimeError(f"Cannot bind a server in state {self._state.value}")

            host, port = self.target.host, self.target.port
            try:
                self._socket = self._create_socket(host, port)
            except OSError as e:
                raise LocalIOError(f"Failed to bind {host}:{port}: {e}") from e

            self._state = ServerState.BOUND

        logger.debug(f"Local server bound to {self.target.netloc}")
        return self

    def close(self) -> None:
        """Release the listening socket. Safe to call more than once."""
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            sock, self._socket = self._socket, None
            if (
                self._state in (ServerState.BOUND, ServerState.LISTENING)
                and not self._slot.is_set
            ):
                self._state = ServerState.FAILED

        if sock is not None:
            sock.close()
            logger.debug(f"Local server on {self.target.netloc} closed")

    def _create_socket(self, host: str, port: int) -> socket.socket:
        last_error: OSError | None = None
        for family, _, _, _, sockaddr in socket.getaddrinfo(
            host, port, type=socket.SOCK_STREAM
        ):
            try:
                return socket.create_server(
                    sockaddr[:2], family=family, backlog=LISTEN_BACKLOG
                )
            except OSError as e:
                last_error = e
        raise last_error or OSError(f"No address found for {host}")

    def _begin_listening(self) -> socket.socket:
        with self._state_lock:
            if self._state is not ServerState.BOUND or self._socket is None:
                raise RuntimeError(
                    f"Cannot listen on a server in state {self._state.value}"
                )
            self._state = ServerState.LISTENING
            return self._socket

    def _finish(self) -> AuthorizationResponse:
        """Settle the terminal state from the slot once the listener is down."""
        if not self._slot.is_set:
            self._slot.fail(LocalIOError("Local server stopped before a callback"))

        try:
            response = self._slot.result(timeout=0)
        except ListenTimeoutError:
            self._state = ServerState.TIMED_OUT
            logger.warning(f"Local server timed out after {self._effective_timeout}s")
            raise
        except BaseException:
            self._state = ServerState.FAILED
            raise

        self._state = ServerState.COMPLETED
        return response

    def _resolve_timeout(self, timeout: float | None) -> float | None:
        self._effective_timeout = timeout if timeout is not None else self.timeout
        return self._effective_timeout
