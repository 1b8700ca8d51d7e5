"""Blocking redirect capture server.

Parks the calling thread on ``accept``/``recv`` on a plain socket. Only
the request line is parsed; headers are drained but never parsed. With a
timeout the listening socket is switched to non-blocking mode and polled
every ``poll_interval`` seconds, so the deadline is missed by at most one
interval.
"""

from __future__ import annotations

import logging
import socket
import time
from http import HTTPStatus

from ai_connect.local_server.base import BaseLocalServer
from ai_connect.local_server.callback import CallbackOutcome, route_request
from ai_connect.models.errors import ListenTimeoutError, LocalIOError
from ai_connect.models.flow import AuthorizationResponse

logger = logging.getLogger(__name__)

MAX_REQUEST_HEAD = 8192


def _render(status: HTTPStatus, body: str) -> bytes:
    payload = body.encode("utf-8")
    head = (
        f"HTTP/1.1 {status.value} {status.phrase}\r\n"
        "Content-Type: text/html; charset=utf-8\r\n"
        f"Content-Length: {len(payload)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    return head.encode("ascii") + payload


class LocalServer(BaseLocalServer):
    """Capture one authorization callback on a blocking socket.

    Example:
        server = LocalServer("http://localhost:8765/callback").bind()
        open_browser(auth.authorization_url)
        response = server.listen(timeout=120)
    """

    def listen(self, timeout: float | None = None) -> AuthorizationResponse:
        """Accept connections until a valid callback arrives or time runs out.

        Args:
            timeout: Seconds to wait; defaults to the server's timeout,
                ``None`` waits forever

        Returns:
            AuthorizationResponse: The first valid callback

        Raises:
            ListenTimeoutError: If no valid callback arrived in time
            LocalIOError: If accepting, reading or writing fails
            URLParseError: If the callback URL could not be rebuilt
            RuntimeError: If the server is not BOUND
        """
        sock = self._begin_listening()
        timeout = self._resolve_timeout(timeout)
        deadline = None if timeout is None else time.monotonic() + timeout

        logger.info(f"Waiting for authorization callback on {self.target.redirect_uri}")
        try:
            sock.setblocking(deadline is None)
            self._accept_loop(sock, deadline, timeout)
        finally:
            self.close()

        return self._finish()

    def listen_once(self, timeout: float | None = None) -> AuthorizationResponse:
        """Bind, then listen."""
        self.bind()
        return self.listen(timeout)

    def _accept_loop(
        self, sock: socket.socket, deadline: float | None, timeout: float | None
    ) -> None:
        while not self._slot.is_set:
            if deadline is not None and time.monotonic() >= deadline:
                self._slot.fail(ListenTimeoutError(timeout))
                return

            try:
                conn, _ = sock.accept()
            except BlockingIOError:
                remaining = deadline - time.monotonic()
                time.sleep(max(0.0, min(self.poll_interval, remaining)))
                continue
            except OSError as e:
                self._slot.fail(LocalIOError(f"Failed to accept connection: {e}"))
                return

            with conn:
                self._handle_connection(conn, deadline, timeout)

    def _handle_connection(
        self, conn: socket.socket, deadline: float | None, timeout: float | None
    ) -> None:
        if deadline is None:
            conn.settimeout(None)
        else:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            conn.settimeout(remaining)

        try:
            request_line = self._read_request_line(conn)
        except TimeoutError:
            # Deadline passed mid-read; the loop reports the timeout
            return
        except OSError as e:
            self._slot.fail(LocalIOError(f"Failed to read request: {e}"))
            return

        if request_line is None:
            return

        outcome = self._route(request_line)
        html = self.success_html if outcome.status is HTTPStatus.OK else self.error_html
        try:
            conn.sendall(_render(outcome.status, html))
        except OSError as e:
            self._slot.fail(LocalIOError(f"Failed to write response: {e}"))
            return

        if outcome.response is not None:
            self._slot.send(outcome.response)
        elif outcome.error is not None:
            self._slot.fail(outcome.error)

    def _read_request_line(self, conn: socket.socket) -> str | None:
        """Read the request head and return its first line.

        Header lines are consumed so the socket closes without unread
        input, but never parsed. Returns None when the peer closed without
        sending anything.
        """
        buffer = b""
        while b"\r\n\r\n" not in buffer and len(buffer) < MAX_REQUEST_HEAD:
            chunk = conn.recv(MAX_REQUEST_HEAD - len(buffer))
            if not chunk:
                break
            buffer += chunk

        if not buffer:
            return None

        line = buffer.split(b"\n", 1)[0].rstrip(b"\r")
        return line.decode("utf-8", errors="replace")

    def _route(self, request_line: str) -> CallbackOutcome:
        parts = request_line.split()
        if not parts:
            return CallbackOutcome(HTTPStatus.BAD_REQUEST)

        method = parts[0]
        request_target = parts[1] if len(parts) > 1 else ""
        return route_request(self.target, method, request_target)
