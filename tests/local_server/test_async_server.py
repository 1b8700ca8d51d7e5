"""Tests for the cooperative capture server.

Mirrors the blocking server tests: both modes must answer and settle
identically.
"""

import asyncio

import httpx
import pytest

from ai_connect.local_server.async_server import AsyncLocalServer
from ai_connect.local_server.base import ServerState
from ai_connect.local_server.pages import DEFAULT_ERROR_HTML, DEFAULT_SUCCESS_HTML
from ai_connect.local_server.target import RedirectTarget
from ai_connect.models.errors import ListenTimeoutError, URLParseError

LISTEN_TIMEOUT = 5.0


@pytest.fixture
async def http():
    async with httpx.AsyncClient(trust_env=False) as client:
        yield client


def start_listening(server: AsyncLocalServer, timeout: float = LISTEN_TIMEOUT):
    return asyncio.create_task(server.listen(timeout))


async def send_raw_request(port: int, request_target: str) -> bytes:
    """Send a GET with an untouched request target and return the status line."""
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    writer.write(
        f"GET {request_target} HTTP/1.1\r\n"
        "Host: 127.0.0.1\r\n"
        "Connection: close\r\n\r\n".encode("ascii")
    )
    await writer.drain()
    status_line = await reader.readline()
    writer.close()
    await writer.wait_closed()
    return status_line


class TestAsyncLocalServerCapture:
    async def test_captures_valid_callback(self, redirect_uri, http):
        # Arrange
        server = AsyncLocalServer(redirect_uri).bind()
        listen_task = start_listening(server)

        # Act
        reply = await http.get(f"{redirect_uri}?code=abc&state=xyz")
        response = await listen_task

        # Assert
        assert reply.status_code == 200
        assert reply.text == DEFAULT_SUCCESS_HTML
        assert reply.headers["content-type"].startswith("text/html")
        assert response.code == "abc"
        assert response.state == "xyz"
        assert server.state is ServerState.COMPLETED

    async def test_wrong_path_keeps_listening(self, redirect_uri, http):
        # Arrange
        server = AsyncLocalServer(redirect_uri).bind()
        listen_task = start_listening(server)
        base = redirect_uri.rsplit("/", 1)[0]

        # Act
        not_found = await http.get(f"{base}/favicon.ico")
        trailing_slash = await http.get(f"{redirect_uri}/?code=abc")
        reply = await http.get(f"{redirect_uri}?code=abc")
        response = await listen_task

        # Assert
        assert not_found.status_code == 404
        assert not_found.text == DEFAULT_ERROR_HTML
        assert trailing_slash.status_code == 404
        assert reply.status_code == 200
        assert response.code == "abc"

    async def test_missing_code_keeps_listening(self, redirect_uri, http):
        # Arrange
        server = AsyncLocalServer(redirect_uri).bind()
        listen_task = start_listening(server)

        # Act
        bad_request = await http.get(f"{redirect_uri}?error=access_denied")
        state_after_bad_request = server.state
        reply = await http.get(f"{redirect_uri}?code=abc")
        response = await listen_task

        # Assert
        assert bad_request.status_code == 400
        assert bad_request.text == DEFAULT_ERROR_HTML
        assert state_after_bad_request is ServerState.LISTENING
        assert reply.status_code == 200
        assert response.code == "abc"

    @pytest.mark.parametrize("method", ["POST", "HEAD", "PUT"])
    async def test_wrong_method_keeps_listening(self, redirect_uri, http, method):
        # Arrange
        server = AsyncLocalServer(redirect_uri).bind()
        listen_task = start_listening(server)

        # Act
        not_allowed = await http.request(method, f"{redirect_uri}?code=abc")
        reply = await http.get(f"{redirect_uri}?code=def")
        response = await listen_task

        # Assert
        assert not_allowed.status_code == 405
        assert reply.status_code == 200
        assert response.code == "def"

    async def test_percent_encoded_path_is_not_the_callback(
        self, redirect_uri, free_port, http
    ):
        # Arrange
        server = AsyncLocalServer(redirect_uri).bind()
        listen_task = start_listening(server)

        # Act
        status_line = await send_raw_request(free_port, "/call%62ack?code=abc")
        reply = await http.get(f"{redirect_uri}?code=def")
        response = await listen_task

        # Assert
        assert status_line.startswith(b"HTTP/1.1 404")
        assert reply.status_code == 200
        assert response.code == "def"

    async def test_only_first_of_concurrent_callbacks_is_captured(
        self, redirect_uri, http
    ):
        # Arrange
        server = AsyncLocalServer(redirect_uri).bind()
        listen_task = start_listening(server)
        codes = [f"code-{i}" for i in range(5)]

        # Act
        replies = await asyncio.gather(
            *(http.get(redirect_uri, params={"code": code}) for code in codes),
            return_exceptions=True,
        )
        response = await listen_task

        # Assert
        assert all(isinstance(r, (httpx.Response, httpx.HTTPError)) for r in replies)
        answered = {
            code: reply.status_code
            for code, reply in zip(codes, replies)
            if isinstance(reply, httpx.Response)
        }
        assert response.code in codes
        assert answered[response.code] == 200
        assert all(
            status == 409 for code, status in answered.items() if code != response.code
        )
        assert server.state is ServerState.COMPLETED

    async def test_custom_pages(self, redirect_uri, http):
        # Arrange
        server = AsyncLocalServer(
            redirect_uri, success_html="<p>done</p>", error_html="<p>nope</p>"
        ).bind()
        listen_task = start_listening(server)

        # Act
        bad_request = await http.get(redirect_uri)
        reply = await http.get(f"{redirect_uri}?code=abc")
        await listen_task

        # Assert
        assert bad_request.text == "<p>nope</p>"
        assert reply.text == "<p>done</p>"

    async def test_unbuildable_callback_fails_listen(
        self, redirect_uri, http, monkeypatch
    ):
        # Arrange
        def broken(self, query):
            raise URLParseError("broken")

        monkeypatch.setattr(RedirectTarget, "build_callback_url", broken)
        server = AsyncLocalServer(redirect_uri).bind()
        listen_task = start_listening(server)

        # Act
        reply = await http.get(f"{redirect_uri}?code=abc")

        # Assert
        assert reply.status_code == 500
        with pytest.raises(URLParseError):
            await listen_task
        assert server.state is ServerState.FAILED


class TestAsyncLocalServerLifecycle:
    async def test_times_out(self, redirect_uri):
        # Arrange
        server = AsyncLocalServer(redirect_uri).bind()

        # Act & Assert
        with pytest.raises(ListenTimeoutError) as exc_info:
            await server.listen(timeout=0.2)

        assert exc_info.value.timeout == 0.2
        assert server.state is ServerState.TIMED_OUT

    async def test_listen_once_binds_first(self, redirect_uri):
        # Act & Assert
        with pytest.raises(ListenTimeoutError):
            await AsyncLocalServer(redirect_uri, timeout=0.1).listen_once()

    async def test_socket_is_released_after_listen(self, redirect_uri, http):
        # Arrange
        server = AsyncLocalServer(redirect_uri).bind()
        listen_task = start_listening(server)
        await http.get(f"{redirect_uri}?code=abc")
        await listen_task

        # Act
        second = AsyncLocalServer(redirect_uri).bind()

        # Assert
        assert second.state is ServerState.BOUND
        second.close()

    async def test_cancelled_listen_releases_socket(self, redirect_uri):
        # Arrange
        server = AsyncLocalServer(redirect_uri).bind()
        listen_task = start_listening(server)
        await asyncio.sleep(0.2)

        # Act
        listen_task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await listen_task

        # Assert
        assert server.state is ServerState.FAILED
        assert server.address is None

    async def test_listen_requires_bind(self, redirect_uri):
        # Arrange
        server = AsyncLocalServer(redirect_uri)

        # Act & Assert
        with pytest.raises(RuntimeError):
            await server.listen(timeout=0.1)
