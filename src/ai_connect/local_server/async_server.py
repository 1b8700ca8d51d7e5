"""Cooperative redirect capture server.

Serves a Starlette app through uvicorn on the socket reserved by
``bind()``. Every request goes through the same routing as the blocking
server and the handler feeds the completion slot; ``listen`` races
the slot against the deadline and then asks uvicorn for a graceful
shutdown, awaiting it so no listener or task outlives the call.
"""

from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Mount, request_response

from ai_connect.local_server.base import BaseLocalServer
from ai_connect.local_server.callback import route_request
from ai_connect.models.errors import ListenTimeoutError, LocalIOError
from ai_connect.models.flow import AuthorizationResponse

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 2.0
STARTUP_POLL_INTERVAL = 0.01


class AsyncLocalServer(BaseLocalServer):
    """Capture one authorization callback on the running event loop.

    Behaves exactly like :class:`LocalServer`: 405 for other methods, 404
    for other paths, 400 for a callback without ``code``, and the first
    valid callback wins. A valid callback that was already accepted when
    the flow resolved gets 409 and the error page; its code is dropped.
    """

    def _create_app(self) -> Starlette:
        """Create the Starlette application that answers every request."""
        routes = [
            Mount("", app=request_response(self._handle_request)),
        ]
        return Starlette(routes=routes)

    def _page(self, status: HTTPStatus) -> HTMLResponse:
        html = self.success_html if status is HTTPStatus.OK else self.error_html
        return HTMLResponse(html, status_code=status.value, headers={"Connection": "close"})

    async def _handle_request(self, request: Request) -> Response:
        # Match on the raw target, as the blocking server does; Starlette's
        # own routing would see the percent-decoded path
        raw_path = request.scope.get("raw_path") or request.scope["path"].encode("utf-8")
        request_target = raw_path.decode("utf-8", errors="replace")
        query = request.scope["query_string"].decode("utf-8", errors="replace")
        if query:
            request_target = f"{request_target}?{query}"

        outcome = route_request(self.target, request.method, request_target)
        if outcome.response is not None and not self._slot.send(outcome.response):
            logger.warning("Ignored authorization callback after the flow resolved")
            return self._page(HTTPStatus.CONFLICT)
        if outcome.error is not None:
            self._slot.fail(outcome.error)

        return self._page(outcome.status)

    async def listen(self, timeout: float | None = None) -> AuthorizationResponse:
        """Serve until a valid callback arrives or time runs out.

        Args:
            timeout: Seconds to wait; defaults to the server's timeout,
                ``None`` waits forever

        Returns:
            AuthorizationResponse: The first valid callback

        Raises:
            ListenTimeoutError: If no valid callback arrived in time
            LocalIOError: If the HTTP server stopped unexpectedly
            URLParseError: If the callback URL could not be rebuilt
            RuntimeError: If the server is not BOUND
        """
        sock = self._begin_listening()
        timeout = self._resolve_timeout(timeout)

        config = uvicorn.Config(
            app=self._create_app(),
            log_config=None,
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=SHUTDOWN_TIMEOUT,
        )
        server = uvicorn.Server(config)
        serve_task = asyncio.create_task(server.serve(sockets=[sock]))
        completion = self._slot.wait()
        # The outcome is read back through the slot, not this future
        completion.add_done_callback(lambda f: f.cancelled() or f.exception())

        logger.info(f"Waiting for authorization callback on {self.target.redirect_uri}")
        try:
            done, _ = await asyncio.wait(
                {completion, serve_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if not done:
                self._slot.fail(ListenTimeoutError(timeout))
        finally:
            await self._shutdown(server, serve_task)
            self.close()

        return self._finish()

    async def listen_once(self, timeout: float | None = None) -> AuthorizationResponse:
        """Bind, then listen."""
        self.bind()
        return await self.listen(timeout)

    async def _shutdown(self, server: uvicorn.Server, serve_task: asyncio.Task) -> None:
        # uvicorn skips its shutdown sequence if told to exit mid-startup
        while not server.started and not serve_task.done():
            await asyncio.sleep(STARTUP_POLL_INTERVAL)
        server.should_exit = True
        try:
            await serve_task
        except Exception as e:
            logger.error(f"Local HTTP server failed: {e}")
            self._slot.fail(LocalIOError(f"Local HTTP server failed: {e}"))
