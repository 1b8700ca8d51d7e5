"""Single-shot completion slot shared by a listener and its deadline.

The accept loop (or request handler) and the timeout both try to resolve
one listen call. Whichever writes first wins; later writes are no-ops.
"""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import Future

from ai_connect.models.flow import AuthorizationResponse


class CompletionSlot:
    """One-shot channel carrying a response or a terminal error.

    Backed by a ``concurrent.futures.Future`` so a blocking listener can
    wait on it from a thread and a cooperative listener can await it on an
    event loop. Writes are serialized by a lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._future: Future[AuthorizationResponse] = Future()

    @property
    def is_set(self) -> bool:
        return self._future.done()

    def send(self, response: AuthorizationResponse) -> bool:
        """Deliver a response. Returns False if the slot was already filled."""
        with self._lock:
            if self._future.done():
                return False
            self._future.set_result(response)
            return True

    def fail(self, error: BaseException) -> bool:
        """Deliver a terminal error. Returns False if the slot was already filled."""
        with self._lock:
            if self._future.done():
                return False
            self._future.set_exception(error)
            return True

    def result(self, timeout: float | None = None) -> AuthorizationResponse:
        """Block until the slot is filled, then return or raise its value."""
        return self._future.result(timeout)

    def wait(self) -> asyncio.Future[AuthorizationResponse]:
        """Awaitable view of the slot for the running event loop."""
        return asyncio.wrap_future(self._future)
