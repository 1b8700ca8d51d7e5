"""Callback request handling shared by both capture server modes.

Decides, for one inbound request, which status to answer with and whether
the request resolves the listen call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from http import HTTPStatus
from urllib.parse import urlsplit

from ai_connect.local_server.target import RedirectTarget
from ai_connect.models.errors import MissingAuthorizationCodeError, OAuth2Error
from ai_connect.models.flow import AuthorizationResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallbackOutcome:
    """Result of handling one request.

    Exactly one of ``response`` and ``error`` is set for a terminal
    outcome; neither is set when the server should keep listening.
    """

    status: HTTPStatus
    response: AuthorizationResponse | None = None
    error: OAuth2Error | None = None

    @property
    def is_terminal(self) -> bool:
        return self.response is not None or self.error is not None


def split_request_target(request_target: str) -> tuple[str, str]:
    """Split an HTTP request target into path and raw query.

    Handles origin-form (``/callback?code=x``) and absolute-form
    (``http://localhost:8765/callback?code=x``) targets.
    """
    if "://" in request_target:
        parsed = urlsplit(request_target)
        return parsed.path or "/", parsed.query

    path, _, query = request_target.partition("?")
    return path, query


def resolve_callback(target: RedirectTarget, query: str) -> CallbackOutcome:
    """Turn the query of a request on the callback path into an outcome.

    - ``code`` present: 200 and a response
    - ``code`` missing: 400, keep listening
    - callback URL cannot be rebuilt: 500 and a terminal error
    """
    try:
        callback_url = target.build_callback_url(query)
        response = AuthorizationResponse.from_url(callback_url)
    except MissingAuthorizationCodeError:
        logger.warning("Callback request missing authorization code")
        return CallbackOutcome(HTTPStatus.BAD_REQUEST)
    except OAuth2Error as e:
        logger.error(f"Failed to process callback request: {e}")
        return CallbackOutcome(HTTPStatus.INTERNAL_SERVER_ERROR, error=e)

    logger.info("Received authorization callback with code")
    return CallbackOutcome(HTTPStatus.OK, response=response)


def route_request(
    target: RedirectTarget, method: str, request_target: str
) -> CallbackOutcome:
    """Route a parsed request line the way the callback endpoint expects.

    Wrong method and wrong path are answered and ignored; they are not
    flow errors.
    """
    if method != "GET":
        logger.warning(f"Rejected {method} request on local server")
        return CallbackOutcome(HTTPStatus.METHOD_NOT_ALLOWED)

    path, query = split_request_target(request_target)
    if path != target.path:
        logger.warning(f"Rejected request for unknown path {path}")
        return CallbackOutcome(HTTPStatus.NOT_FOUND)

    return resolve_callback(target, query)
