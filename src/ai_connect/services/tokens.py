"""OAuth token exchange and refresh service.

Implements the RFC 6749 token endpoint interactions used by the
authorization code grant with PKCE (RFC 7636): exchanging a captured code
for tokens and refreshing an access token. Both operations share one
request path so provider and caller overlays are applied identically.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx
from pydantic import ValidationError

from ai_connect.models.config import OAuthClientConfig
from ai_connect.models.errors import (
    HTTPStatusError,
    HTTPTransportError,
    InvalidHeaderError,
    InvalidResponseBodyError,
    StateMismatchError,
)
from ai_connect.models.flow import AuthorizationResponse
from ai_connect.models.tokens import TokenResponse
from ai_connect.providers.base import OAuthProvider, TokenRequestFormat

logger = logging.getLogger(__name__)

# RFC 9110 field-name token characters
_HEADER_NAME = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_HEADER_VALUE_FORBIDDEN = re.compile(r"[\x00\r\n]")


def _validate_headers(headers: list[tuple[str, str]]) -> dict[str, str]:
    validated: dict[str, str] = {}
    for name, value in headers:
        if not _HEADER_NAME.match(name):
            raise InvalidHeaderError(name, value)
        if _HEADER_VALUE_FORBIDDEN.search(value) or not value.isascii():
            raise InvalidHeaderError(name, value)
        validated[name] = value
    return validated


class TokenExchangeClient:
    """Talks to a provider's token endpoint.

    Handles:
    - Authorization code to token exchange (RFC 6749 Section 4.1.3)
    - Access token refresh (RFC 6749 Section 6)
    - State verification before a code is spent
    - JSON or form request bodies, per provider
    """

    def __init__(
        self,
        provider: OAuthProvider,
        config: OAuthClientConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the token client.

        Args:
            provider: Provider whose token endpoint is called
            config: Client configuration (client id, secret, overlays)
            http_client: Optional client to use instead of an owned one;
                the caller keeps ownership of an injected client
        """
        self.provider = provider
        self.config = config
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=config.timeout)

    async def exchange_code(
        self,
        response: AuthorizationResponse,
        code_verifier: str,
        expected_state: str | None = None,
    ) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Args:
            response: Captured authorization response
            code_verifier: PKCE verifier from the matching authorization request
            expected_state: State sent with the authorization request

        Returns:
            TokenResponse: Tokens issued by the provider

        Raises:
            StateMismatchError: If both states are present and differ
            TokenError: If the token request fails (see ``_send_token_request``)
        """
        if (
            expected_state is not None
            and response.state is not None
            and expected_state != response.state
        ):
            raise StateMismatchError(expected_state, response.state)

        payload: dict[str, str] = {
            "grant_type": "authorization_code",
            "code": response.code,
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "code_verifier": code_verifier,
        }
        if self.config.client_secret is not None:
            payload["client_secret"] = self.config.client_secret

        state = response.state if response.state is not None else expected_state
        if state is not None:
            payload["state"] = state

        logger.debug(f"Exchanging authorization code at {self.provider.token_url}")
        return await self._send_token_request(payload)

    async def refresh_token(self, refresh_token: str) -> TokenResponse:
        """Refresh an access token using a refresh token.

        Raises:
            TokenError: If the token request fails (see ``_send_token_request``)
        """
        payload: dict[str, str] = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.config.client_id,
        }
        if self.config.client_secret is not None:
            payload["client_secret"] = self.config.client_secret

        logger.debug(f"Refreshing access token at {self.provider.token_url}")
        return await self._send_token_request(payload)

    async def _send_token_request(self, payload: dict[str, str]) -> TokenResponse:
        """Apply overlays, POST the request and decode the response.

        Raises:
            InvalidHeaderError: If a provider header cannot be sent
            HTTPTransportError: If no response is received
            HTTPStatusError: If the endpoint answers with a non-2xx status
            InvalidResponseBodyError: If a 2xx body is not a token response
        """
        payload.update(self.provider.token_params())
        payload.update(self.config.token_params)

        headers = _validate_headers(self.provider.token_headers())
        request_format = self.provider.token_request_format

        # Log request details (without sensitive data)
        logger.debug(
            f"Token request: grant_type={payload['grant_type']}, "
            f"client_id={payload['client_id']}, format={request_format.value}"
        )

        body_kwargs: dict[str, Any]
        if request_format is TokenRequestFormat.FORM:
            body_kwargs = {"data": payload}
        else:
            body_kwargs = {"json": payload}

        try:
            response = await self._http_client.post(
                self.provider.token_url, headers=headers, **body_kwargs
            )
        except httpx.HTTPError as e:
            raise HTTPTransportError(f"HTTP error during token request: {e}") from e

        return self._parse_token_response(response)

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse:
        body = response.text

        if not response.is_success:
            logger.warning(
                f"Token request to {self.provider.token_url} failed "
                f"with {response.status_code}"
            )
            raise HTTPStatusError(response.status_code, body)

        try:
            token = TokenResponse.model_validate_json(body)
        except ValidationError as e:
            raise InvalidResponseBodyError(str(e), body) from e

        logger.info("Token exchange successful")
        return token

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http_client.aclose()
