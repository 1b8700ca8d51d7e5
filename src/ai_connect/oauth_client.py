"""Complete OAuth 2.0 + PKCE client orchestration.

Coordinates PKCE generation, authorization URL construction, redirect
capture and token exchange to provide a complete authorization code flow
against one provider.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Self

import httpx

from ai_connect.local_server.async_server import AsyncLocalServer
from ai_connect.local_server.server import LocalServer
from ai_connect.models.config import LocalServerConfig, OAuthClientConfig
from ai_connect.models.flow import AuthorizationRequest, AuthorizationResponse
from ai_connect.models.tokens import TokenResponse
from ai_connect.primitives.pkce import PKCEGenerator
from ai_connect.providers.base import OAuthProvider
from ai_connect.services.authorization import AuthorizationURLBuilder
from ai_connect.services.tokens import TokenExchangeClient

logger = logging.getLogger(__name__)

AuthorizeCallback = Callable[[AuthorizationRequest], Awaitable[None] | None]


class OAuthClient:
    """OAuth 2.0 authorization code client with PKCE for one provider.

    Orchestrates the full flow, ``authorize -> present to user -> capture
    -> exchange``, and also exposes the exchange and refresh steps for
    callers that capture the redirect another way.

    Example:
        provider = AnthropicProvider()
        config = OAuthClientConfig(
            client_id=AnthropicProvider.DEFAULT_CLIENT_ID,
            redirect_uri=AnthropicProvider.DEFAULT_REDIRECT_URI,
        )
        async with OAuthClient(provider, config) as client:
            tokens = await client.run_local_flow(
                lambda auth: webbrowser.open(auth.authorization_url)
            )
    """

    def __init__(
        self,
        provider: OAuthProvider,
        config: OAuthClientConfig,
        http_client: httpx.AsyncClient | None = None,
        pkce_generator: PKCEGenerator | None = None,
    ):
        """Initialize OAuth client.

        Args:
            provider: Provider to authenticate against
            config: Client configuration
            http_client: Optional HTTP client for token requests
            pkce_generator: Optional PKCE generator
        """
        self.provider = provider
        self.config = config

        # Initialize service components
        self.url_builder = AuthorizationURLBuilder(provider, config, pkce_generator)
        self.token_client = TokenExchangeClient(provider, config, http_client)

    def authorization_url(self, state: str | None = None) -> AuthorizationRequest:
        """Build an authorization request with a fresh PKCE pair.

        Args:
            state: Explicit state; defaults to the PKCE verifier

        Raises:
            RandomSourceError: If PKCE generation fails
            URLParseError: If the provider's authorize URL is malformed
        """
        return self.url_builder.start(state=state)

    async def run_local_flow(self, on_authorize: AuthorizeCallback) -> TokenResponse:
        """Run the complete flow with a local redirect capture server.

        1. Build the authorization request
        2. Bind the local server
        3. Present the URL to the user via ``on_authorize``
        4. Wait for the callback
        5. Exchange the code for tokens

        Args:
            on_authorize: Called with the authorization request once the
                listener is bound; may be sync or async. Any exception it
                raises aborts the flow after the listener is closed.

        Returns:
            TokenResponse: Tokens issued by the provider

        Raises:
            OAuth2Error: The single terminal error of the flow
        """
        auth = self.authorization_url()
        server_config = self.config.local_server or LocalServerConfig.from_redirect_uri(
            self.config.redirect_uri
        )
        timeout = (
            server_config.timeout
            if server_config.timeout is not None
            else self.config.timeout
        )

        logger.info(f"Starting {self.provider.id} authorization flow")

        if server_config.mode == "blocking":
            server = LocalServer.from_config(server_config)
        else:
            server = AsyncLocalServer.from_config(server_config)
        server.bind()

        try:
            logger.debug("Presenting authorization URL to user")
            result = on_authorize(auth)
            if inspect.isawaitable(result):
                await result
        except BaseException:
            server.close()
            raise

        if isinstance(server, AsyncLocalServer):
            response = await server.listen(timeout)
        else:
            response = await asyncio.to_thread(server.listen, timeout)

        logger.debug("Exchanging authorization code for tokens")
        return await self.exchange_code(
            response, auth.pkce.code_verifier, expected_state=auth.state
        )

    async def exchange_code(
        self,
        response: AuthorizationResponse,
        code_verifier: str,
        expected_state: str | None = None,
    ) -> TokenResponse:
        """Exchange a captured authorization code for tokens."""
        return await self.token_client.exchange_code(
            response, code_verifier, expected_state
        )

    async def exchange_callback_url(
        self,
        callback_url: str,
        code_verifier: str,
        expected_state: str | None = None,
    ) -> TokenResponse:
        """Exchange the code carried by a pasted callback URL.

        Raises:
            URLParseError: If the URL is malformed
            MissingAuthorizationCodeError: If the URL carries no code
        """
        response = AuthorizationResponse.from_url(callback_url)
        return await self.exchange_code(response, code_verifier, expected_state)

    async def refresh_token(self, refresh_token: str) -> TokenResponse:
        """Obtain a new access token from a refresh token."""
        return await self.token_client.refresh_token(refresh_token)

    async def close(self) -> None:
        """Close all service connections."""
        await self.token_client.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
        return None
