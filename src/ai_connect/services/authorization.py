"""Authorization URL construction.

Merges provider defaults, caller overrides and the PKCE/state fields into
the URL the user visits to grant access.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ai_connect.models.config import OAuthClientConfig
from ai_connect.models.errors import URLParseError
from ai_connect.models.flow import AuthorizationRequest
from ai_connect.models.security import PKCEPair
from ai_connect.primitives.pkce import PKCEGenerator
from ai_connect.providers.base import OAuthProvider

logger = logging.getLogger(__name__)


class AuthorizationURLBuilder:
    """Builds authorization requests for one provider and client config.

    Parameter precedence, lowest to highest:
    1. Query already present on the provider's authorize URL
    2. Provider extra authorize parameters
    3. Config extra authorize parameters
    4. Protocol fields (response_type, client_id, redirect_uri, scope,
       code_challenge, code_challenge_method, state)
    """

    def __init__(
        self,
        provider: OAuthProvider,
        config: OAuthClientConfig,
        pkce_generator: PKCEGenerator | None = None,
    ):
        self.provider = provider
        self.config = config
        self._pkce_generator = pkce_generator or PKCEGenerator()

    def start(self, state: str | None = None) -> AuthorizationRequest:
        """Generate a fresh PKCE pair and build the authorization request.

        Raises:
            RandomSourceError: If PKCE generation fails
            URLParseError: If the provider's authorize URL is malformed
        """
        return self.build(self._pkce_generator.generate(), state=state)

    def build(self, pkce: PKCEPair, state: str | None = None) -> AuthorizationRequest:
        """Build the authorization request for an existing PKCE pair.

        Args:
            pkce: PKCE pair for this attempt
            state: Explicit state; defaults to the PKCE verifier so callers
                that do not track state still get CSRF protection

        Returns:
            AuthorizationRequest: URL plus the values needed at exchange time

        Raises:
            URLParseError: If the provider's authorize URL is malformed
        """
        resolved_state = state if state is not None else pkce.code_verifier
        scope = (
            self.config.scope
            if self.config.scope is not None
            else self.provider.default_scope
        )

        base = self._parse_authorize_url()

        params: dict[str, str] = dict(parse_qsl(base.query, keep_blank_values=True))
        params.update(self.provider.authorize_params())
        params.update(self.config.authorize_params)
        params.update(
            {
                "response_type": "code",
                "client_id": self.config.client_id,
                "redirect_uri": self.config.redirect_uri,
                "scope": scope,
                "code_challenge": pkce.code_challenge,
                "code_challenge_method": pkce.code_challenge_method,
                "state": resolved_state,
            }
        )

        authorization_url = urlunsplit(base._replace(query=urlencode(params)))

        logger.info(
            f"Built authorization URL for provider {self.provider.id} "
            f"and client {self.config.client_id}"
        )

        return AuthorizationRequest(
            authorization_url=authorization_url,
            pkce=pkce,
            state=resolved_state,
            scope=scope,
        )

    def _parse_authorize_url(self):
        authorize_url = self.provider.authorize_url
        try:
            parsed = urlsplit(authorize_url)
        except ValueError as e:
            raise URLParseError(f"Invalid authorize URL {authorize_url}: {e}") from e

        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise URLParseError(f"Invalid authorize URL: {authorize_url}")
        return parsed
