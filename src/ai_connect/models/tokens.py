"""Token response model.

The provider's token endpoint returns a JSON object with a handful of
standard fields (RFC 6749 Section 5.1) and, frequently, provider-specific
extras such as ``id_token`` or ``account``. Extras are kept so callers can
persist the response unchanged.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, NonNegativeInt


class TokenResponse(BaseModel):
    """Successful OAuth token response.

    Fields outside the standard schema are preserved and serialized back
    at the top level by ``model_dump`` and ``model_dump_json``.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str
    refresh_token: str | None = None
    token_type: str | None = None
    scope: str | None = None
    expires_in: NonNegativeInt | None = None  # Seconds until expiry

    @property
    def extra(self) -> dict[str, Any]:
        """Fields returned by the provider that are not part of the schema."""
        return dict(self.model_extra or {})

    def calculate_expires_at(self) -> float | None:
        """Calculate absolute expiry timestamp from expires_in.

        Returns:
            Unix timestamp when token expires, or None if no expiry
        """
        if self.expires_in is None:
            return None
        return time.time() + self.expires_in
