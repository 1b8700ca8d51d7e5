"""PKCE (Proof Key for Code Exchange) generator.

Implements RFC 7636 S256 parameter generation to prevent authorization
code interception attacks. PKCE is what lets a public client complete the
authorization code grant without a client secret.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

from ai_connect.models.errors import RandomSourceError
from ai_connect.models.security import PKCEPair

VERIFIER_BYTES = 32


def _b64url_nopad(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


class PKCEGenerator:
    """Generates PKCE verifier/challenge pairs.

    - Verifiers are 32 random bytes from the OS source, base64url encoded
      without padding (43 characters)
    - Challenges are base64url(SHA256(verifier)) without padding
    - Neither value contains ``=``, ``+`` or ``/``
    """

    def generate(self) -> PKCEPair:
        """Generate a new PKCE pair for an authorization attempt.

        Returns:
            PKCEPair: Fresh verifier and its S256 challenge

        Raises:
            RandomSourceError: If the OS random source is unavailable
        """
        try:
            random_bytes = secrets.token_bytes(VERIFIER_BYTES)
        except (OSError, NotImplementedError) as e:
            raise RandomSourceError(f"OS random source unavailable: {e}") from e

        return self.from_verifier(_b64url_nopad(random_bytes))

    @staticmethod
    def from_verifier(code_verifier: str) -> PKCEPair:
        """Rebuild a PKCE pair from a known verifier.

        Deterministic; used to replay a flow or in tests.
        """
        digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
        return PKCEPair(
            code_verifier=code_verifier, code_challenge=_b64url_nopad(digest)
        )
