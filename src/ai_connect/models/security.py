"""Security-related models for OAuth authentication.

Contains the PKCE pair shared between the authorization request and the
later token exchange.
"""

from __future__ import annotations

from dataclasses import dataclass

CODE_CHALLENGE_METHOD = "S256"


@dataclass(frozen=True)
class PKCEPair:
    """PKCE (Proof Key for Code Exchange) verifier and its S256 challenge.

    Immutable and created once per authorization attempt (RFC 7636).
    The verifier stays with the client; only the challenge is sent with
    the authorization request.
    """

    code_verifier: str
    code_challenge: str

    @property
    def code_challenge_method(self) -> str:
        return CODE_CHALLENGE_METHOD
