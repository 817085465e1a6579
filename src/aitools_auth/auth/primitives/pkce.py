"""PKCE (Proof Key for Code Exchange) generation for the interactive flow.

Implements RFC 7636 parameter generation to prevent authorization code
interception when the redirect lands on a loopback listener.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string
from dataclasses import dataclass

VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"
VERIFIER_LENGTH = 128


def compute_challenge(code_verifier: str) -> str:
    """BASE64URL-ENCODE(SHA256(ASCII(code_verifier))) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


@dataclass(frozen=True)
class PKCEParameters:
    """Verifier/challenge pair for one interactive attempt.

    The verifier is only sent with the code exchange, so it is masked in
    ``repr`` and never reaches the logs.
    """

    code_verifier: str

    def __post_init__(self) -> None:
        if not (43 <= len(self.code_verifier) <= 128):
            raise ValueError("code_verifier must be 43-128 characters")
        if any(c not in VERIFIER_ALPHABET for c in self.code_verifier):
            raise ValueError("code_verifier contains characters outside RFC 7636")

    @property
    def code_challenge(self) -> str:
        return compute_challenge(self.code_verifier)

    @property
    def code_challenge_method(self) -> str:
        return "S256"

    def __repr__(self) -> str:
        return (
            f"PKCEParameters(code_verifier='{self.code_verifier[:4]}...', "
            f"code_challenge='{self.code_challenge}')"
        )


class PKCEManager:
    """Generates PKCE parameters for authorization code flows.

    - Uses the S256 code challenge method (SHA256 + base64url)
    - Generates cryptographically secure code verifiers
    """

    compute_challenge = staticmethod(compute_challenge)

    def generate_parameters(self) -> PKCEParameters:
        """Generate a fresh 128-character verifier.

        RFC 7636 Section 4.1 allows 43-128 unreserved characters:
            [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~"
        """
        code_verifier = "".join(
            secrets.choice(VERIFIER_ALPHABET) for _ in range(VERIFIER_LENGTH)
        )
        return PKCEParameters(code_verifier)
