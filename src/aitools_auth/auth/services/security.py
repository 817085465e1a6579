"""CSRF state generation and validation for the authorization code flow."""

from __future__ import annotations

import secrets
import string

from aitools_auth.auth.models.errors import StateValidationError


def generate_state() -> str:
    """Generate a cryptographically secure state parameter.

    Returns:
        Random URL-safe state string (32 characters)
    """
    alphabet = string.ascii_letters + string.digits + "-._~"
    return "".join(secrets.choice(alphabet) for _ in range(32))


def validate_state(expected: str, actual: str | None) -> None:
    """Validate the callback state matches the one sent in the request.

    Raises:
        StateValidationError: If the state is missing or doesn't match
    """
    if actual is None:
        raise StateValidationError(
            "Authorization callback missing required state parameter"
        )
    if not secrets.compare_digest(expected.encode(), actual.encode()):
        raise StateValidationError(
            "CSRF state mismatch - possible security issue. Please try again."
        )
