"""Exception hierarchy for credential acquisition failures.

Every error carries the process exit status the CLI dispatcher should use and
an optional hint with method-specific guidance for the operator.
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit statuses shared by every command."""

    SUCCESS = 0
    TEST_FAILURE = 1
    AUTH_FAILURE = 2
    NETWORK_FAILURE = 3
    CONFIG_ERROR = 4
    INVALID_INPUT = 5


class AuthError(Exception):
    """Base exception for all credential related errors."""

    exit_code: ExitCode = ExitCode.AUTH_FAILURE
    default_hint: str | None = None

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.hint = hint or self.default_hint


class ConfigurationError(AuthError):
    """Raised when a prerequisite for the selected method is missing."""

    exit_code = ExitCode.CONFIG_ERROR

    def __init__(
        self, message: str, missing: str | None = None, hint: str | None = None
    ):
        super().__init__(message, hint)
        self.missing = missing


class TokenCacheError(ConfigurationError):
    """Raised when the on-disk token cache cannot be read or written."""

    default_hint = "Run 'aitools-auth login --clear-cache' to reset the token cache."


class AuthenticationError(AuthError):
    """Raised when the identity provider rejects an authentication attempt."""

    pass


class DeviceCodeExpiredError(AuthenticationError):
    """Raised when the device code expires before the user signs in."""

    default_hint = "Run 'aitools-auth login --auth device-code --tenant <id>' again."


class AccessDeniedError(AuthenticationError):
    """Raised when the user declines the authorization request."""

    pass


class AuthenticationTimeoutError(AuthenticationError):
    """Raised when a device-code session outlives its deadline."""

    default_hint = "Complete the sign-in before the code expires, then try again."


class AuthorizationCallbackError(AuthenticationError):
    """Raised when the browser redirect carries an error or is malformed."""

    def __init__(
        self,
        message: str,
        error: str | None = None,
        error_description: str | None = None,
        hint: str | None = None,
    ):
        super().__init__(message, hint)
        self.error = error
        self.error_description = error_description


class StateValidationError(AuthorizationCallbackError):
    """Raised when the callback state is missing or does not match.

    A mismatch indicates a forged redirect and is never retried.
    """

    pass


class CallbackTimeoutError(AuthenticationError):
    """Raised when no browser redirect arrives within the callback timeout."""

    default_hint = (
        "Finish signing in within the time limit, or use "
        "'--auth device-code' on headless machines."
    )


class InvalidBearerTokenError(AuthenticationError):
    """Raised when a manually supplied bearer token is malformed or expired."""

    default_hint = "Obtain a fresh token, e.g. with 'aitools-auth login'."


class AvailabilityError(AuthError):
    """Raised when managed identity cannot be reached in this environment.

    This is an environment mismatch, not a credential defect: callers should
    suggest switching methods rather than retrying.
    """

    default_hint = (
        "Check that managed identity is enabled for this resource, or switch "
        "to '--auth device-code' / '--auth interactive'."
    )


class NetworkError(AuthError):
    """Raised on transport failures or timeouts of outbound calls."""

    exit_code = ExitCode.NETWORK_FAILURE
    default_hint = "Check network connectivity, proxy and firewall settings."
