"""Authorization flow models.

Contains the device authorization response (RFC 8628) and the authorization
code request/callback pair (RFC 6749 + RFC 7636).
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode

from pydantic import BaseModel, field_validator

DEFAULT_POLL_INTERVAL_SECS = 5
DEFAULT_DEVICE_CODE_TIMEOUT_SECS = 15 * 60


class DeviceAuthorizationDetails(BaseModel):
    """Device authorization response (RFC 8628 Section 3.2).

    Created per authentication attempt and discarded afterwards.
    """

    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int = DEFAULT_DEVICE_CODE_TIMEOUT_SECS
    interval: int = DEFAULT_POLL_INTERVAL_SECS
    message: str | None = None

    @field_validator("expires_in", mode="before")
    @classmethod
    def _default_expires_in(cls, value: object) -> object:
        if value in (None, 0, "0", ""):
            return DEFAULT_DEVICE_CODE_TIMEOUT_SECS
        return value

    @field_validator("interval", mode="before")
    @classmethod
    def _default_interval(cls, value: object) -> object:
        if value in (None, ""):
            return DEFAULT_POLL_INTERVAL_SECS
        return value


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the code + PKCE flow."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    code_challenge: str
    code_challenge_method: str
    state: str
    scope: str | None = None
    response_mode: str = "query"

    def build_authorization_url(self) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_mode": self.response_mode,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
            "state": self.state,
        }

        if self.scope:
            params["scope"] = self.scope

        return f"{self.authorization_endpoint}?{urlencode(params)}"


@dataclass(frozen=True)
class AuthorizationResponse:
    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    def is_success(self) -> bool:
        return self.error is None and self.code is not None

    def is_error(self) -> bool:
        return self.error is not None
