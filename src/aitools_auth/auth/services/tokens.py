"""Token endpoint client.

Implements the RFC 6749 token endpoint interactions used by every flow:
authorization code exchange with PKCE (RFC 7636), client credentials,
device authorization and device-code polling (RFC 8628).
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from aitools_auth.auth.models.errors import AuthenticationError, NetworkError
from aitools_auth.auth.models.flow import DeviceAuthorizationDetails
from aitools_auth.auth.models.tokens import (
    ClientCredentialsRequest,
    TokenRequest,
    TokenResponse,
)

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


class OAuth2TokenManager:
    """Talks to the authorization server's token and device endpoints.

    Uses application/x-www-form-urlencoded encoding as required by RFC 6749.
    Transport failures surface as NetworkError; error responses come back as
    TokenResponse objects so callers can classify them.
    """

    def __init__(self, timeout: float = 30.0):
        """Initialize token manager.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def exchange_code_for_token(
        self, token_request: TokenRequest
    ) -> TokenResponse:
        """Exchange an authorization code for an access token.

        Raises:
            NetworkError: On transport failure
            AuthenticationError: If the response cannot be parsed
        """
        logger.debug(
            f"Exchanging authorization code at {token_request.token_endpoint} "
            f"for client_id={token_request.client_id}"
        )
        return await self._post_token_request(
            token_request.token_endpoint, token_request.to_form_data()
        )

    async def request_client_credentials(
        self, request: ClientCredentialsRequest
    ) -> TokenResponse:
        logger.debug(
            f"Requesting client credentials token at {request.token_endpoint} "
            f"for client_id={request.client_id}"
        )
        return await self._post_token_request(
            request.token_endpoint, request.to_form_data()
        )

    async def poll_device_token(
        self, token_endpoint: str, client_id: str, device_code: str
    ) -> TokenResponse:
        """Make a single device-code grant attempt (RFC 8628 Section 3.4)."""
        form_data = {
            "grant_type": DEVICE_CODE_GRANT_TYPE,
            "client_id": client_id,
            "device_code": device_code,
        }
        return await self._post_token_request(token_endpoint, form_data)

    async def request_device_authorization(
        self, device_authorization_endpoint: str, client_id: str, scope: str
    ) -> DeviceAuthorizationDetails:
        """Start a device authorization session (RFC 8628 Section 3.1).

        Raises:
            NetworkError: On transport failure
            AuthenticationError: On a non-success or malformed response
        """
        logger.debug(f"Requesting device code at {device_authorization_endpoint}")

        try:
            response = await self._http_client.post(
                device_authorization_endpoint,
                data={"client_id": client_id, "scope": scope},
                headers=FORM_HEADERS,
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Device code request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            error = self._error_response(response)
            raise AuthenticationError(
                f"Failed to initiate device code flow "
                f"({response.status_code}): {error.describe_error()}"
            )

        try:
            return DeviceAuthorizationDetails.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise AuthenticationError(
                f"Invalid device authorization response: {e}"
            ) from e

    async def _post_token_request(
        self, token_endpoint: str, form_data: dict[str, str]
    ) -> TokenResponse:
        try:
            response = await self._http_client.post(
                token_endpoint,
                data=form_data,
                headers=FORM_HEADERS,
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Token request failed: {e}") from e

        return self._parse_token_response(response)

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse:
        """Parse token endpoint response into TokenResponse.

        Handles both successful responses (200) and error responses (400+)
        according to RFC 6749 Section 5.
        """
        if response.status_code == 200:
            try:
                token_response = TokenResponse.model_validate(response.json())
            except (ValueError, ValidationError) as e:
                raise AuthenticationError(f"Invalid token response format: {e}") from e

            if not token_response.is_success() and not token_response.is_error():
                raise AuthenticationError(
                    "Token response missing required access_token"
                )
            return token_response

        error = self._error_response(response)
        logger.debug(
            f"Token endpoint returned {response.status_code}: {error.error}"
        )
        return error

    @staticmethod
    def _error_response(response: httpx.Response) -> TokenResponse:
        try:
            data = response.json()
            if isinstance(data, dict) and "error" in data:
                return TokenResponse(
                    error=str(data["error"]),
                    error_description=data.get("error_description"),
                    error_uri=data.get("error_uri"),
                )
        except ValueError:
            pass

        return TokenResponse(
            error=f"http_{response.status_code}",
            error_description=(response.text or "Unknown error")[:200],
        )

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
