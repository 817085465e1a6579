"""Managed identity token acquisition.

The hosting environment is detected once at construction:

- App Service / Container Apps expose ``IDENTITY_ENDPOINT`` plus
  ``IDENTITY_HEADER``; the header value is sent as a secret header.
- Anything else (including the legacy ``MSI_ENDPOINT`` signal) goes to the
  VM instance metadata service on the link-local address.

Every failure is reported as AvailabilityError: an unreachable endpoint means
"wrong environment", not "bad credentials".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Union

import httpx
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from aitools_auth.auth.cache.memory import MemoryTokenCache
from aitools_auth.auth.credentials import BearerToken
from aitools_auth.auth.models.errors import AvailabilityError
from aitools_auth.auth.models.tokens import DEFAULT_TOKEN_LIFETIME_SECS
from aitools_auth.config import AuthMethod, Cloud

logger = logging.getLogger(__name__)

IMDS_TOKEN_URL = "http://169.254.169.254/metadata/identity/oauth2/token"
IMDS_API_VERSION = "2018-02-01"
APP_SERVICE_API_VERSION = "2019-08-01"
MANAGED_IDENTITY_TIMEOUT_SECS = 5.0


@dataclass(frozen=True)
class AppServiceEndpoint:
    endpoint: str
    secret: str = field(repr=False)


@dataclass(frozen=True)
class VirtualMachineEndpoint:
    url: str = IMDS_TOKEN_URL


ManagedIdentityEndpoint = Union[AppServiceEndpoint, VirtualMachineEndpoint]


class ManagedIdentityResponse(BaseModel):
    access_token: str
    # App Service returns expires_in as a string
    expires_in: int = DEFAULT_TOKEN_LIFETIME_SECS


class HostingEnvironment(BaseSettings):
    """Variables the hosting platform sets when an identity is assigned."""

    identity_endpoint: str | None = Field(
        default=None, validation_alias="IDENTITY_ENDPOINT"
    )
    identity_header: str | None = Field(
        default=None, validation_alias="IDENTITY_HEADER", repr=False
    )
    msi_endpoint: str | None = Field(default=None, validation_alias="MSI_ENDPOINT")

    model_config = SettingsConfigDict(extra="ignore", env_ignore_empty=True)


def detect_endpoint(env: HostingEnvironment) -> ManagedIdentityEndpoint:
    """Pick the managed identity variant from the hosting variables."""
    if env.identity_endpoint and env.identity_header:
        return AppServiceEndpoint(
            endpoint=env.identity_endpoint, secret=env.identity_header
        )

    if env.msi_endpoint:
        logger.debug("Legacy MSI_ENDPOINT found, using instance metadata service")

    return VirtualMachineEndpoint()


class ManagedIdentityResolver:
    def __init__(
        self,
        cloud: Cloud = Cloud.GLOBAL,
        client_id: str | None = None,
        env: HostingEnvironment | None = None,
        timeout: float = MANAGED_IDENTITY_TIMEOUT_SECS,
    ):
        self.resource = cloud.cognitive_resource
        self.client_id = client_id
        self.endpoint = detect_endpoint(env or HostingEnvironment())
        self._http_client = httpx.AsyncClient(timeout=timeout)
        logger.debug(f"Managed identity endpoint: {type(self.endpoint).__name__}")

    @property
    def is_app_service(self) -> bool:
        return isinstance(self.endpoint, AppServiceEndpoint)

    async def fetch_token(self) -> str:
        """Return an access token from the detected endpoint.

        Raises:
            AvailabilityError: If the endpoint is unreachable or refuses
        """
        response = await self.fetch_token_response()
        return response.access_token

    async def fetch_token_response(self) -> ManagedIdentityResponse:
        """Fetch the full token response from the detected endpoint.

        Raises:
            AvailabilityError: If the endpoint is unreachable or refuses
        """
        if isinstance(self.endpoint, AppServiceEndpoint):
            return await self._request(
                self.endpoint.endpoint,
                APP_SERVICE_API_VERSION,
                {"X-IDENTITY-HEADER": self.endpoint.secret},
                "Failed to reach App Service identity endpoint",
            )
        return await self._request(
            self.endpoint.url,
            IMDS_API_VERSION,
            {"Metadata": "true"},
            "Could not reach IMDS endpoint (169.254.169.254). "
            "This may not be an Azure VM, or managed identity is not enabled",
        )

    async def _request(
        self,
        url: str,
        api_version: str,
        headers: dict[str, str],
        unreachable_message: str,
    ) -> ManagedIdentityResponse:
        params = {"api-version": api_version, "resource": self.resource}
        if self.client_id:
            params["client_id"] = self.client_id

        try:
            response = await self._http_client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise AvailabilityError(f"{unreachable_message}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise AvailabilityError(
                f"Managed identity endpoint returned HTTP {response.status_code}: "
                f"{response.text[:200]}"
            )

        try:
            return ManagedIdentityResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise AvailabilityError(
                f"Failed to parse managed identity response: {e}"
            ) from e

    async def close(self) -> None:
        await self._http_client.aclose()


class ManagedIdentityProvider:
    method = AuthMethod.MANAGED_IDENTITY
    method_name = "Managed Identity"

    def __init__(
        self,
        resolver: ManagedIdentityResolver,
        token_cache: MemoryTokenCache | None = None,
    ):
        self.resolver = resolver
        self._token_cache = token_cache or MemoryTokenCache()

    async def get_credentials(self) -> BearerToken:
        token = await self._token_cache.get()
        if token is not None:
            return BearerToken(token)

        response = await self.resolver.fetch_token_response()
        await self._token_cache.set(response.access_token, response.expires_in)
        logger.info("Acquired managed identity token")
        return BearerToken(response.access_token)

    async def close(self) -> None:
        await self.resolver.close()
