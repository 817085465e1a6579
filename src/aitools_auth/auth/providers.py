"""Single-call and static credential providers."""

from __future__ import annotations

import base64
import json
import logging
import time

import httpx

from aitools_auth.auth.cache.memory import MemoryTokenCache
from aitools_auth.auth.credentials import API_KEY_HEADER, ApiKey, BearerToken
from aitools_auth.auth.models.errors import (
    AuthenticationError,
    ConfigurationError,
    InvalidBearerTokenError,
    NetworkError,
)
from aitools_auth.auth.models.tokens import ClientCredentialsRequest
from aitools_auth.auth.services.tokens import OAuth2TokenManager
from aitools_auth.config import DEFAULT_TIMEOUT_SECS, AuthMethod, Cloud

logger = logging.getLogger(__name__)

# Cognitive Services STS tokens live 10 minutes, reuse them for 9
COGNITIVE_TOKEN_LIFETIME_SECS = 540


class ApiKeyProvider:
    method = AuthMethod.KEY
    method_name = "API Key"

    def __init__(self, api_key: str):
        if not api_key:
            raise ConfigurationError("api_key must not be empty", missing="api_key")
        self._api_key = api_key

    async def get_credentials(self) -> ApiKey:
        return ApiKey(self._api_key)


def decode_jwt_payload(token: str) -> dict:
    """Decode the payload of a JWT without verifying its signature.

    Raises:
        ValueError: If the token is not a well-formed JWT.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise ValueError("Invalid JWT format")

    payload_b64 = parts[1]
    padding = 4 - len(payload_b64) % 4
    if padding != 4:
        payload_b64 += "=" * padding

    try:
        payload = json.loads(base64.urlsafe_b64decode(payload_b64))
    except (ValueError, TypeError) as e:
        raise ValueError(f"Failed to decode JWT: {e}") from e
    if not isinstance(payload, dict):
        raise ValueError("JWT payload is not an object")
    return payload


class ManualTokenProvider:
    """Serves a bearer token supplied by the operator.

    The token is validated once at construction: an optional ``Bearer``
    prefix is stripped and, when it is a JWT with an ``exp`` claim, it must
    not already be expired.
    """

    method = AuthMethod.MANUAL_TOKEN
    method_name = "Manual Bearer Token"

    def __init__(self, token: str, clock=time.time):
        self._token = self._validate(token.strip(), clock())

    @staticmethod
    def _validate(token: str, now: float) -> str:
        if token[:7].lower() == "bearer ":
            token = token[7:].strip()
        if not token:
            raise InvalidBearerTokenError("Bearer token is empty")
        if any(ch.isspace() for ch in token):
            raise InvalidBearerTokenError("Bearer token must not contain whitespace")

        try:
            payload = decode_jwt_payload(token)
        except ValueError:
            # Opaque tokens are passed through untouched
            logger.debug("Manual token is not a JWT, skipping expiry check")
            return token

        exp = payload.get("exp")
        if isinstance(exp, (int, float)) and exp <= now:
            expired_minutes = int((now - exp) // 60)
            raise InvalidBearerTokenError(
                f"Bearer token expired {expired_minutes} minutes ago"
            )
        return token

    async def get_credentials(self) -> BearerToken:
        return BearerToken(self._token)


class ClientCredentialsProvider:
    """Entra ID service principal (client credentials grant).

    The short-lived token is reused from memory until it nears expiry.
    """

    method = AuthMethod.TOKEN
    method_name = "Entra ID Token"

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        cloud: Cloud = Cloud.GLOBAL,
        timeout: float = DEFAULT_TIMEOUT_SECS,
        token_cache: MemoryTokenCache | None = None,
    ):
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.scope = cloud.cognitive_scope
        self._request = ClientCredentialsRequest(
            token_endpoint=cloud.oauth_endpoint(tenant_id, "token"),
            client_id=client_id,
            client_secret=client_secret,
            scope=self.scope,
        )
        self._token_manager = OAuth2TokenManager(timeout=timeout)
        self._token_cache = token_cache or MemoryTokenCache()

    async def get_credentials(self) -> BearerToken:
        token = await self._token_cache.get()
        if token is not None:
            return BearerToken(token)

        response = await self._token_manager.request_client_credentials(self._request)
        if not response.is_success():
            raise AuthenticationError(
                f"Token request failed: {response.describe_error()}",
                hint="Check tenant_id, client_id and client_secret.",
            )

        result = response.to_result(self.scope)
        await self._token_cache.set(result.access_token, result.expires_in_secs)
        logger.info(f"Acquired client credentials token for client {self.client_id}")
        return BearerToken(result.access_token)

    async def close(self) -> None:
        await self._token_manager.close()


class CognitiveTokenProvider:
    """Exchanges an API key for a short-lived Cognitive Services token."""

    method = AuthMethod.KEY
    method_name = "Cognitive Token"

    def __init__(
        self,
        api_key: str,
        region: str,
        cloud: Cloud = Cloud.GLOBAL,
        timeout: float = DEFAULT_TIMEOUT_SECS,
        token_cache: MemoryTokenCache | None = None,
    ):
        self._api_key = api_key
        self.token_endpoint = cloud.cognitive_token_endpoint(region)
        self._http_client = httpx.AsyncClient(timeout=timeout)
        self._token_cache = token_cache or MemoryTokenCache()

    async def exchange_token(self) -> str:
        token = await self._token_cache.get()
        if token is not None:
            return token

        try:
            response = await self._http_client.post(
                self.token_endpoint,
                headers={API_KEY_HEADER: self._api_key, "Content-Length": "0"},
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Token exchange failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise AuthenticationError(
                f"Token exchange failed ({response.status_code}): "
                f"{response.text[:200]}",
                hint="Check the API key and region.",
            )

        token = response.text.strip()
        if not token:
            raise AuthenticationError("Token exchange returned an empty token")

        await self._token_cache.set(token, COGNITIVE_TOKEN_LIFETIME_SECS)
        return token

    async def get_credentials(self) -> BearerToken:
        return BearerToken(await self.exchange_token())

    async def close(self) -> None:
        await self._http_client.aclose()
