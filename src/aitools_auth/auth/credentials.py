"""Credentials and the provider contract consumed by every API caller.

Callers ask a provider for credentials and apply them to an outgoing
request; exactly one header is injected.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, MutableMapping
from dataclasses import dataclass, field
from typing import ClassVar, Protocol, Union

import httpx

from aitools_auth.config import AuthMethod

API_KEY_HEADER = "Ocp-Apim-Subscription-Key"
AUTHORIZATION_HEADER = "Authorization"


@dataclass(frozen=True)
class ApiKey:
    key: str = field(repr=False)

    header_name: ClassVar[str] = API_KEY_HEADER

    @property
    def header_value(self) -> str:
        return self.key


@dataclass(frozen=True)
class BearerToken:
    token: str = field(repr=False)

    header_name: ClassVar[str] = AUTHORIZATION_HEADER

    @property
    def header_value(self) -> str:
        return f"Bearer {self.token}"


Credentials = Union[ApiKey, BearerToken]


def apply_to_headers(
    credentials: Credentials, headers: MutableMapping[str, str]
) -> None:
    """Inject the single credential header, dropping the other kind."""
    for name in (API_KEY_HEADER, AUTHORIZATION_HEADER):
        if name != credentials.header_name and name in headers:
            del headers[name]
    headers[credentials.header_name] = credentials.header_value


def apply_to_request(credentials: Credentials, request: httpx.Request) -> httpx.Request:
    apply_to_headers(credentials, request.headers)
    return request


class AuthProvider(Protocol):
    """A source of credentials for one AuthMethod."""

    method: AuthMethod
    method_name: str

    async def get_credentials(self) -> Credentials: ...


class ProviderAuth(httpx.Auth):
    """httpx authentication hook backed by an AuthProvider.

    Usage:
        async with httpx.AsyncClient(auth=ProviderAuth(provider)) as client:
            await client.get(url)
    """

    def __init__(self, provider: AuthProvider):
        self.provider = provider

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        credentials = await self.provider.get_credentials()
        yield apply_to_request(credentials, request)
