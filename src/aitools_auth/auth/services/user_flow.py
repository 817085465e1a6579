"""Shared caching behaviour for flows that sign a user in."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from aitools_auth.auth.cache.disk import DiskTokenCache
from aitools_auth.auth.cache.memory import MemoryTokenCache
from aitools_auth.auth.credentials import BearerToken
from aitools_auth.auth.models.errors import TokenCacheError
from aitools_auth.auth.models.tokens import CachedTokenEntry, TokenResult
from aitools_auth.config import AuthMethod, Cloud

logger = logging.getLogger(__name__)

# Azure CLI's well-known public client ID
AZURE_CLI_CLIENT_ID = "04b07795-8ddb-461a-bbee-02f9e1bf7b46"


class UserTokenFlow(ABC):
    """Base for device-code and interactive sign-in.

    ``get_credentials()`` consults the in-memory slot, then the disk cache,
    and only then runs the protocol. A failed sign-in leaves both caches
    untouched.
    """

    method: AuthMethod
    method_name: str

    def __init__(
        self,
        tenant_id: str,
        client_id: str | None = None,
        cloud: Cloud = Cloud.GLOBAL,
        disk_cache: DiskTokenCache | None = None,
        use_cache: bool = True,
    ):
        self.tenant_id = tenant_id
        self.client_id = client_id or AZURE_CLI_CLIENT_ID
        self.cloud = cloud
        self.scope = cloud.cognitive_scope
        self.use_cache = use_cache
        self._disk_cache = disk_cache
        self._memory_cache = MemoryTokenCache()

    @property
    def token_endpoint(self) -> str:
        return self.cloud.oauth_endpoint(self.tenant_id, "token")

    @abstractmethod
    async def authenticate(self) -> TokenResult:
        """Run the sign-in protocol and return a fresh token."""

    async def get_credentials(self) -> BearerToken:
        token = await self._memory_cache.get()
        if token is not None:
            return BearerToken(token)

        entry = self._cached_entry()
        if entry is not None:
            logger.info(
                f"Using cached token ({entry.remaining_minutes()} minutes remaining)"
            )
            await self._memory_cache.set(
                entry.access_token, entry.remaining_seconds()
            )
            return BearerToken(entry.access_token)

        result = await self.authenticate()
        await self._memory_cache.set(result.access_token, result.expires_in_secs)
        self._store(result)
        return BearerToken(result.access_token)

    def _cached_entry(self) -> CachedTokenEntry | None:
        if self._disk_cache is None or not self.use_cache:
            return None
        try:
            return self._disk_cache.get_valid(self.scope, self.tenant_id)
        except TokenCacheError as e:
            logger.warning(f"Ignoring unreadable token cache: {e}")
            return None

    def _store(self, result: TokenResult) -> None:
        if self._disk_cache is None or not self.use_cache:
            return
        try:
            self._disk_cache.insert(CachedTokenEntry.from_result(result, self.tenant_id))
            self._disk_cache.save()
        except TokenCacheError as e:
            logger.warning(f"Token acquired but not cached: {e}")
