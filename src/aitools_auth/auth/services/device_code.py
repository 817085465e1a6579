"""OAuth 2.0 Device Authorization Grant (RFC 8628) against Entra ID.

The operator is shown a URL and a short code to enter on another device
while the tool polls the token endpoint. Polling is strictly sequential:
one outstanding request at a time with an explicit sleep between attempts.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from aitools_auth.auth.cache.disk import DiskTokenCache
from aitools_auth.auth.models.errors import (
    AccessDeniedError,
    AuthenticationError,
    AuthenticationTimeoutError,
    DeviceCodeExpiredError,
)
from aitools_auth.auth.models.flow import DeviceAuthorizationDetails
from aitools_auth.auth.models.tokens import TokenResponse, TokenResult
from aitools_auth.auth.services.console import OperatorConsole
from aitools_auth.auth.services.tokens import OAuth2TokenManager
from aitools_auth.auth.services.user_flow import UserTokenFlow
from aitools_auth.config import DEFAULT_TIMEOUT_SECS, AuthMethod, Cloud

logger = logging.getLogger(__name__)

AUTHORIZATION_PENDING = "authorization_pending"
SLOW_DOWN = "slow_down"
EXPIRED_TOKEN = "expired_token"
ACCESS_DENIED = "access_denied"
AUTHORIZATION_DECLINED = "authorization_declined"


class DeviceCodeFlow(UserTokenFlow):
    """Device code sign-in provider.

    ``sleep`` and ``clock`` are injectable so the polling schedule can be
    driven without real waiting.
    """

    method = AuthMethod.DEVICE_CODE
    method_name = "Device Code Flow"

    def __init__(
        self,
        tenant_id: str,
        client_id: str | None = None,
        cloud: Cloud = Cloud.GLOBAL,
        timeout: float = DEFAULT_TIMEOUT_SECS,
        console: OperatorConsole | None = None,
        disk_cache: DiskTokenCache | None = None,
        use_cache: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(tenant_id, client_id, cloud, disk_cache, use_cache)
        self.console = console or OperatorConsole()
        self._token_manager = OAuth2TokenManager(timeout=timeout)
        self._sleep = sleep
        self._clock = clock

    @property
    def device_authorization_endpoint(self) -> str:
        return self.cloud.oauth_endpoint(self.tenant_id, "devicecode")

    async def authenticate(self) -> TokenResult:
        """Run one device code session.

        Raises:
            NetworkError: On transport failure of any request
            AuthenticationError: On rejection, expiry, denial or timeout
        """
        details = await self._token_manager.request_device_authorization(
            self.device_authorization_endpoint, self.client_id, self.scope
        )
        logger.info(
            f"Device code issued for tenant {self.tenant_id}, "
            f"polling every {details.interval}s for up to {details.expires_in}s"
        )

        self.console.show_device_code(details.verification_uri, details.user_code)

        with self.console.waiting("Waiting for sign-in..."):
            result = await self._poll_for_token(details)

        self.console.success("Authentication successful!")
        logger.info(f"Device code sign-in completed for tenant {self.tenant_id}")
        return result

    async def _poll_for_token(self, details: DeviceAuthorizationDetails) -> TokenResult:
        interval = details.interval
        session_timeout = details.expires_in
        start = self._clock()

        while True:
            elapsed = self._clock() - start
            if elapsed > session_timeout:
                raise AuthenticationTimeoutError(
                    "Authentication timed out. Please try again."
                )

            await self._sleep(interval)

            response = await self._token_manager.poll_device_token(
                self.token_endpoint, self.client_id, details.device_code
            )

            if response.is_success():
                return response.to_result(self.scope)

            error = response.error
            if error == AUTHORIZATION_PENDING:
                continue
            if error == SLOW_DOWN:
                # One extra interval per occurrence, the base interval is unchanged
                logger.debug(f"Server requested slow_down, waiting {interval}s more")
                await self._sleep(interval)
                continue

            raise self._terminal_error(response)

    @staticmethod
    def _terminal_error(response: TokenResponse) -> AuthenticationError:
        if response.error == EXPIRED_TOKEN:
            return DeviceCodeExpiredError("Device code expired. Please try again.")
        if response.error in (ACCESS_DENIED, AUTHORIZATION_DECLINED):
            return AccessDeniedError("User declined authorization")
        return AuthenticationError(f"Server error: {response.describe_error()}")

    async def close(self) -> None:
        await self._token_manager.close()
