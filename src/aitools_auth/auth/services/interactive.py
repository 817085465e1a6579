"""Interactive browser sign-in: authorization code flow with PKCE.

Preferred over device code where Conditional Access blocks the device code
grant (AADSTS53003). The redirect is captured by a one-shot loopback
listener on an OS-assigned port.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from aitools_auth.auth.cache.disk import DiskTokenCache
from aitools_auth.auth.models.errors import (
    AuthenticationError,
    AuthorizationCallbackError,
)
from aitools_auth.auth.models.flow import AuthorizationRequest, AuthorizationResponse
from aitools_auth.auth.models.tokens import TokenRequest, TokenResult
from aitools_auth.auth.primitives.callback import LoopbackCallbackServer
from aitools_auth.auth.primitives.pkce import PKCEManager, PKCEParameters
from aitools_auth.auth.services.browser import open_browser
from aitools_auth.auth.services.console import OperatorConsole
from aitools_auth.auth.services.security import generate_state, validate_state
from aitools_auth.auth.services.tokens import OAuth2TokenManager
from aitools_auth.auth.services.user_flow import UserTokenFlow
from aitools_auth.config import (
    DEFAULT_CALLBACK_TIMEOUT_SECS,
    DEFAULT_TIMEOUT_SECS,
    AuthMethod,
    Cloud,
)

logger = logging.getLogger(__name__)


class InteractiveFlow(UserTokenFlow):
    """Authorization code + PKCE sign-in provider.

    The blocking accept runs on the default executor, bounded by
    ``callback_timeout`` seconds (None waits indefinitely).
    """

    method = AuthMethod.INTERACTIVE
    method_name = "Interactive Browser"

    def __init__(
        self,
        tenant_id: str,
        client_id: str | None = None,
        cloud: Cloud = Cloud.GLOBAL,
        timeout: float = DEFAULT_TIMEOUT_SECS,
        callback_timeout: float | None = DEFAULT_CALLBACK_TIMEOUT_SECS,
        console: OperatorConsole | None = None,
        disk_cache: DiskTokenCache | None = None,
        use_cache: bool = True,
        browser_opener: Callable[[str], bool] = open_browser,
        server_factory: Callable[[], LoopbackCallbackServer] = LoopbackCallbackServer,
    ):
        super().__init__(tenant_id, client_id, cloud, disk_cache, use_cache)
        self.callback_timeout = callback_timeout
        self.console = console or OperatorConsole()
        self._browser_opener = browser_opener
        self._server_factory = server_factory
        self._pkce_manager = PKCEManager()
        self._token_manager = OAuth2TokenManager(timeout=timeout)

    @property
    def authorization_endpoint(self) -> str:
        return self.cloud.oauth_endpoint(self.tenant_id, "authorize")

    async def authenticate(self) -> TokenResult:
        """Run one browser sign-in.

        Raises:
            AuthorizationCallbackError: If the redirect carries an error
            StateValidationError: If the redirect state doesn't match
            CallbackTimeoutError: If no redirect arrives in time
            NetworkError: On transport failure of the token exchange
            AuthenticationError: If the token exchange is rejected
        """
        try:
            server = self._server_factory()
        except OSError as e:
            raise AuthenticationError(
                f"Failed to bind localhost listener: {e}"
            ) from e

        with server:
            redirect_uri = server.redirect_uri
            pkce_params = self._pkce_manager.generate_parameters()
            state = generate_state()

            authorization_url = AuthorizationRequest(
                authorization_endpoint=self.authorization_endpoint,
                client_id=self.client_id,
                redirect_uri=redirect_uri,
                code_challenge=pkce_params.code_challenge,
                code_challenge_method=pkce_params.code_challenge_method,
                state=state,
                scope=self.scope,
            ).build_authorization_url()

            logger.info(
                f"Waiting for authorization redirect on {redirect_uri} "
                f"for tenant {self.tenant_id}"
            )
            self.console.show_authorization_url(authorization_url)
            self._browser_opener(authorization_url)

            with self.console.waiting("Waiting for browser sign-in..."):
                loop = asyncio.get_running_loop()
                callback = await loop.run_in_executor(
                    None, server.wait_for_callback, self.callback_timeout
                )

        code = self._validate_callback(callback, state)

        self.console.info("Authorization code received, exchanging for token...")
        result = await self._exchange_code(code, pkce_params, redirect_uri)

        self.console.success("Authentication successful!")
        logger.info(f"Interactive sign-in completed for tenant {self.tenant_id}")
        return result

    @staticmethod
    def _validate_callback(callback: AuthorizationResponse, expected_state: str) -> str:
        if callback.is_error():
            raise AuthorizationCallbackError(
                f"Authentication error: {callback.error} - "
                f"{callback.error_description or ''}",
                error=callback.error,
                error_description=callback.error_description,
            )

        validate_state(expected_state, callback.state)

        if callback.code is None:
            raise AuthorizationCallbackError("No authorization code in callback")
        return callback.code

    async def _exchange_code(
        self, code: str, pkce_params: PKCEParameters, redirect_uri: str
    ) -> TokenResult:
        response = await self._token_manager.exchange_code_for_token(
            TokenRequest(
                token_endpoint=self.token_endpoint,
                code=code,
                redirect_uri=redirect_uri,
                client_id=self.client_id,
                code_verifier=pkce_params.code_verifier,
                scope=self.scope,
            )
        )

        if not response.is_success():
            raise AuthenticationError(
                f"Token exchange failed: {response.describe_error()}"
            )
        return response.to_result(self.scope)

    async def close(self) -> None:
        await self._token_manager.close()
