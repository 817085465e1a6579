"""Provider selection.

AuthManager builds only the providers whose prerequisites are fully present
and hands out the one matching the configured method. It never substitutes
a different method, except for ``both`` which tries the API key and then
Entra client credentials, in that fixed order.
"""

from __future__ import annotations

import logging

from aitools_auth.auth.cache.disk import DiskTokenCache
from aitools_auth.auth.credentials import AuthProvider
from aitools_auth.auth.models.errors import ConfigurationError
from aitools_auth.auth.providers import (
    ApiKeyProvider,
    ClientCredentialsProvider,
    CognitiveTokenProvider,
    ManualTokenProvider,
)
from aitools_auth.auth.services.console import OperatorConsole
from aitools_auth.auth.services.device_code import DeviceCodeFlow
from aitools_auth.auth.services.interactive import InteractiveFlow
from aitools_auth.auth.services.managed_identity import (
    HostingEnvironment,
    ManagedIdentityProvider,
    ManagedIdentityResolver,
)
from aitools_auth.config import AuthConfig, AuthMethod

logger = logging.getLogger(__name__)


class AuthManager:
    """Holds the constructed subset of providers, keyed by AuthMethod.

    The disk cache is owned by the caller and shared by the user sign-in
    flows; no module-level cache state exists.
    """

    def __init__(
        self,
        config: AuthConfig,
        disk_cache: DiskTokenCache | None = None,
        env: HostingEnvironment | None = None,
        console: OperatorConsole | None = None,
    ):
        self.config = config
        self.default_method = config.default_method
        self._providers: dict[AuthMethod, AuthProvider] = {}
        self._cognitive: CognitiveTokenProvider | None = None

        console = console or OperatorConsole(quiet=config.quiet)
        cloud = config.cloud
        timeout = config.timeout_seconds
        user = config.user

        if config.api_key:
            self._providers[AuthMethod.KEY] = ApiKeyProvider(config.api_key)
            if config.region:
                self._cognitive = CognitiveTokenProvider(
                    config.api_key, config.region, cloud, timeout
                )

        if config.entra.is_complete():
            self._providers[AuthMethod.TOKEN] = ClientCredentialsProvider(
                config.entra.tenant_id,
                config.entra.client_id,
                config.entra.client_secret,
                cloud,
                timeout,
            )

        if user.bearer_token:
            self._providers[AuthMethod.MANUAL_TOKEN] = ManualTokenProvider(
                user.bearer_token
            )

        if user.tenant_id:
            self._providers[AuthMethod.DEVICE_CODE] = DeviceCodeFlow(
                user.tenant_id,
                user.client_id,
                cloud,
                timeout,
                console=console,
                disk_cache=disk_cache,
                use_cache=user.use_cache,
            )
            self._providers[AuthMethod.INTERACTIVE] = InteractiveFlow(
                user.tenant_id,
                user.client_id,
                cloud,
                timeout,
                callback_timeout=user.callback_timeout_seconds,
                console=console,
                disk_cache=disk_cache,
                use_cache=user.use_cache,
            )

        # Probing IMDS is only worthwhile when explicitly selected
        if self.default_method is AuthMethod.MANAGED_IDENTITY:
            self._providers[AuthMethod.MANAGED_IDENTITY] = ManagedIdentityProvider(
                ManagedIdentityResolver(
                    cloud, user.managed_identity_client_id, env
                )
            )

        logger.debug(
            f"Configured providers: {[m.value for m in self._providers]}, "
            f"default method: {self.default_method.value}"
        )

    def get_provider(self) -> AuthProvider:
        """Return the provider for the configured method.

        Raises:
            ConfigurationError: Naming the missing prerequisite
        """
        method = self.default_method

        if method is AuthMethod.BOTH:
            for candidate in (AuthMethod.KEY, AuthMethod.TOKEN):
                if candidate in self._providers:
                    return self._providers[candidate]
            raise ConfigurationError(
                "No authentication configured: 'both' requires an API key or "
                "Entra client credentials",
                missing="api_key",
                hint="Set AZURE_AI_API_KEY, or AZURE_TENANT_ID, AZURE_CLIENT_ID "
                "and AZURE_CLIENT_SECRET.",
            )

        provider = self._providers.get(method)
        if provider is not None:
            return provider
        raise self._missing_prerequisite(method)

    def get_all_providers(self) -> list[AuthProvider]:
        """Every fully-configured provider, for diagnostics."""
        providers = list(self._providers.values())
        if self._cognitive is not None:
            providers.append(self._cognitive)
        return providers

    def has_api_key(self) -> bool:
        return AuthMethod.KEY in self._providers

    def has_entra(self) -> bool:
        return AuthMethod.TOKEN in self._providers

    def _missing_prerequisite(self, method: AuthMethod) -> ConfigurationError:
        if method is AuthMethod.KEY:
            return ConfigurationError(
                "api_key required for key authentication",
                missing="api_key",
                hint="Pass --api-key or set AZURE_AI_API_KEY.",
            )
        if method is AuthMethod.TOKEN:
            missing = self.config.entra.missing_fields()[0]
            return ConfigurationError(
                f"{missing} required for Entra token authentication",
                missing=missing,
                hint="Set AZURE_TENANT_ID, AZURE_CLIENT_ID and AZURE_CLIENT_SECRET.",
            )
        if method is AuthMethod.MANUAL_TOKEN:
            return ConfigurationError(
                "bearer_token required for manual-token",
                missing="bearer_token",
                hint="Set AZURE_AI_BEARER_TOKEN or user.bearer_token in the "
                "configuration.",
            )
        # device-code and interactive both need a tenant
        return ConfigurationError(
            f"tenant_id required for {method.value}",
            missing="tenant_id",
            hint=f"Run 'aitools-auth login --auth {method.value} --tenant <tenant-id>'.",
        )

    async def close(self) -> None:
        for provider in self.get_all_providers():
            close = getattr(provider, "close", None)
            if close is not None:
                await close()
