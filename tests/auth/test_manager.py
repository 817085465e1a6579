"""Tests for provider construction and selection."""

import pytest

from aitools_auth.auth.manager import AuthManager
from aitools_auth.auth.models.errors import ConfigurationError, ExitCode
from aitools_auth.auth.providers import (
    ApiKeyProvider,
    ClientCredentialsProvider,
    CognitiveTokenProvider,
    ManualTokenProvider,
)
from aitools_auth.auth.services.device_code import DeviceCodeFlow
from aitools_auth.auth.services.interactive import InteractiveFlow
from aitools_auth.auth.services.managed_identity import (
    HostingEnvironment,
    ManagedIdentityProvider,
)
from aitools_auth.config import AuthConfig, AuthMethod, EntraSettings, UserAuthSettings

ENTRA = EntraSettings(tenant_id="tenant-1", client_id="client-1", client_secret="s")


class TestProviderSelection:
    async def test_key_method_returns_api_key_provider(self):
        manager = AuthManager(AuthConfig(api_key="key-1"))

        assert isinstance(manager.get_provider(), ApiKeyProvider)
        assert manager.has_api_key()
        assert not manager.has_entra()
        await manager.close()

    async def test_key_method_without_key_names_prerequisite(self):
        manager = AuthManager(AuthConfig(default_method=AuthMethod.KEY))

        with pytest.raises(ConfigurationError) as exc_info:
            manager.get_provider()

        assert str(exc_info.value) == "api_key required for key authentication"
        assert exc_info.value.missing == "api_key"
        assert exc_info.value.exit_code == ExitCode.CONFIG_ERROR

    async def test_token_method_names_first_missing_field(self):
        manager = AuthManager(
            AuthConfig(
                default_method=AuthMethod.TOKEN,
                entra=EntraSettings(tenant_id="tenant-1"),
            )
        )

        with pytest.raises(ConfigurationError) as exc_info:
            manager.get_provider()

        assert exc_info.value.missing == "client_id"
        assert "Entra token authentication" in str(exc_info.value)

    async def test_token_method_does_not_fall_back_to_key(self):
        manager = AuthManager(
            AuthConfig(default_method=AuthMethod.TOKEN, api_key="key-1")
        )

        with pytest.raises(ConfigurationError):
            manager.get_provider()
        await manager.close()

    async def test_both_prefers_api_key(self):
        manager = AuthManager(
            AuthConfig(default_method=AuthMethod.BOTH, api_key="key-1", entra=ENTRA)
        )

        assert isinstance(manager.get_provider(), ApiKeyProvider)
        await manager.close()

    async def test_both_falls_back_to_entra(self):
        manager = AuthManager(AuthConfig(default_method=AuthMethod.BOTH, entra=ENTRA))

        assert isinstance(manager.get_provider(), ClientCredentialsProvider)
        await manager.close()

    async def test_both_without_either_fails(self):
        manager = AuthManager(AuthConfig(default_method=AuthMethod.BOTH))

        with pytest.raises(ConfigurationError, match="No authentication configured"):
            manager.get_provider()

    @pytest.mark.parametrize(
        "method, flow_type",
        [
            (AuthMethod.DEVICE_CODE, DeviceCodeFlow),
            (AuthMethod.INTERACTIVE, InteractiveFlow),
        ],
    )
    async def test_user_flows_need_tenant(self, method, flow_type):
        # Arrange
        without_tenant = AuthManager(AuthConfig(default_method=method))
        with_tenant = AuthManager(
            AuthConfig(
                default_method=method, user=UserAuthSettings(tenant_id="tenant-1")
            )
        )

        # Act & Assert
        with pytest.raises(ConfigurationError) as exc_info:
            without_tenant.get_provider()
        assert str(exc_info.value) == f"tenant_id required for {method.value}"

        provider = with_tenant.get_provider()
        assert isinstance(provider, flow_type)
        assert provider.tenant_id == "tenant-1"
        await with_tenant.close()

    async def test_manual_token_provider(self):
        manager = AuthManager(
            AuthConfig(
                default_method=AuthMethod.MANUAL_TOKEN,
                user=UserAuthSettings(bearer_token="opaque-token"),
            )
        )

        provider = manager.get_provider()

        assert isinstance(provider, ManualTokenProvider)
        assert (await provider.get_credentials()).token == "opaque-token"

    async def test_manual_token_missing(self):
        manager = AuthManager(AuthConfig(default_method=AuthMethod.MANUAL_TOKEN))

        with pytest.raises(ConfigurationError, match="bearer_token required"):
            manager.get_provider()

    async def test_managed_identity_only_when_selected(self):
        # Arrange
        env = HostingEnvironment()
        not_selected = AuthManager(AuthConfig(api_key="key-1"), env=env)
        selected = AuthManager(
            AuthConfig(default_method=AuthMethod.MANAGED_IDENTITY), env=env
        )

        # Assert
        assert not any(
            isinstance(p, ManagedIdentityProvider)
            for p in not_selected.get_all_providers()
        )
        assert isinstance(selected.get_provider(), ManagedIdentityProvider)
        await not_selected.close()
        await selected.close()


class TestGetAllProviders:
    async def test_lists_only_configured_providers(self):
        # Arrange
        manager = AuthManager(
            AuthConfig(
                api_key="key-1",
                region="eastus",
                entra=ENTRA,
                user=UserAuthSettings(tenant_id="tenant-1"),
            )
        )

        # Act
        providers = manager.get_all_providers()

        # Assert
        types = {type(p) for p in providers}
        assert types == {
            ApiKeyProvider,
            CognitiveTokenProvider,
            ClientCredentialsProvider,
            DeviceCodeFlow,
            InteractiveFlow,
        }
        await manager.close()

    async def test_empty_config_has_no_providers(self):
        manager = AuthManager(AuthConfig())

        assert manager.get_all_providers() == []

    async def test_environment_overrides_build_providers(self, monkeypatch):
        # Arrange
        monkeypatch.setenv("AZURE_AI_AUTH_METHOD", "entra")
        monkeypatch.setenv("AZURE_TENANT_ID", "tenant-env")
        monkeypatch.setenv("AZURE_CLIENT_ID", "client-env")
        monkeypatch.setenv("AZURE_CLIENT_SECRET", "secret-env")
        config = AuthConfig().with_env_overrides()

        # Act
        manager = AuthManager(config)

        # Assert
        provider = manager.get_provider()
        assert isinstance(provider, ClientCredentialsProvider)
        assert provider.tenant_id == "tenant-env"
        await manager.close()
