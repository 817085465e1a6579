"""Authentication configuration.

Loading the configuration file is the caller's concern; this module defines
the settings AuthManager is built from and the environment overrides.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from aitools_auth.auth.models.errors import ConfigurationError

DEFAULT_TIMEOUT_SECS = 30
DEFAULT_CALLBACK_TIMEOUT_SECS = 300


class Cloud(str, Enum):
    """Azure cloud environment."""

    GLOBAL = "global"
    CHINA = "china"

    @classmethod
    def parse(cls, value: str) -> Cloud:
        aliases = {
            "global": cls.GLOBAL,
            "azure": cls.GLOBAL,
            "public": cls.GLOBAL,
            "china": cls.CHINA,
            "mooncake": cls.CHINA,
            "cn": cls.CHINA,
        }
        try:
            return aliases[value.strip().lower()]
        except KeyError:
            raise ConfigurationError(f"Unknown cloud: {value}") from None

    @property
    def login_endpoint(self) -> str:
        if self is Cloud.CHINA:
            return "https://login.partner.microsoftonline.cn"
        return "https://login.microsoftonline.com"

    @property
    def cognitive_resource(self) -> str:
        if self is Cloud.CHINA:
            return "https://cognitiveservices.azure.cn"
        return "https://cognitiveservices.azure.com"

    @property
    def cognitive_scope(self) -> str:
        return f"{self.cognitive_resource}/.default"

    def cognitive_token_endpoint(self, region: str) -> str:
        if self is Cloud.CHINA:
            return f"https://{region}.api.cognitive.azure.cn/sts/v1.0/issueToken"
        return f"https://{region}.api.cognitive.microsoft.com/sts/v1.0/issueToken"

    def oauth_endpoint(self, tenant_id: str, name: str) -> str:
        """``{authority}/{tenant}/oauth2/v2.0/{name}``"""
        return f"{self.login_endpoint}/{tenant_id}/oauth2/v2.0/{name}"


class AuthMethod(str, Enum):
    """Closed set of provider selections, resolved once at startup."""

    KEY = "key"
    TOKEN = "token"
    BOTH = "both"
    DEVICE_CODE = "device-code"
    INTERACTIVE = "interactive"
    MANAGED_IDENTITY = "managed-identity"
    MANUAL_TOKEN = "manual-token"

    @classmethod
    def parse(cls, value: str) -> AuthMethod:
        normalized = value.strip().lower().replace("_", "-")
        for method, aliases in _AUTH_METHOD_ALIASES.items():
            if normalized == method.value or normalized in aliases:
                return method
        raise ConfigurationError(f"Unknown auth method: {value}")


_AUTH_METHOD_ALIASES: dict[AuthMethod, tuple[str, ...]] = {
    AuthMethod.KEY: ("apikey", "api-key"),
    AuthMethod.TOKEN: ("entra", "aad", "client-credentials"),
    AuthMethod.BOTH: ("all",),
    AuthMethod.DEVICE_CODE: ("devicecode", "device"),
    AuthMethod.INTERACTIVE: ("browser",),
    AuthMethod.MANAGED_IDENTITY: ("managedidentity", "mi", "msi"),
    AuthMethod.MANUAL_TOKEN: ("bearer", "bearer-token", "manual"),
}


class EntraSettings(BaseModel):
    """Client-credentials (service principal) settings."""

    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = Field(default=None, repr=False)

    def missing_fields(self) -> list[str]:
        return [
            name
            for name in ("tenant_id", "client_id", "client_secret")
            if not getattr(self, name)
        ]

    def is_complete(self) -> bool:
        return not self.missing_fields()


class UserAuthSettings(BaseModel):
    """Settings for user sign-in, managed identity and manual tokens."""

    tenant_id: str | None = None
    client_id: str | None = None
    bearer_token: str | None = Field(default=None, repr=False)
    managed_identity_client_id: str | None = None
    use_cache: bool = True
    callback_timeout_seconds: float | None = DEFAULT_CALLBACK_TIMEOUT_SECS


class AuthConfig(BaseModel):
    default_method: AuthMethod = AuthMethod.KEY
    cloud: Cloud = Cloud.GLOBAL
    api_key: str | None = Field(default=None, repr=False)
    region: str | None = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECS
    quiet: bool = False
    entra: EntraSettings = Field(default_factory=EntraSettings)
    user: UserAuthSettings = Field(default_factory=UserAuthSettings)

    def with_env_overrides(
        self, overrides: EnvironmentOverrides | None = None
    ) -> AuthConfig:
        """Return a copy with environment variables applied on top."""
        env = overrides or EnvironmentOverrides()
        config = self.model_copy(deep=True)

        if env.api_key:
            config.api_key = env.api_key
        if env.region:
            config.region = env.region
        if env.auth_method:
            config.default_method = AuthMethod.parse(env.auth_method)
        if env.cloud:
            config.cloud = Cloud.parse(env.cloud)
        if env.tenant_id:
            config.entra.tenant_id = env.tenant_id
            config.user.tenant_id = config.user.tenant_id or env.tenant_id
        if env.client_id:
            config.entra.client_id = env.client_id
        if env.client_secret:
            config.entra.client_secret = env.client_secret
        if env.bearer_token:
            config.user.bearer_token = env.bearer_token
        if env.managed_identity_client_id:
            config.user.managed_identity_client_id = env.managed_identity_client_id

        return config


class EnvironmentOverrides(BaseSettings):
    """Environment variables layered over a loaded AuthConfig."""

    api_key: str | None = Field(
        default=None, validation_alias="AZURE_AI_API_KEY", repr=False
    )
    region: str | None = Field(default=None, validation_alias="AZURE_AI_REGION")
    auth_method: str | None = Field(
        default=None, validation_alias="AZURE_AI_AUTH_METHOD"
    )
    cloud: str | None = Field(default=None, validation_alias="AZURE_AI_CLOUD")
    tenant_id: str | None = Field(default=None, validation_alias="AZURE_TENANT_ID")
    client_id: str | None = Field(default=None, validation_alias="AZURE_CLIENT_ID")
    client_secret: str | None = Field(
        default=None, validation_alias="AZURE_CLIENT_SECRET", repr=False
    )
    bearer_token: str | None = Field(
        default=None, validation_alias="AZURE_AI_BEARER_TOKEN", repr=False
    )
    managed_identity_client_id: str | None = Field(
        default=None, validation_alias="AZURE_MANAGED_IDENTITY_CLIENT_ID"
    )

    model_config = SettingsConfigDict(extra="ignore", env_ignore_empty=True)
