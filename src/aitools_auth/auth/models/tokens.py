"""Token models: wire responses, flow results and cache entries.

Contains the token endpoint response, the result handed back by interactive
flows, and the entries persisted by the disk cache.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, Field

# Tokens are considered expired this many seconds before their real expiry
TOKEN_EXPIRY_BUFFER_SECS = 60

DEFAULT_TOKEN_LIFETIME_SECS = 3600


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenResult:
    """Access token with the metadata needed for display and caching."""

    access_token: str
    expires_in_secs: int
    scope: str


@dataclass(frozen=True)
class ClientCredentialsRequest:
    """Client credentials grant parameters (RFC 6749 Section 4.4)."""

    token_endpoint: str
    client_id: str
    client_secret: str
    scope: str
    grant_type: str = "client_credentials"

    def to_form_data(self) -> dict[str, str]:
        return {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": self.scope,
        }


@dataclass(frozen=True)
class TokenRequest:
    """Authorization code exchange parameters (RFC 6749 Section 4.1.3).

    Includes the PKCE code_verifier (RFC 7636). Token requests must use form
    encoding, not JSON.
    """

    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str
    code_verifier: str
    scope: str | None = None
    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        data = {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "code_verifier": self.code_verifier,
        }
        if self.scope:
            data["scope"] = self.scope
        return data


class TokenResponse(BaseModel):
    """OAuth 2.0 token response (RFC 6749 Section 5).

    Covers both successful responses (Section 5.1) and error responses
    (Section 5.2), including the device-code error codes of RFC 8628.
    """

    access_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None
    scope: str | None = None

    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None

    def is_success(self) -> bool:
        return self.error is None and self.access_token is not None

    def is_error(self) -> bool:
        return self.error is not None

    def describe_error(self) -> str:
        if self.error_description:
            return f"{self.error}: {self.error_description}"
        return self.error or "unknown_error"

    def to_result(self, scope: str) -> TokenResult:
        """Convert a successful response into a TokenResult.

        Raises:
            ValueError: If response is not successful
        """
        if not self.is_success():
            raise ValueError("Cannot convert error response to TokenResult")

        return TokenResult(
            access_token=self.access_token,
            expires_in_secs=(
                self.expires_in
                if self.expires_in is not None
                else DEFAULT_TOKEN_LIFETIME_SECS
            ),
            scope=scope,
        )


class CachedTokenEntry(BaseModel):
    """A single token persisted in the disk cache.

    Identity key is (scope, tenant_id).
    """

    access_token: str
    expires_at: datetime
    scope: str
    tenant_id: str

    @classmethod
    def from_result(
        cls, result: TokenResult, tenant_id: str, now: datetime | None = None
    ) -> CachedTokenEntry:
        issued = now or utc_now()
        return cls(
            access_token=result.access_token,
            expires_at=issued + timedelta(seconds=result.expires_in_secs),
            scope=result.scope,
            tenant_id=tenant_id,
        )

    def is_valid(
        self,
        buffer_seconds: float = TOKEN_EXPIRY_BUFFER_SECS,
        now: datetime | None = None,
    ) -> bool:
        """Valid only while now + buffer < expires_at."""
        current = now or utc_now()
        return current + timedelta(seconds=buffer_seconds) < self._aware_expiry()

    def remaining_seconds(self, now: datetime | None = None) -> float:
        return (self._aware_expiry() - (now or utc_now())).total_seconds()

    def remaining_minutes(self, now: datetime | None = None) -> int:
        return int(self.remaining_seconds(now) // 60)

    def matches(self, scope: str, tenant_id: str) -> bool:
        return self.scope == scope and self.tenant_id == tenant_id

    def _aware_expiry(self) -> datetime:
        # Entries written without an offset are treated as UTC
        if self.expires_at.tzinfo is None:
            return self.expires_at.replace(tzinfo=timezone.utc)
        return self.expires_at


class TokenCacheFile(BaseModel):
    """On-disk token cache document: ``{"tokens": [...]}``."""

    tokens: list[CachedTokenEntry] = Field(default_factory=list)

    def get_valid_token(
        self,
        scope: str,
        tenant_id: str,
        buffer_seconds: float = TOKEN_EXPIRY_BUFFER_SECS,
        now: datetime | None = None,
    ) -> CachedTokenEntry | None:
        for entry in self.tokens:
            if entry.matches(scope, tenant_id) and entry.is_valid(buffer_seconds, now):
                return entry
        return None

    def insert(self, entry: CachedTokenEntry) -> None:
        """Insert an entry, replacing any existing one for the same key."""
        self.tokens = [
            t for t in self.tokens if not t.matches(entry.scope, entry.tenant_id)
        ]
        self.tokens.append(entry)

    def prune_expired(
        self,
        buffer_seconds: float = TOKEN_EXPIRY_BUFFER_SECS,
        now: datetime | None = None,
    ) -> int:
        before = len(self.tokens)
        self.tokens = [t for t in self.tokens if t.is_valid(buffer_seconds, now)]
        return before - len(self.tokens)
