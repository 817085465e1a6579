import httpx

from aitools_auth.auth.credentials import (
    ApiKey,
    BearerToken,
    ProviderAuth,
    apply_to_headers,
)
from aitools_auth.auth.providers import ApiKeyProvider


class TestApplyToHeaders:
    def test_api_key_sets_subscription_header(self):
        headers = {"Accept": "application/json"}

        apply_to_headers(ApiKey("key-1"), headers)

        assert headers == {
            "Accept": "application/json",
            "Ocp-Apim-Subscription-Key": "key-1",
        }

    def test_bearer_token_replaces_api_key(self):
        # Arrange
        headers = {"Ocp-Apim-Subscription-Key": "key-1"}

        # Act
        apply_to_headers(BearerToken("token-1"), headers)

        # Assert - exactly one credential header
        assert headers == {"Authorization": "Bearer token-1"}

    def test_api_key_replaces_bearer_token(self):
        headers = httpx.Headers({"Authorization": "Bearer stale"})

        apply_to_headers(ApiKey("key-1"), headers)

        assert "Authorization" not in headers
        assert headers["Ocp-Apim-Subscription-Key"] == "key-1"

    def test_secrets_hidden_from_repr(self):
        assert "key-1" not in repr(ApiKey("key-1"))
        assert "token-1" not in repr(BearerToken("token-1"))


class TestProviderAuth:
    async def test_injects_header_into_requests(self):
        # Arrange
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            auth=ProviderAuth(ApiKeyProvider("key-1")),
        )

        # Act
        async with client:
            response = await client.get("https://eastus.api.cognitive.microsoft.com/x")

        # Assert
        assert response.status_code == 200
        assert seen[0].headers["Ocp-Apim-Subscription-Key"] == "key-1"
        assert "Authorization" not in seen[0].headers
