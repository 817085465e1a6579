from typing import Any
from unittest.mock import MagicMock

import pytest


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_response(
    status_code: int = 200, json_data: Any = None, text: str = ""
) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    if json_data is None:
        response.json.side_effect = ValueError("No JSON body")
    else:
        response.json.return_value = json_data
    response.text = text
    return response


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def response_factory():
    return make_response


SETTINGS_VARIABLES = (
    "AZURE_AI_API_KEY",
    "AZURE_AI_REGION",
    "AZURE_AI_AUTH_METHOD",
    "AZURE_AI_CLOUD",
    "AZURE_TENANT_ID",
    "AZURE_CLIENT_ID",
    "AZURE_CLIENT_SECRET",
    "AZURE_AI_BEARER_TOKEN",
    "AZURE_MANAGED_IDENTITY_CLIENT_ID",
    "IDENTITY_ENDPOINT",
    "IDENTITY_HEADER",
    "MSI_ENDPOINT",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's Azure variables out of settings under test."""
    for name in SETTINGS_VARIABLES:
        monkeypatch.delenv(name, raising=False)
