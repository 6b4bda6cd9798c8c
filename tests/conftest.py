"""Shared fixtures and utilities for Timesheet SDK tests."""

import json
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import jwt
import pytest

from timesheet_sdk.auth.apikey import ApiKeyAuth
from timesheet_sdk.config import ClientConfig, RetryConfig
from timesheet_sdk.http import ApiClient

API_KEY = "ts_test123.secret456"
BASE_URL = "https://api.timesheet.io"
FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

ENV_VARS = (
    "TIMESHEET_API_KEY",
    "TIMESHEET_ACCESS_TOKEN",
    "TIMESHEET_CLIENT_ID",
    "TIMESHEET_CLIENT_SECRET",
    "TIMESHEET_REFRESH_TOKEN",
    "TIMESHEET_BASE_URL",
    "TIMESHEET_MAX_RETRIES",
)

Responder = Callable[[httpx.Request], httpx.Response]


# ============================================================================
# Helpers
# ============================================================================


def make_jwt(exp: datetime | None, **claims: Any) -> str:
    """Create a signed JWT with an optional exp claim."""
    payload: dict[str, Any] = {"sub": "user-1", **claims}
    if exp is not None:
        payload["exp"] = int(exp.timestamp())
    return jwt.encode(payload, "test-signing-secret-with-enough-length", algorithm="HS256")


def respond(
    status: int = 200,
    json_body: Any = None,
    headers: dict[str, str] | None = None,
    text: str | None = None,
) -> Responder:
    """Build a responder producing a fresh response per request."""

    def _respond(request: httpx.Request) -> httpx.Response:
        if json_body is not None:
            return httpx.Response(status, json=json_body, headers=headers)
        return httpx.Response(status, text=text or "", headers=headers)

    return _respond


class FakeApi:
    """MockTransport handler serving queued responses and recording requests.

    The last queued responder is reused once the queue runs dry.
    """

    def __init__(self, *responders: Responder):
        self.responders = list(responders) or [respond()]
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.responders.pop(0) if len(self.responders) > 1 else self.responders[0]
        return responder(request)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def json_body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def token_response_mock(payload: dict[str, Any], status: int = 200) -> MagicMock:
    """Create a mock token endpoint response."""
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload
    return response


def mock_token_http(*responses: MagicMock) -> AsyncMock:
    """Create a mock HTTP client whose post() returns the given responses."""
    mock_http = AsyncMock()
    mock_http.post = AsyncMock(side_effect=list(responses))
    mock_http.aclose = AsyncMock()
    return mock_http


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def api_key_auth() -> ApiKeyAuth:
    """Create API key authentication with a valid key."""
    return ApiKeyAuth(API_KEY)


@pytest.fixture
def make_api_client(api_key_auth: ApiKeyAuth) -> Callable[..., ApiClient]:
    """Factory for an ApiClient talking to a FakeApi."""

    def _make(fake: FakeApi, retry_config: RetryConfig | None = None, auth=None) -> ApiClient:
        return ApiClient(
            ClientConfig(
                authentication=auth or api_key_auth,
                base_url=BASE_URL,
                retry_config=retry_config or RetryConfig.default(),
                http_client=fake.http_client(),
            )
        )

    return _make


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove TIMESHEET_* variables, including any a .env load adds during the test."""
    for name in ENV_VARS:
        # setenv first so teardown also removes values set by load_dotenv
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch
