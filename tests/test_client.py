"""Tests for the high-level TimesheetClient."""

from pathlib import Path

import httpx
import pytest

from conftest import API_KEY, FakeApi, respond
from timesheet_sdk.auth.apikey import ApiKeyAuth
from timesheet_sdk.auth.oauth2 import OAuth2Auth
from timesheet_sdk.client import OAuth2Credentials, TimesheetClient
from timesheet_sdk.config import RetryConfig
from timesheet_sdk.exceptions import ConfigurationError


class TestAuthenticationSelection:
    """Tests for choosing the authentication scheme."""

    def test_api_key(self):
        """Test that api_key builds ApiKeyAuth."""
        client = TimesheetClient(API_KEY)
        assert isinstance(client.authentication, ApiKeyAuth)

    def test_access_token(self):
        """Test that access_token builds bearer-only OAuth2Auth."""
        client = TimesheetClient(access_token="token")
        assert isinstance(client.authentication, OAuth2Auth)
        assert client.authentication.refresh_token is None

    def test_oauth2_credentials(self):
        """Test that OAuth2 credentials build a refreshable OAuth2Auth."""
        client = TimesheetClient(
            oauth2=OAuth2Credentials(client_id="id", client_secret="secret", refresh_token="rt")
        )
        assert isinstance(client.authentication, OAuth2Auth)
        assert client.authentication.needs_refresh()

    def test_explicit_authentication(self):
        """Test passing an Authentication instance."""
        auth = ApiKeyAuth(API_KEY)
        assert TimesheetClient(authentication=auth).authentication is auth

    def test_api_key_wins(self):
        """Test precedence when several credentials are given."""
        client = TimesheetClient(API_KEY, access_token="token")
        assert isinstance(client.authentication, ApiKeyAuth)

    def test_no_credentials(self):
        """Test that a client needs credentials."""
        with pytest.raises(ConfigurationError, match="Authentication must be configured"):
            TimesheetClient()


class TestClient:
    """Tests for client wiring."""

    def test_resources_share_api_client(self):
        """Test that every resource uses the same ApiClient."""
        client = TimesheetClient(API_KEY, base_url="https://staging.timesheet.io/")
        resources = [
            client.projects,
            client.tags,
            client.teams,
            client.tasks,
            client.timer,
            client.profile,
        ]
        assert all(resource.http is client.api for resource in resources)
        assert client.api.base_url == "https://staging.timesheet.io"

    def test_retry_config_passed_through(self):
        """Test that a custom retry policy reaches the ApiClient."""
        retry = RetryConfig(max_retries=0)
        assert TimesheetClient(API_KEY, retry_config=retry).api.retry_config is retry

    @pytest.mark.asyncio
    async def test_request_through_resource(self):
        """Test an end-to-end call with an injected HTTP client."""
        fake = FakeApi(respond(200, {"email": "ada@example.com"}))
        http = fake.http_client()

        async with TimesheetClient(API_KEY, http_client=http) as client:
            profile = await client.profile.get()

        assert profile == {"email": "ada@example.com"}
        assert fake.requests[0].headers["Authorization"] == f"ApiKey {API_KEY}"
        assert not http.is_closed

    @pytest.mark.asyncio
    async def test_owned_http_client_closed(self):
        """Test that the client closes the HTTP client it created."""
        async with TimesheetClient(API_KEY) as client:
            pass
        assert client.api._http.is_closed


class TestFromEnv:
    """Tests for TimesheetClient.from_env."""

    def test_from_env_file(self, clean_env, tmp_path: Path):
        """Test building a client from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text(
            f"TIMESHEET_API_KEY={API_KEY}\n"
            "TIMESHEET_BASE_URL=https://staging.timesheet.io\n"
            "TIMESHEET_MAX_RETRIES=1\n"
        )

        client = TimesheetClient.from_env(env_file)

        assert isinstance(client.authentication, ApiKeyAuth)
        assert client.api.base_url == "https://staging.timesheet.io"
        assert client.api.retry_config.max_retries == 1

    def test_from_env_without_credentials(self, clean_env, monkeypatch):
        """Test the error when the environment has no credentials."""
        monkeypatch.setattr("timesheet_sdk.config.ENV_SEARCH_PATHS", [])
        with pytest.raises(ConfigurationError):
            TimesheetClient.from_env()

    def test_from_env_uses_http_client(self, clean_env, monkeypatch):
        """Test that an injected HTTP client is used."""
        monkeypatch.setattr("timesheet_sdk.config.ENV_SEARCH_PATHS", [])
        clean_env.setenv("TIMESHEET_ACCESS_TOKEN", "token")
        http = httpx.AsyncClient()

        client = TimesheetClient.from_env(http_client=http)

        assert client.api._http is http
