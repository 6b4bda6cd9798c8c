"""Tests for the ApiClient request pipeline."""

from unittest.mock import AsyncMock, MagicMock, call, patch

import httpx
import pytest

from conftest import API_KEY, FakeApi, respond
from timesheet_sdk.auth.base import Authentication
from timesheet_sdk.config import RetryConfig
from timesheet_sdk.exceptions import (
    TimesheetApiError,
    TimesheetAuthError,
    TimesheetRateLimitError,
)
from timesheet_sdk.http import USER_AGENT, classify_error


@pytest.fixture
def mock_sleep():
    with patch("timesheet_sdk.http.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


class TestSuccessfulRequests:
    """Tests for the happy path."""

    @pytest.mark.asyncio
    async def test_get_returns_decoded_json(self, make_api_client) -> None:
        """Test that a 200 JSON response is decoded."""
        fake = FakeApi(respond(200, {"id": "p1", "title": "Website"}))
        api = make_api_client(fake)

        result = await api.get("/v1/projects/p1")

        assert result == {"id": "p1", "title": "Website"}
        assert fake.call_count == 1
        assert str(fake.requests[0].url) == "https://api.timesheet.io/v1/projects/p1"

    @pytest.mark.asyncio
    async def test_sends_default_and_auth_headers(self, make_api_client) -> None:
        """Test that default headers and the auth header are sent."""
        fake = FakeApi(respond(200, {}))
        api = make_api_client(fake)

        await api.get("/v1/profiles/me")

        headers = fake.requests[0].headers
        assert headers["Authorization"] == f"ApiKey {API_KEY}"
        assert headers["User-Agent"] == USER_AGENT
        assert headers["Accept"] == "application/json"
        assert headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self, make_api_client) -> None:
        """Test that the body is JSON encoded."""
        fake = FakeApi(respond(200, {"id": "t1"}))
        api = make_api_client(fake)

        await api.post("/v1/tags", {"name": "urgent"})

        assert fake.requests[0].method == "POST"
        assert fake.json_body() == {"name": "urgent"}

    @pytest.mark.asyncio
    async def test_query_params_drop_none(self, make_api_client) -> None:
        """Test that None-valued query parameters are not sent."""
        fake = FakeApi(respond(200, {"items": []}))
        api = make_api_client(fake)

        await api.get("/v1/projects", params={"limit": 10, "sort": None})

        params = fake.requests[0].url.params
        assert params["limit"] == "10"
        assert "sort" not in params

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self, make_api_client) -> None:
        """Test that an empty response body yields None."""
        fake = FakeApi(respond(204))
        api = make_api_client(fake)

        assert await api.delete("/v1/projects/p1") is None

    @pytest.mark.asyncio
    async def test_response_types(self, make_api_client) -> None:
        """Test text and bytes response decoding."""
        fake = FakeApi(respond(200, text="a,b\n1,2\n"))
        api = make_api_client(fake)

        text = await api.request("GET", "/v1/export", response_type="text")
        raw = await api.request("GET", "/v1/export", response_type="bytes")

        assert text == "a,b\n1,2\n"
        assert raw == b"a,b\n1,2\n"


class TestHeaderMerging:
    """Tests for merging caller headers with auth headers."""

    @pytest.mark.asyncio
    async def test_caller_headers_win_except_authorization(self, make_api_client) -> None:
        """Test that caller headers override defaults but not Authorization."""
        fake = FakeApi(respond(200, {}))
        api = make_api_client(fake)

        await api.request(
            "GET",
            "/v1/profiles/me",
            headers={"Authorization": "Bearer nope", "Accept": "text/plain", "X-Trace": "1"},
        )

        headers = fake.requests[0].headers
        assert headers["Authorization"] == f"ApiKey {API_KEY}"
        assert headers["Accept"] == "text/plain"
        assert headers["X-Trace"] == "1"

    @pytest.mark.asyncio
    async def test_token_endpoint_skips_auth(self, make_api_client) -> None:
        """Test that requests to the token endpoint carry no auth header."""
        auth = MagicMock(spec=Authentication)
        auth.get_auth_headers = AsyncMock(return_value={"Authorization": "Bearer x"})
        fake = FakeApi(respond(200, {"access_token": "abc"}))
        api = make_api_client(fake, auth=auth)

        await api.post("/oauth2/token", {"grant_type": "client_credentials"})

        assert "Authorization" not in fake.requests[0].headers
        auth.get_auth_headers.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_auth_headers_fetched_per_attempt(self, make_api_client, mock_sleep) -> None:
        """Test that auth headers are requested again on each retry."""
        auth = MagicMock(spec=Authentication)
        auth.get_auth_headers = AsyncMock(return_value={"Authorization": "Bearer x"})
        fake = FakeApi(respond(503), respond(200, {"ok": True}))
        api = make_api_client(fake, auth=auth)

        await api.get("/v1/timer")

        assert auth.get_auth_headers.await_count == 2

    @pytest.mark.asyncio
    async def test_auth_refresh_errors_propagate(self, make_api_client) -> None:
        """Test that a failing credential refresh aborts the request unchanged."""
        auth = MagicMock(spec=Authentication)
        error = TimesheetAuthError("Failed to refresh OAuth2 token: invalid_grant", 400)
        auth.get_auth_headers = AsyncMock(side_effect=error)
        fake = FakeApi(respond(200, {}))
        api = make_api_client(fake, auth=auth)

        with pytest.raises(TimesheetAuthError) as exc_info:
            await api.get("/v1/timer")

        assert exc_info.value is error
        assert fake.call_count == 0


class TestRetries:
    """Tests for the retry policy."""

    @pytest.mark.asyncio
    async def test_exhausted_retries_follow_backoff_schedule(
        self, make_api_client, mock_sleep
    ) -> None:
        """Test 4 attempts with 100/200/400ms delays on persistent 503."""
        fake = FakeApi(respond(503))
        api = make_api_client(fake)

        with pytest.raises(TimesheetApiError) as exc_info:
            await api.get("/v1/projects")

        assert fake.call_count == 4
        assert mock_sleep.await_args_list == [call(0.1), call(0.2), call(0.4)]
        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "Request failed with status code 503"

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, make_api_client, mock_sleep) -> None:
        """Test that 502, 502, then 200 succeeds after two retries."""
        fake = FakeApi(respond(502), respond(502), respond(200, {"id": "p1"}))
        api = make_api_client(fake)

        result = await api.get("/v1/projects/p1")

        assert result == {"id": "p1"}
        assert fake.call_count == 3
        assert mock_sleep.await_args_list == [call(0.1), call(0.2)]

    @pytest.mark.asyncio
    async def test_non_retryable_status_raises_immediately(
        self, make_api_client, mock_sleep
    ) -> None:
        """Test that a 400 is raised after one attempt with body details."""
        fake = FakeApi(respond(400, {"message": "Title is required", "code": "VALIDATION"}))
        api = make_api_client(fake)

        with pytest.raises(TimesheetApiError) as exc_info:
            await api.post("/v1/projects", {})

        assert fake.call_count == 1
        mock_sleep.assert_not_awaited()
        error = exc_info.value
        assert error.status_code == 400
        assert error.error_code == "VALIDATION"
        assert str(error) == "Title is required (HTTP 400, Code: VALIDATION)"
        assert "Title is required" in error.response_body

    @pytest.mark.asyncio
    async def test_unauthorized_is_never_retried(self, make_api_client, mock_sleep) -> None:
        """Test that 401 raises TimesheetAuthError after one attempt."""
        fake = FakeApi(respond(401, {"message": "Token expired"}))
        retry = RetryConfig(retryable_status_codes={401, 503})
        api = make_api_client(fake, retry_config=retry)

        with pytest.raises(TimesheetAuthError) as exc_info:
            await api.get("/v1/profiles/me")

        assert fake.call_count == 1
        mock_sleep.assert_not_awaited()
        assert exc_info.value.message == "Token expired"
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_unauthorized_default_message(self, make_api_client) -> None:
        """Test the fallback message for a 401 without a body."""
        fake = FakeApi(respond(401))
        api = make_api_client(fake)

        with pytest.raises(TimesheetAuthError, match="Authentication failed"):
            await api.get("/v1/profiles/me")

    @pytest.mark.asyncio
    async def test_rate_limit_is_never_retried(self, make_api_client, mock_sleep) -> None:
        """Test that 429 raises immediately even though 429 is retryable."""
        fake = FakeApi(respond(429, headers={"Retry-After": "120"}))
        api = make_api_client(fake)

        with pytest.raises(TimesheetRateLimitError) as exc_info:
            await api.get("/v1/tasks")

        assert fake.call_count == 1
        mock_sleep.assert_not_awaited()
        assert exc_info.value.retry_after == "120"
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_zero_retries_makes_one_attempt(self, make_api_client, mock_sleep) -> None:
        """Test that max_retries=0 disables retrying."""
        fake = FakeApi(respond(503))
        api = make_api_client(fake, retry_config=RetryConfig(max_retries=0))

        with pytest.raises(TimesheetApiError):
            await api.get("/v1/tasks")

        assert fake.call_count == 1
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delays_are_capped(self, make_api_client, mock_sleep) -> None:
        """Test that backoff never exceeds max_delay."""
        fake = FakeApi(respond(504))
        retry = RetryConfig(max_retries=3, initial_delay=1000, max_delay=1500)
        api = make_api_client(fake, retry_config=retry)

        with pytest.raises(TimesheetApiError):
            await api.get("/v1/tasks")

        assert mock_sleep.await_args_list == [call(1.0), call(1.5), call(1.5)]

    @pytest.mark.asyncio
    async def test_configured_client_error_is_retried(self, make_api_client, mock_sleep) -> None:
        """Test that a 4xx listed in the policy is retried."""
        fake = FakeApi(respond(400), respond(200, {"id": "p1"}))
        retry = RetryConfig(retryable_status_codes={400})
        api = make_api_client(fake, retry_config=retry)

        result = await api.get("/v1/projects/p1")

        assert result == {"id": "p1"}
        assert fake.call_count == 2
        assert mock_sleep.await_args_list == [call(0.1)]


class TestTransportErrors:
    """Tests for network failures."""

    @pytest.mark.asyncio
    async def test_connection_error_becomes_api_error(self, make_api_client) -> None:
        """Test that a network error is wrapped without a status code."""

        def fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        api = make_api_client(FakeApi(fail))

        with pytest.raises(TimesheetApiError) as exc_info:
            await api.get("/v1/tasks")

        assert exc_info.value.message == "Connection refused"
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_empty_transport_error_uses_unknown_message(self, make_api_client) -> None:
        """Test the fallback message for errors without text."""

        def fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadError("", request=request)

        api = make_api_client(FakeApi(fail))

        with pytest.raises(TimesheetApiError, match="Unknown error occurred"):
            await api.get("/v1/tasks")

    @pytest.mark.asyncio
    async def test_other_send_failures_become_api_error(self, make_api_client) -> None:
        """Test that non-network failures are wrapped with their message."""

        def fail(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("connection pool closed")

        api = make_api_client(FakeApi(fail))

        with pytest.raises(TimesheetApiError) as exc_info:
            await api.get("/v1/tasks")

        assert exc_info.value.message == "connection pool closed"
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_silent_failure_uses_unknown_message(self, make_api_client) -> None:
        """Test the fallback message for exceptions without text."""

        def fail(request: httpx.Request) -> httpx.Response:
            raise RuntimeError()

        api = make_api_client(FakeApi(fail))

        with pytest.raises(TimesheetApiError, match="Unknown error occurred"):
            await api.get("/v1/tasks")


class TestClassifyError:
    """Tests for mapping responses to error types."""

    def test_non_json_body(self) -> None:
        """Test that non-JSON error bodies use the generic message."""
        response = httpx.Response(500, text="<html>oops</html>")
        error = classify_error(response)
        assert type(error) is TimesheetApiError
        assert error.message == "Request failed with status code 500"
        assert error.response_body == "<html>oops</html>"

    def test_numeric_error_code_is_stringified(self) -> None:
        """Test that numeric body codes become strings."""
        response = httpx.Response(409, json={"message": "Conflict", "code": 1009})
        assert classify_error(response).error_code == "1009"


class TestLifecycle:
    """Tests for client ownership and closing."""

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self, make_api_client) -> None:
        """Test that an injected HTTP client is left open."""
        api = make_api_client(FakeApi())
        async with api:
            pass
        assert not api._http.is_closed

    @pytest.mark.asyncio
    async def test_owned_client_closed(self, api_key_auth) -> None:
        """Test that a client created by ApiClient is closed on exit."""
        from timesheet_sdk.config import ClientConfig
        from timesheet_sdk.http import ApiClient

        api = ApiClient(ClientConfig(authentication=api_key_auth))
        async with api:
            pass
        assert api._http.is_closed
