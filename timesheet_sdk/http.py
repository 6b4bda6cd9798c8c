"""HTTP request pipeline with authentication, retry and error translation.

Every call made through :class:`ApiClient` goes through the same steps:

1. Fetch auth headers from the configured Authentication (which may
   refresh credentials first) and merge them into the request
2. Send the request
3. On failure, classify it: 401 and 429 are raised immediately, statuses in
   the retry policy are retried with exponential backoff, everything else
   is raised as a TimesheetApiError
"""

import asyncio
import logging
from types import TracebackType
from typing import Any, Literal
from urllib.parse import urlsplit

import httpx

from . import __version__
from .config import ClientConfig, RetryConfig
from .exceptions import (
    TimesheetApiError,
    TimesheetAuthError,
    TimesheetError,
    TimesheetRateLimitError,
)

logger = logging.getLogger(__name__)

ResponseType = Literal["json", "text", "bytes"]

USER_AGENT = f"timesheet-python-sdk/{__version__}"

DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Content-Type": "application/json",
    "Accept": "application/json",
}

# Requests to the token endpoint carry their own credentials
TOKEN_ENDPOINT_PATH = "/oauth2/token"

UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"


def _is_token_endpoint(path: str) -> bool:
    return urlsplit(path).path.rstrip("/").endswith(TOKEN_ENDPOINT_PATH)


def _clean_params(params: dict[str, Any] | None) -> dict[str, Any] | None:
    """Drop unset query parameters."""
    if not params:
        return None
    return {key: value for key, value in params.items() if value is not None}


def _error_payload(response: httpx.Response) -> dict[str, Any]:
    """Parse an error response body as a JSON object, if it is one."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def classify_error(response: httpx.Response) -> TimesheetApiError:
    """Translate a failed response into the matching error type."""
    status = response.status_code
    payload = _error_payload(response)
    message = payload.get("message")

    if status == 401:
        return TimesheetAuthError(message or "Authentication failed", 401, response.text)

    if status == 429:
        return TimesheetRateLimitError("Rate limit exceeded", response.headers.get("Retry-After"))

    code = payload.get("code")
    return TimesheetApiError(
        message or f"Request failed with status code {status}",
        status,
        response.text,
        str(code) if code is not None else None,
    )


class ApiClient:
    """Async HTTP client for the Timesheet API.

    Usage:
        async with ApiClient(ClientConfig(authentication=ApiKeyAuth(key))) as api:
            projects = await api.get("/v1/projects", params={"limit": 10})

    The client holds its Authentication and RetryConfig by reference and
    never modifies them. It has no overall deadline; wrap calls in
    ``asyncio.wait_for`` if one is needed.
    """

    def __init__(self, config: ClientConfig) -> None:
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.authentication = config.authentication
        self.retry_config: RetryConfig = config.retry_config

        self._owns_http = config.http_client is None
        self._http = config.http_client or httpx.AsyncClient(
            timeout=config.timeout,
            headers=DEFAULT_HEADERS,
            follow_redirects=True,
        )

    def __repr__(self) -> str:
        return f"ApiClient(base_url={self.base_url!r}, authentication={self.authentication!r})"

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _build_headers(
        self, path: str, overrides: dict[str, str] | None
    ) -> httpx.Headers:
        headers = httpx.Headers(DEFAULT_HEADERS)
        if overrides:
            headers.update(overrides)

        if _is_token_endpoint(path):
            return headers

        auth_headers = await self.authentication.get_auth_headers()
        for name, value in auth_headers.items():
            # Auth always owns Authorization; other caller headers win
            if name.lower() == "authorization" or name not in headers:
                headers[name] = value
        return headers

    @staticmethod
    def _decode(response: httpx.Response, response_type: ResponseType) -> Any:
        if response_type == "bytes":
            return response.content
        if response_type == "text":
            return response.text
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        response_type: ResponseType = "json",
    ) -> Any:
        """Make an HTTP request with retry support.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            body: JSON-serializable request body
            params: Query parameters (None values are dropped)
            headers: Header overrides
            response_type: How to decode the response body

        Returns:
            The decoded response body

        Raises:
            TimesheetAuthError: On HTTP 401 (never retried)
            TimesheetRateLimitError: On HTTP 429 (never retried)
            TimesheetApiError: On other HTTP errors, after retries are
                exhausted, or on network failure
        """
        retry = self.retry_config
        url = self._url(path)
        total_attempts = retry.max_retries + 1
        query = _clean_params(params)

        for attempt in range(total_attempts):
            request_headers = await self._build_headers(path, headers)

            logger.debug(f"{method} {url} (attempt {attempt + 1}/{total_attempts})")

            try:
                response = await self._http.request(
                    method,
                    url,
                    params=query,
                    json=body,
                    headers=request_headers,
                )
            except httpx.RequestError as e:
                raise TimesheetApiError(str(e) or UNKNOWN_ERROR_MESSAGE) from e
            except TimesheetError:
                raise
            except Exception as e:
                # Invalid URLs or headers fail before anything is sent
                raise TimesheetApiError(str(e) or UNKNOWN_ERROR_MESSAGE) from e

            if response.is_success:
                return self._decode(response, response_type)

            error = classify_error(response)
            if isinstance(error, (TimesheetAuthError, TimesheetRateLimitError)):
                raise error

            if attempt < retry.max_retries and retry.is_retryable(response.status_code):
                delay = retry.delay_for(attempt)
                logger.warning(
                    f"{method} {path} returned HTTP {response.status_code}, "
                    f"retrying in {delay:.0f}ms ({attempt + 1}/{retry.max_retries})"
                )
                await asyncio.sleep(delay / 1000)
                continue

            raise error

        # range() always yields at least one attempt
        raise TimesheetApiError(UNKNOWN_ERROR_MESSAGE)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET request."""
        return await self.request("GET", path, params=params)

    async def post(
        self, path: str, body: Any = None, params: dict[str, Any] | None = None
    ) -> Any:
        """POST request."""
        return await self.request("POST", path, body=body, params=params)

    async def put(
        self, path: str, body: Any = None, params: dict[str, Any] | None = None
    ) -> Any:
        """PUT request."""
        return await self.request("PUT", path, body=body, params=params)

    async def delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """DELETE request."""
        return await self.request("DELETE", path, params=params)
