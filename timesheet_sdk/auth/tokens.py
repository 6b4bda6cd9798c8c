"""Token state shared by the OAuth authentication schemes.

This module provides:
- TokenState: access/refresh token pair with JWT-derived expiry
- request_token: form-encoded POST to an OAuth token endpoint
- SingleFlight: one in-flight refresh per authentication instance
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import jwt

from ..exceptions import TimesheetAuthError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_ENDPOINT = "https://api.timesheet.io/oauth2/token"
DEFAULT_AUTHORIZATION_ENDPOINT = "https://api.timesheet.io/oauth2/auth"

# Refresh this long before the access token expires
REFRESH_BUFFER = timedelta(minutes=5)

# Assumed lifetime of access tokens that cannot be decoded as JWTs
FALLBACK_TOKEN_LIFETIME = timedelta(hours=1)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def token_expiry(access_token: str) -> datetime | None:
    """Derive the expiry of an access token from its JWT ``exp`` claim.

    The signature is not verified; the token is only inspected. Opaque
    (non-JWT) tokens are assumed to live for FALLBACK_TOKEN_LIFETIME.

    Returns:
        Expiry as a UTC datetime, or None if the JWT carries no ``exp``
    """
    try:
        claims = jwt.decode(access_token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        logger.debug("Access token is not a decodable JWT, assuming 1 hour lifetime")
        return _utcnow() + FALLBACK_TOKEN_LIFETIME

    exp = claims.get("exp")
    if exp is None:
        return None
    try:
        return _EPOCH + timedelta(seconds=float(exp))
    except (TypeError, ValueError, OverflowError):
        logger.debug(f"Ignoring unusable exp claim: {exp!r}")
        return None


@dataclass
class TokenState:
    """Mutable OAuth token state.

    Attributes:
        access_token: Current access token ("" until the first refresh)
        refresh_token: Refresh token, if the grant supports refreshing
        expires_at: When the access token expires (UTC), if known
    """

    access_token: str = ""
    refresh_token: str | None = None
    expires_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.access_token and self.expires_at is None:
            self.expires_at = token_expiry(self.access_token)

    def can_refresh(self) -> bool:
        """Check if a refresh token is available."""
        return bool(self.refresh_token)

    def needs_refresh(self) -> bool:
        """Check if the access token must be refreshed now.

        True when a refresh token exists and either no access token has been
        obtained yet or the token expires within REFRESH_BUFFER.
        """
        if self.refresh_token and not self.access_token:
            return True
        if not self.refresh_token or self.expires_at is None:
            return False
        return _utcnow() + REFRESH_BUFFER >= self.expires_at

    def update(self, token_response: dict[str, Any]) -> None:
        """Apply a token endpoint response, rotating the refresh token if sent."""
        self.access_token = token_response["access_token"]
        if token_response.get("refresh_token"):
            self.refresh_token = token_response["refresh_token"]
        self.expires_at = token_expiry(self.access_token)

    def bearer_header(self) -> str:
        return f"Bearer {self.access_token}"


def _error_detail(response: httpx.Response) -> str:
    """Extract the safe OAuth error fields from a failed token response."""
    try:
        error_data = response.json()
    except Exception:
        # Don't include raw response body - it might contain tokens or secrets
        return ""
    if not isinstance(error_data, dict):
        return ""
    error = error_data.get("error", "")
    description = error_data.get("error_description", "")
    if error and description:
        return f": {error} - {description}"
    if error or description:
        return f": {error or description}"
    return ""


async def request_token(
    token_endpoint: str,
    data: dict[str, str],
    failure_message: str,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = 30.0,
) -> dict[str, Any]:
    """POST a form-encoded grant to a token endpoint.

    Args:
        token_endpoint: The token endpoint URL
        data: Form fields (grant_type, client_id, ...)
        failure_message: Prefix for error messages, e.g. "Failed to refresh token"
        http_client: Optional HTTP client to use
        timeout: Request timeout in seconds when no client is given

    Returns:
        Token endpoint response as dictionary, guaranteed to contain access_token

    Raises:
        TimesheetAuthError: If the request fails or the response is unusable
    """
    http = http_client or httpx.AsyncClient(timeout=timeout)
    should_close = http_client is None

    logger.debug(f"Requesting token ({data.get('grant_type')}) from {token_endpoint}")

    try:
        response = await http.post(
            token_endpoint,
            data=data,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            },
        )

        if response.status_code != 200:
            raise TimesheetAuthError(
                f"{failure_message}{_error_detail(response)}",
                status_code=response.status_code,
            )

        try:
            result = response.json()
        except ValueError as e:
            raise TimesheetAuthError(
                f"{failure_message}: token response was not valid JSON",
                status_code=response.status_code,
            ) from e

        if not isinstance(result, dict) or not result.get("access_token"):
            raise TimesheetAuthError(
                f"{failure_message}: token response missing access_token",
                status_code=response.status_code,
            )

        return result

    except httpx.RequestError as e:
        raise TimesheetAuthError(f"{failure_message}: {e}", status_code=None) from e
    finally:
        if should_close:
            await http.aclose()


def _consume_exception(task: asyncio.Task[None]) -> None:
    """Mark a finished task's exception as retrieved.

    Waiters still receive it through the shield; this only matters when
    every waiter was cancelled before the operation finished.
    """
    if not task.cancelled() and task.exception() is not None:
        logger.debug(f"Token refresh failed: {task.exception()}")


class SingleFlight:
    """Run at most one instance of an async operation at a time.

    Callers arriving while the operation is in flight await the same task,
    so they all observe the same outcome (result or exception).
    """

    def __init__(self) -> None:
        self._task: asyncio.Task[None] | None = None

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, operation: Callable[[], Coroutine[Any, Any, None]]) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(operation())
            self._task.add_done_callback(_consume_exception)
        task = self._task

        try:
            # A cancelled caller must not cancel the refresh for the others
            await asyncio.shield(task)
        finally:
            if task.done() and self._task is task:
                self._task = None
