"""Retry policy, client configuration and environment settings."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
from dotenv import load_dotenv

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .auth.base import Authentication

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.timesheet.io"
DEFAULT_TIMEOUT = 30.0

DEFAULT_RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})

# Env file search paths in priority order
ENV_SEARCH_PATHS = [
    Path(".env"),
    Path.home() / ".config" / "timesheet" / ".env",
]


@dataclass(frozen=True)
class RetryConfig:
    """Immutable retry policy shared by every request of a client.

    Delays are in milliseconds. The delay before retry ``i`` (0-based) is
    ``min(initial_delay * backoff_multiplier ** i, max_delay)``.
    """

    max_retries: int = 3
    initial_delay: float = 100
    max_delay: float = 10000
    backoff_multiplier: float = 2.0
    retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.initial_delay < 0:
            raise ConfigurationError(f"initial_delay must be >= 0, got {self.initial_delay}")
        if self.max_delay < self.initial_delay:
            raise ConfigurationError(
                f"max_delay ({self.max_delay}) must be >= initial_delay ({self.initial_delay})"
            )
        if self.backoff_multiplier < 1:
            raise ConfigurationError(
                f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}"
            )
        # Accept any iterable of codes but always store a frozenset
        object.__setattr__(self, "retryable_status_codes", frozenset(self.retryable_status_codes))

    @classmethod
    def default(cls) -> "RetryConfig":
        """Return the default retry policy (3 retries on 429/502/503/504)."""
        return cls()

    def delay_for(self, attempt: int) -> float:
        """Get the backoff delay in milliseconds before retry ``attempt``."""
        return min(self.initial_delay * self.backoff_multiplier**attempt, self.max_delay)

    def is_retryable(self, status_code: int | None) -> bool:
        """Check if a response status should be retried under this policy."""
        return status_code is not None and status_code in self.retryable_status_codes


@dataclass
class ClientConfig:
    """Configuration for a single :class:`~timesheet_sdk.http.ApiClient`."""

    authentication: "Authentication"
    base_url: str = DEFAULT_BASE_URL
    retry_config: RetryConfig = field(default_factory=RetryConfig.default)
    timeout: float = DEFAULT_TIMEOUT
    http_client: httpx.AsyncClient | None = None


@dataclass
class Settings:
    """SDK settings resolved from the environment."""

    api_key: str | None = None
    access_token: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    refresh_token: str | None = None
    base_url: str = DEFAULT_BASE_URL
    max_retries: int = 3
    env_path: Path | None = None

    def has_credentials(self) -> bool:
        """Check if any authentication method is configured."""
        return bool(
            self.api_key
            or self.access_token
            or (self.client_id and self.client_secret and self.refresh_token)
        )

    def create_authentication(self) -> "Authentication":
        """Build an Authentication from the configured credentials.

        Precedence: API key, then refreshable OAuth2 credentials, then a
        bare access token.

        Raises:
            ConfigurationError: If no credentials are configured
        """
        from .auth.apikey import ApiKeyAuth
        from .auth.oauth2 import OAuth2Auth

        if self.api_key:
            return ApiKeyAuth(self.api_key)
        if self.client_id and self.client_secret and self.refresh_token:
            return OAuth2Auth(
                self.access_token,
                client_id=self.client_id,
                client_secret=self.client_secret,
                refresh_token=self.refresh_token,
            )
        if self.access_token:
            return OAuth2Auth(self.access_token)
        raise ConfigurationError(
            "Authentication must be configured: set TIMESHEET_API_KEY, "
            "TIMESHEET_ACCESS_TOKEN, or TIMESHEET_CLIENT_ID, TIMESHEET_CLIENT_SECRET "
            "and TIMESHEET_REFRESH_TOKEN"
        )

    def retry_config(self) -> RetryConfig:
        """Build the retry policy for these settings."""
        return RetryConfig(max_retries=self.max_retries)


def find_env_file(explicit_path: Path | None = None) -> Path | None:
    """Find the .env file to load, if any."""
    if explicit_path:
        return explicit_path if explicit_path.exists() else None
    for env_path in ENV_SEARCH_PATHS:
        if env_path.exists():
            return env_path
    return None


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def load_settings(env_path: Path | None = None) -> Settings:
    """Load settings from the environment, after loading a .env file.

    Variables already present in the environment take precedence over the
    .env file.

    Args:
        env_path: Explicit .env path; otherwise ENV_SEARCH_PATHS is searched

    Returns:
        Settings instance
    """
    found_env = find_env_file(env_path)
    if found_env:
        logger.debug(f"Loading environment from {found_env}")
        load_dotenv(found_env, override=False)

    return Settings(
        api_key=os.environ.get("TIMESHEET_API_KEY") or None,
        access_token=os.environ.get("TIMESHEET_ACCESS_TOKEN") or None,
        client_id=os.environ.get("TIMESHEET_CLIENT_ID") or None,
        client_secret=os.environ.get("TIMESHEET_CLIENT_SECRET") or None,
        refresh_token=os.environ.get("TIMESHEET_REFRESH_TOKEN") or None,
        base_url=os.environ.get("TIMESHEET_BASE_URL") or DEFAULT_BASE_URL,
        max_retries=_int_from_env("TIMESHEET_MAX_RETRIES", 3),
        env_path=found_env,
    )
