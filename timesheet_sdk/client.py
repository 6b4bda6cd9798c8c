"""High-level client bundling authentication, transport and resources."""

import logging
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType

import httpx

from .auth.apikey import ApiKeyAuth
from .auth.base import Authentication
from .auth.oauth2 import OAuth2Auth
from .config import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, ClientConfig, RetryConfig, load_settings
from .exceptions import ConfigurationError
from .http import ApiClient
from .resources import (
    ProfileResource,
    ProjectResource,
    TagResource,
    TaskResource,
    TeamResource,
    TimerResource,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OAuth2Credentials:
    """Client credentials plus refresh token for a refreshable OAuth2 session."""

    client_id: str
    client_secret: str
    refresh_token: str


def create_authentication(
    api_key: str | None = None,
    access_token: str | None = None,
    oauth2: OAuth2Credentials | None = None,
    authentication: Authentication | None = None,
) -> Authentication:
    """Pick an Authentication from the first credential given.

    Precedence: API key, bearer access token, OAuth2 credentials, then an
    explicit Authentication instance.

    Raises:
        ConfigurationError: If no credential is given
    """
    if api_key:
        return ApiKeyAuth(api_key)
    if access_token:
        return OAuth2Auth(access_token)
    if oauth2 is not None:
        return OAuth2Auth(
            client_id=oauth2.client_id,
            client_secret=oauth2.client_secret,
            refresh_token=oauth2.refresh_token,
        )
    if authentication is not None:
        return authentication
    raise ConfigurationError("Authentication must be configured")


class TimesheetClient:
    """Entry point for the Timesheet API.

    Usage:
        async with TimesheetClient(api_key="ts_abc.def") as client:
            me = await client.profile.get()
            async for project in await client.projects.list():
                print(project["title"])
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        access_token: str | None = None,
        oauth2: OAuth2Credentials | None = None,
        authentication: Authentication | None = None,
        base_url: str = DEFAULT_BASE_URL,
        retry_config: RetryConfig | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.authentication = create_authentication(api_key, access_token, oauth2, authentication)
        self.api = ApiClient(
            ClientConfig(
                authentication=self.authentication,
                base_url=base_url,
                retry_config=retry_config or RetryConfig.default(),
                timeout=timeout,
                http_client=http_client,
            )
        )

        self.projects = ProjectResource(self.api)
        self.tags = TagResource(self.api)
        self.teams = TeamResource(self.api)
        self.tasks = TaskResource(self.api)
        self.timer = TimerResource(self.api)
        self.profile = ProfileResource(self.api)

    def __repr__(self) -> str:
        return f"TimesheetClient(base_url={self.api.base_url!r})"

    @classmethod
    def from_env(
        cls,
        env_path: Path | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> "TimesheetClient":
        """Create a client from TIMESHEET_* environment variables and .env.

        Raises:
            ConfigurationError: If no credentials are configured
        """
        settings = load_settings(env_path)
        return cls(
            authentication=settings.create_authentication(),
            base_url=settings.base_url,
            retry_config=settings.retry_config(),
            http_client=http_client,
        )

    async def __aenter__(self) -> "TimesheetClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.api.aclose()
