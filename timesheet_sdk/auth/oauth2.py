"""OAuth2 bearer authentication with refresh-token support."""

import logging
from collections.abc import MutableMapping
from datetime import datetime
from urllib.parse import urlencode

import httpx

from ..exceptions import ConfigurationError
from .base import Authentication
from .tokens import (
    DEFAULT_AUTHORIZATION_ENDPOINT,
    DEFAULT_TOKEN_ENDPOINT,
    SingleFlight,
    TokenState,
    request_token,
)

logger = logging.getLogger(__name__)


class OAuth2Auth(Authentication):
    """OAuth2 bearer token authentication with automatic refresh.

    Two modes:
    - Bearer only: ``OAuth2Auth("access-token")``; never refreshes.
    - Refreshable: ``OAuth2Auth(client_id=..., client_secret=...,
      refresh_token=...)``; the first request triggers a refresh, and the
      token is refreshed again when it is within 5 minutes of expiry.

    Concurrent refreshes on one instance share a single token request.
    """

    def __init__(
        self,
        access_token: str | None = None,
        *,
        client_id: str | None = None,
        client_secret: str | None = None,
        refresh_token: str | None = None,
        token_endpoint: str = DEFAULT_TOKEN_ENDPOINT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if refresh_token:
            if not client_id or not client_secret:
                raise ConfigurationError(
                    "client_id and client_secret are required to refresh OAuth2 tokens"
                )
        elif not access_token:
            raise ConfigurationError("OAuth2 access token cannot be empty")

        self.client_id = client_id
        self.client_secret = client_secret
        self.token_endpoint = token_endpoint
        self._http_client = http_client
        self._tokens = TokenState(access_token=access_token or "", refresh_token=refresh_token)
        self._refresh_flight = SingleFlight()

    def __repr__(self) -> str:
        return (
            f"OAuth2Auth(client_id={self.client_id!r}, "
            f"refreshable={self._tokens.can_refresh()})"
        )

    @property
    def access_token(self) -> str:
        return self._tokens.access_token

    @property
    def refresh_token(self) -> str | None:
        return self._tokens.refresh_token

    @property
    def token_expiry(self) -> datetime | None:
        return self._tokens.expires_at

    def apply_auth(self, headers: MutableMapping[str, str]) -> None:
        headers["Authorization"] = self._tokens.bearer_header()

    def needs_refresh(self) -> bool:
        return self._tokens.needs_refresh()

    async def refresh(self) -> None:
        """Exchange the refresh token for a new access token.

        Raises:
            ConfigurationError: If no refresh token is configured
            TimesheetAuthError: If the token endpoint rejects the refresh
        """
        if not self._tokens.can_refresh():
            raise ConfigurationError("Cannot refresh without refresh token")
        await self._refresh_flight.run(self._perform_refresh)

    async def _perform_refresh(self) -> None:
        data = {
            "grant_type": "refresh_token",
            "refresh_token": self._tokens.refresh_token or "",
            "client_id": self.client_id or "",
            "client_secret": self.client_secret or "",
        }
        response = await request_token(
            self.token_endpoint,
            data,
            "Failed to refresh OAuth2 token",
            http_client=self._http_client,
        )
        self._tokens.update(response)
        logger.debug(f"Refreshed OAuth2 access token (expires {self._tokens.expires_at})")

    async def get_auth_headers(self) -> dict[str, str]:
        if self.needs_refresh():
            await self.refresh()
        return {"Authorization": self._tokens.bearer_header()}

    @classmethod
    async def from_authorization_code(
        cls,
        client_id: str,
        client_secret: str,
        authorization_code: str,
        redirect_uri: str,
        *,
        token_endpoint: str = DEFAULT_TOKEN_ENDPOINT,
        http_client: httpx.AsyncClient | None = None,
    ) -> "OAuth2Auth":
        """Exchange an authorization code for tokens.

        Returns:
            A refreshable instance if the server issued a refresh token,
            otherwise a bearer-only instance

        Raises:
            TimesheetAuthError: If the code exchange fails
        """
        response = await request_token(
            token_endpoint,
            {
                "grant_type": "authorization_code",
                "code": authorization_code,
                "redirect_uri": redirect_uri,
                "client_id": client_id,
                "client_secret": client_secret,
            },
            "Failed to exchange authorization code",
            http_client=http_client,
        )

        refresh_token = response.get("refresh_token")
        if refresh_token:
            return cls(
                response["access_token"],
                client_id=client_id,
                client_secret=client_secret,
                refresh_token=refresh_token,
                token_endpoint=token_endpoint,
                http_client=http_client,
            )
        return cls(response["access_token"], token_endpoint=token_endpoint, http_client=http_client)

    @staticmethod
    def build_authorization_url(
        client_id: str,
        redirect_uri: str,
        state: str | None = None,
        *,
        authorization_endpoint: str = DEFAULT_AUTHORIZATION_ENDPOINT,
    ) -> str:
        """Build the URL to send the user to for authorization.

        Args:
            client_id: The OAuth2 client ID
            redirect_uri: Where the server redirects back with the code
            state: Optional CSRF protection value
            authorization_endpoint: Authorization endpoint URL

        Returns:
            Complete authorization URL
        """
        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
        }
        if state:
            params["state"] = state

        return f"{authorization_endpoint}?{urlencode(params)}"
