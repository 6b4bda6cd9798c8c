"""OAuth 2.1 authentication with PKCE and resource indicators.

OAuth 2.1 consolidates OAuth 2.0 best practices:
- PKCE is required for every client, public or confidential
- The implicit and password grants are removed

This module supports the authorization code flow with PKCE, the refresh
token flow with automatic refresh, and RFC 8707 resource indicators.

Typical flow:
    pkce = OAuth21Auth.generate_pkce()
    url = OAuth21Auth.build_authorization_url(
        client_id="my-client",
        redirect_uri="https://my-app.example/callback",
        code_challenge=pkce.code_challenge,
        state=generate_state(),
    )
    # ... user authorizes, callback receives ``code`` ...
    auth = await OAuth21Auth.from_authorization_code(
        client_id="my-client",
        authorization_code=code,
        redirect_uri="https://my-app.example/callback",
        code_verifier=pkce.code_verifier,
    )
"""

import logging
from collections.abc import MutableMapping
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import urlencode

import httpx

from ..exceptions import ConfigurationError
from .base import Authentication
from .pkce import (
    CodeChallengeMethod,
    PkceCodePair,
    generate_pkce_code_pair,
    is_valid_code_verifier,
)
from .tokens import (
    DEFAULT_AUTHORIZATION_ENDPOINT,
    DEFAULT_TOKEN_ENDPOINT,
    SingleFlight,
    TokenState,
    request_token,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshOptions:
    """Credentials for a refreshable OAuth 2.1 session.

    ``client_secret`` is omitted for public clients relying on PKCE alone.
    """

    client_id: str
    refresh_token: str
    client_secret: str | None = None
    resource: str | None = None


class OAuth21Auth(Authentication):
    """OAuth 2.1 bearer authentication with single-flight token refresh.

    Construct with a bare access token, or with :class:`RefreshOptions` to
    start without an access token and refresh lazily on first use.
    """

    def __init__(
        self,
        token_or_options: str | RefreshOptions,
        *,
        access_token: str | None = None,
        token_endpoint: str = DEFAULT_TOKEN_ENDPOINT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.token_endpoint = token_endpoint
        self._http_client = http_client
        self._refresh_flight = SingleFlight()

        if isinstance(token_or_options, RefreshOptions):
            if not token_or_options.client_id:
                raise ConfigurationError("client_id is required to refresh OAuth 2.1 tokens")
            if not token_or_options.refresh_token:
                raise ConfigurationError("refresh_token cannot be empty")
            self.client_id: str | None = token_or_options.client_id
            self.client_secret = token_or_options.client_secret
            self.resource = token_or_options.resource
            self._tokens = TokenState(
                access_token=access_token or "",
                refresh_token=token_or_options.refresh_token,
            )
        else:
            if not token_or_options:
                raise ConfigurationError("OAuth 2.1 access token cannot be empty")
            self.client_id = None
            self.client_secret = None
            self.resource = None
            self._tokens = TokenState(access_token=token_or_options)

    def __repr__(self) -> str:
        return (
            f"OAuth21Auth(client_id={self.client_id!r}, resource={self.resource!r}, "
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

    @property
    def is_refreshing(self) -> bool:
        """Check if a token refresh is currently in flight."""
        return self._refresh_flight.in_flight

    def apply_auth(self, headers: MutableMapping[str, str]) -> None:
        headers["Authorization"] = self._tokens.bearer_header()

    def needs_refresh(self) -> bool:
        return self._tokens.needs_refresh()

    async def refresh(self) -> None:
        """Refresh the access token.

        Concurrent callers share one in-flight token request and all see
        the same outcome.

        Raises:
            ConfigurationError: If no refresh token is configured
            TimesheetAuthError: If the token endpoint rejects the refresh
        """
        if not self._tokens.can_refresh():
            raise ConfigurationError("Cannot refresh without refresh token")
        await self._refresh_flight.run(self._perform_refresh)

    async def _perform_refresh(self) -> None:
        data: dict[str, str] = {
            "grant_type": "refresh_token",
            "refresh_token": self._tokens.refresh_token or "",
            "client_id": self.client_id or "",
        }
        # Public clients using PKCE have no secret
        if self.client_secret:
            data["client_secret"] = self.client_secret
        if self.resource:
            data["resource"] = self.resource

        response = await request_token(
            self.token_endpoint,
            data,
            "Failed to refresh OAuth 2.1 token",
            http_client=self._http_client,
        )
        self._tokens.update(response)
        logger.debug(f"Refreshed OAuth 2.1 access token (expires {self._tokens.expires_at})")

    async def get_auth_headers(self) -> dict[str, str]:
        if self.needs_refresh():
            await self.refresh()
        return {"Authorization": self._tokens.bearer_header()}

    @classmethod
    async def from_authorization_code(
        cls,
        client_id: str,
        authorization_code: str,
        redirect_uri: str,
        code_verifier: str,
        client_secret: str | None = None,
        resource: str | None = None,
        *,
        token_endpoint: str = DEFAULT_TOKEN_ENDPOINT,
        http_client: httpx.AsyncClient | None = None,
    ) -> "OAuth21Auth":
        """Exchange an authorization code and PKCE verifier for tokens.

        Args:
            client_id: The OAuth client ID
            authorization_code: Code received on the redirect URI
            redirect_uri: The redirect URI used in the authorization request
            code_verifier: The PKCE verifier matching the challenge sent earlier
            client_secret: Secret for confidential clients
            resource: Optional RFC 8707 resource indicator

        Returns:
            A refreshable instance if the server issued a refresh token,
            otherwise a bearer-only instance

        Raises:
            ConfigurationError: If the code verifier is malformed
            TimesheetAuthError: If the code exchange fails
        """
        if not is_valid_code_verifier(code_verifier):
            raise ConfigurationError(
                "Invalid code verifier: must be 43-128 characters using only "
                "A-Z, a-z, 0-9, -, ., _, ~"
            )

        data: dict[str, str] = {
            "grant_type": "authorization_code",
            "code": authorization_code,
            "redirect_uri": redirect_uri,
            "client_id": client_id,
            "code_verifier": code_verifier,
        }
        if client_secret:
            data["client_secret"] = client_secret
        if resource:
            data["resource"] = resource

        response = await request_token(
            token_endpoint,
            data,
            "Failed to exchange authorization code",
            http_client=http_client,
        )

        refresh_token = response.get("refresh_token")
        if refresh_token:
            return cls(
                RefreshOptions(
                    client_id=client_id,
                    refresh_token=refresh_token,
                    client_secret=client_secret,
                    resource=resource,
                ),
                access_token=response["access_token"],
                token_endpoint=token_endpoint,
                http_client=http_client,
            )
        return cls(response["access_token"], token_endpoint=token_endpoint, http_client=http_client)

    @staticmethod
    def build_authorization_url(
        client_id: str,
        redirect_uri: str,
        code_challenge: str,
        code_challenge_method: CodeChallengeMethod = "S256",
        state: str | None = None,
        scope: str | None = None,
        resource: str | None = None,
        *,
        authorization_endpoint: str = DEFAULT_AUTHORIZATION_ENDPOINT,
    ) -> str:
        """Build the authorization URL for the browser redirect.

        Returns:
            Complete authorization URL
        """
        params = {
            "response_type": "code",
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "code_challenge": code_challenge,
            "code_challenge_method": code_challenge_method,
        }
        if state:
            params["state"] = state
        if scope:
            params["scope"] = scope
        if resource:
            params["resource"] = resource

        return f"{authorization_endpoint}?{urlencode(params)}"

    @staticmethod
    def generate_pkce(method: CodeChallengeMethod = "S256") -> PkceCodePair:
        """Generate a PKCE pair for use with build_authorization_url."""
        return generate_pkce_code_pair(method)
