"""OAuth discovery per RFC 8414, RFC 9728 and OpenID Connect Discovery.

Fetches the well-known metadata documents for an issuer so that OAuth
flows can be bootstrapped from the issuer URL alone, and caches the
result in memory for a configurable TTL.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, TypeVar

import httpx

from ..exceptions import ConfigurationError, DiscoveryError
from .metadata import (
    AuthServerMetadata,
    OAuthDiscoveryResult,
    OpenIdConfiguration,
    ProtectedResourceMetadata,
)

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 60 * 60  # 1 hour, in seconds
DEFAULT_TIMEOUT = 10.0

AUTHORIZATION_SERVER_PATH = "/.well-known/oauth-authorization-server"
OPENID_CONFIGURATION_PATH = "/.well-known/openid-configuration"
PROTECTED_RESOURCE_PATH = "/.well-known/oauth-protected-resource"

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _http_status_hint(status_code: int) -> str:
    """Get a user-friendly hint for common HTTP status codes."""
    hints = {
        401: "Server requires authentication for its metadata",
        403: "Access forbidden",
        404: "Endpoint not found - the server may not support OAuth discovery at this URL",
        500: "Server error - the authorization server may be experiencing issues",
        502: "Bad gateway - there may be a proxy or network issue",
        503: "Service unavailable - the server may be temporarily down",
    }
    return hints.get(status_code, "")


def normalize_issuer_url(url: str) -> str:
    """Strip trailing slashes so equivalent issuer URLs share a cache entry."""
    return url.rstrip("/")


@dataclass(frozen=True)
class DiscoveryOptions:
    """Options for OAuthDiscovery.

    Attributes:
        cache_ttl: How long results stay cached, in seconds
        timeout: Request timeout in seconds
        fetch_openid_config: Also fetch the OpenID configuration
        fetch_protected_resource: Also fetch protected resource metadata
    """

    cache_ttl: float = DEFAULT_CACHE_TTL
    timeout: float = DEFAULT_TIMEOUT
    fetch_openid_config: bool = False
    fetch_protected_resource: bool = False


@dataclass
class _CacheEntry:
    result: OAuthDiscoveryResult
    expires_at: datetime


class OAuthDiscovery:
    """Fetches and caches OAuth metadata for issuers.

    Usage:
        discovery = OAuthDiscovery()
        result = await discovery.discover("https://api.timesheet.io")
        token_url = result.authorization_server.token_endpoint

    Concurrent discover() calls for the same uncached issuer each perform
    their own fetch.
    """

    def __init__(
        self,
        options: DiscoveryOptions | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.options = options or DiscoveryOptions()
        self._http_client = http_client
        self._cache: dict[str, _CacheEntry] = {}

    async def discover(self, issuer_url: str) -> OAuthDiscoveryResult:
        """Discover OAuth metadata for an issuer.

        Args:
            issuer_url: The authorization server issuer URL

        Returns:
            Discovery result with all fetched metadata

        Raises:
            DiscoveryError: If the authorization server metadata cannot be
                fetched or is invalid
        """
        normalized = normalize_issuer_url(issuer_url)

        cached = self._get_cached(normalized)
        if cached is not None:
            logger.debug(f"Using cached OAuth metadata for {normalized}")
            return cached

        auth_server = await self.fetch_authorization_server_metadata(normalized)
        result = OAuthDiscoveryResult(
            issuer=auth_server.issuer,
            authorization_server=auth_server,
            fetched_at=_utcnow(),
        )

        if self.options.fetch_openid_config:
            try:
                result.openid_configuration = await self.fetch_openid_configuration(normalized)
            except DiscoveryError as e:
                logger.debug(f"OpenID configuration unavailable, continuing without it: {e}")

        if self.options.fetch_protected_resource:
            try:
                result.protected_resource = await self.fetch_protected_resource_metadata(
                    normalized
                )
            except DiscoveryError as e:
                logger.debug(f"Protected resource metadata unavailable, continuing without it: {e}")

        self._cache[normalized] = _CacheEntry(
            result=result,
            expires_at=_utcnow() + timedelta(seconds=self.options.cache_ttl),
        )
        return result

    async def fetch_authorization_server_metadata(self, issuer_url: str) -> AuthServerMetadata:
        """Fetch Authorization Server Metadata (RFC 8414)."""
        url = normalize_issuer_url(issuer_url) + AUTHORIZATION_SERVER_PATH
        return await self._fetch(url, "authorization server metadata", AuthServerMetadata.from_dict)

    async def fetch_openid_configuration(self, issuer_url: str) -> OpenIdConfiguration:
        """Fetch the OpenID Connect Discovery configuration."""
        url = normalize_issuer_url(issuer_url) + OPENID_CONFIGURATION_PATH
        return await self._fetch(url, "OpenID configuration", OpenIdConfiguration.from_dict)

    async def fetch_protected_resource_metadata(
        self, resource_url: str
    ) -> ProtectedResourceMetadata:
        """Fetch Protected Resource Metadata (RFC 9728)."""
        url = normalize_issuer_url(resource_url) + PROTECTED_RESOURCE_PATH
        return await self._fetch(
            url, "protected resource metadata", ProtectedResourceMetadata.from_dict
        )

    def clear_cache(self) -> None:
        """Drop all cached results."""
        self._cache.clear()

    def clear_cache_for_issuer(self, issuer_url: str) -> None:
        """Drop the cached result for one issuer."""
        self._cache.pop(normalize_issuer_url(issuer_url), None)

    def is_cached(self, issuer_url: str) -> bool:
        """Check if an unexpired result is cached for the issuer."""
        return self._get_cached(normalize_issuer_url(issuer_url)) is not None

    def _get_cached(self, normalized_url: str) -> OAuthDiscoveryResult | None:
        entry = self._cache.get(normalized_url)
        if entry is None:
            return None
        if _utcnow() >= entry.expires_at:
            del self._cache[normalized_url]
            return None
        return entry.result

    async def _fetch(
        self,
        url: str,
        document: str,
        parse: Callable[[dict[str, Any]], T],
    ) -> T:
        """GET a metadata document and parse it.

        Raises:
            DiscoveryError: On network errors, non-200 responses, invalid
                JSON, or missing required fields
        """
        client = self._http_client or httpx.AsyncClient(timeout=self.options.timeout)
        should_close = self._http_client is None

        logger.debug(f"Fetching {document} from {url}")

        try:
            response = await client.get(
                url,
                headers={"Accept": "application/json"},
                timeout=self.options.timeout,
            )

            if response.status_code != 200:
                hint = _http_status_hint(response.status_code)
                error_msg = f"HTTP {response.status_code}"
                if hint:
                    error_msg += f" ({hint})"
                raise DiscoveryError(f"Failed to fetch {document} from {url}: {error_msg}")

            try:
                data = response.json()
            except ValueError as e:
                raise DiscoveryError(
                    f"Failed to fetch {document} from {url}: response was not valid JSON"
                ) from e

            if not isinstance(data, dict):
                raise DiscoveryError(
                    f"Failed to fetch {document} from {url}: expected a JSON object"
                )

            try:
                return parse(data)
            except (DiscoveryError, TypeError, ValueError, KeyError) as e:
                raise DiscoveryError(f"Failed to fetch {document} from {url}: {e}") from e

        except httpx.TimeoutException as e:
            raise DiscoveryError(
                f"Timeout fetching {document} from {url}: {e}. "
                f"The server may be slow or unresponsive."
            ) from e
        except httpx.RequestError as e:
            raise DiscoveryError(f"Network error fetching {document} from {url}: {e}") from e
        finally:
            if should_close:
                await client.aclose()


_default_discovery: OAuthDiscovery | None = None


def get_default_discovery() -> OAuthDiscovery:
    """Get the lazily created shared OAuthDiscovery instance."""
    global _default_discovery
    if _default_discovery is None:
        _default_discovery = OAuthDiscovery()
    return _default_discovery


async def discover_oauth(
    issuer_url: str,
    options: DiscoveryOptions | None = None,
    *,
    discovery: OAuthDiscovery | None = None,
) -> OAuthDiscoveryResult:
    """Discover OAuth metadata for an issuer.

    Prefer passing a caller-owned ``discovery`` instance. Without one,
    custom ``options`` get a fresh instance (the shared instance is never
    reconfigured), and otherwise the shared default instance is used.

    Raises:
        ConfigurationError: If both ``options`` and ``discovery`` are given
        DiscoveryError: If discovery fails
    """
    if discovery is not None and options is not None:
        raise ConfigurationError(
            "Pass either options or a discovery instance to discover_oauth, not both"
        )
    if discovery is None:
        discovery = OAuthDiscovery(options) if options is not None else get_default_discovery()
    return await discovery.discover(issuer_url)
