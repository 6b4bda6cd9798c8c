"""Authentication schemes for the Timesheet API.

Main Components:
    Authentication: The contract the HTTP pipeline relies on
    ApiKeyAuth: Static ``ts_<prefix>.<secret>`` API keys
    OAuth2Auth: Bearer tokens with client-secret refresh
    OAuth21Auth: Bearer tokens with PKCE and resource indicators
    OAuthDiscovery: RFC 8414 / RFC 9728 / OpenID metadata discovery

Quick Start:
    from timesheet_sdk.auth import OAuth21Auth, generate_state

    pkce = OAuth21Auth.generate_pkce()
    url = OAuth21Auth.build_authorization_url(
        client_id="my-client",
        redirect_uri="http://localhost:8080/callback",
        code_challenge=pkce.code_challenge,
        state=generate_state(),
    )
"""

from .apikey import ApiKeyAuth, is_valid_api_key_format
from .base import Authentication
from .discovery import (
    DiscoveryOptions,
    OAuthDiscovery,
    discover_oauth,
    get_default_discovery,
)
from .metadata import (
    AuthServerMetadata,
    OAuthDiscoveryResult,
    OpenIdConfiguration,
    ProtectedResourceMetadata,
)
from .oauth2 import OAuth2Auth
from .oauth21 import OAuth21Auth, RefreshOptions
from .pkce import (
    CodeChallengeMethod,
    PkceCodePair,
    generate_code_challenge,
    generate_code_verifier,
    generate_pkce_code_pair,
    generate_state,
    is_valid_code_verifier,
)

__all__ = [
    # Contract
    "Authentication",
    # Schemes
    "ApiKeyAuth",
    "is_valid_api_key_format",
    "OAuth2Auth",
    "OAuth21Auth",
    "RefreshOptions",
    # Discovery
    "OAuthDiscovery",
    "DiscoveryOptions",
    "discover_oauth",
    "get_default_discovery",
    "AuthServerMetadata",
    "OpenIdConfiguration",
    "ProtectedResourceMetadata",
    "OAuthDiscoveryResult",
    # PKCE
    "CodeChallengeMethod",
    "PkceCodePair",
    "generate_code_verifier",
    "generate_code_challenge",
    "generate_pkce_code_pair",
    "generate_state",
    "is_valid_code_verifier",
]
