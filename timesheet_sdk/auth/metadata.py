"""OAuth metadata documents served from well-known endpoints.

- AuthServerMetadata: RFC 8414 ``/.well-known/oauth-authorization-server``
- OpenIdConfiguration: OpenID Connect ``/.well-known/openid-configuration``
- ProtectedResourceMetadata: RFC 9728 ``/.well-known/oauth-protected-resource``
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..exceptions import DiscoveryError


def _require(data: dict[str, Any], fields: tuple[str, ...], document: str) -> None:
    """Raise DiscoveryError naming the first missing or empty required field."""
    for name in fields:
        if not data.get(name):
            raise DiscoveryError(f"{document} missing required field: {name}")


def _string_list(data: dict[str, Any], name: str, document: str) -> list[str]:
    """Read a required field that must be a list of strings."""
    value = data[name]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise DiscoveryError(f"{document} field {name} must be a list of strings")
    return list(value)


@dataclass
class AuthServerMetadata:
    """OAuth 2.0 Authorization Server Metadata per RFC 8414."""

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    response_types_supported: list[str]
    registration_endpoint: str | None = None
    scopes_supported: list[str] | None = None
    grant_types_supported: list[str] | None = None
    token_endpoint_auth_methods_supported: list[str] | None = None
    code_challenge_methods_supported: list[str] | None = None
    revocation_endpoint: str | None = None
    introspection_endpoint: str | None = None
    service_documentation: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    def supports_pkce(self, method: str = "S256") -> bool:
        """Check if the server advertises a PKCE challenge method."""
        return method in (self.code_challenge_methods_supported or [])

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthServerMetadata":
        """Create from JSON response.

        Raises:
            DiscoveryError: If a required field is missing
        """
        _require(
            data,
            ("issuer", "authorization_endpoint", "token_endpoint", "response_types_supported"),
            "Authorization server metadata",
        )
        return cls(
            issuer=data["issuer"],
            authorization_endpoint=data["authorization_endpoint"],
            token_endpoint=data["token_endpoint"],
            response_types_supported=_string_list(
                data, "response_types_supported", "Authorization server metadata"
            ),
            registration_endpoint=data.get("registration_endpoint"),
            scopes_supported=data.get("scopes_supported"),
            grant_types_supported=data.get("grant_types_supported"),
            token_endpoint_auth_methods_supported=data.get(
                "token_endpoint_auth_methods_supported"
            ),
            code_challenge_methods_supported=data.get("code_challenge_methods_supported"),
            revocation_endpoint=data.get("revocation_endpoint"),
            introspection_endpoint=data.get("introspection_endpoint"),
            service_documentation=data.get("service_documentation"),
            raw=dict(data),
        )


@dataclass
class OpenIdConfiguration:
    """OpenID Connect Discovery configuration."""

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    jwks_uri: str
    userinfo_endpoint: str | None = None
    registration_endpoint: str | None = None
    scopes_supported: list[str] | None = None
    response_types_supported: list[str] | None = None
    grant_types_supported: list[str] | None = None
    code_challenge_methods_supported: list[str] | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OpenIdConfiguration":
        _require(
            data,
            ("issuer", "authorization_endpoint", "token_endpoint", "jwks_uri"),
            "OpenID configuration",
        )
        return cls(
            issuer=data["issuer"],
            authorization_endpoint=data["authorization_endpoint"],
            token_endpoint=data["token_endpoint"],
            jwks_uri=data["jwks_uri"],
            userinfo_endpoint=data.get("userinfo_endpoint"),
            registration_endpoint=data.get("registration_endpoint"),
            scopes_supported=data.get("scopes_supported"),
            response_types_supported=data.get("response_types_supported"),
            grant_types_supported=data.get("grant_types_supported"),
            code_challenge_methods_supported=data.get("code_challenge_methods_supported"),
            raw=dict(data),
        )


@dataclass
class ProtectedResourceMetadata:
    """OAuth 2.0 Protected Resource Metadata per RFC 9728.

    Describes the API as a resource server, including which authorization
    servers can issue tokens for it.
    """

    resource: str
    authorization_servers: list[str]
    scopes_supported: list[str] | None = None
    bearer_methods_supported: list[str] | None = None
    resource_documentation: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProtectedResourceMetadata":
        _require(data, ("resource", "authorization_servers"), "Protected resource metadata")
        return cls(
            resource=data["resource"],
            authorization_servers=_string_list(
                data, "authorization_servers", "Protected resource metadata"
            ),
            scopes_supported=data.get("scopes_supported"),
            bearer_methods_supported=data.get("bearer_methods_supported"),
            resource_documentation=data.get("resource_documentation"),
            raw=dict(data),
        )


@dataclass
class OAuthDiscoveryResult:
    """Everything discovered for one issuer."""

    issuer: str
    authorization_server: AuthServerMetadata
    fetched_at: datetime
    protected_resource: ProtectedResourceMetadata | None = None
    openid_configuration: OpenIdConfiguration | None = None
