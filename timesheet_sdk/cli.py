"""CLI entry point for the Timesheet SDK."""

import asyncio
import logging
from pathlib import Path

import click

from . import __version__
from .auth.discovery import DiscoveryOptions, OAuthDiscovery
from .auth.oauth21 import OAuth21Auth
from .auth.pkce import DEFAULT_VERIFIER_LENGTH, generate_pkce_code_pair, generate_state
from .auth.tokens import DEFAULT_AUTHORIZATION_ENDPOINT
from .client import TimesheetClient
from .exceptions import ConfigurationError, TimesheetAuthError, TimesheetError
from .output import OutputHandler

logger = logging.getLogger("timesheet")

CREDENTIALS_HELP = (
    "Set TIMESHEET_API_KEY (or TIMESHEET_ACCESS_TOKEN) in the environment or in a .env file."
)


@click.group()
@click.option("--json", "json_mode", is_flag=True, help="Output in JSON format")
@click.option("--env-file", "env_path", type=click.Path(exists=True), help="Path to .env file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, json_mode: bool, env_path: str | None, verbose: bool) -> None:
    """Timesheet SDK - Tools for working with the Timesheet API."""
    ctx.ensure_object(dict)
    ctx.obj["json_mode"] = json_mode
    ctx.obj["env_path"] = Path(env_path) if env_path else None
    ctx.obj["output"] = OutputHandler(json_mode)

    # Configure logging based on verbosity
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--method",
    "-m",
    type=click.Choice(["S256", "plain"]),
    default="S256",
    help="Code challenge method",
)
@click.option(
    "--length",
    "-l",
    default=DEFAULT_VERIFIER_LENGTH,
    help="Code verifier length (43-128)",
)
@click.pass_context
def pkce(ctx: click.Context, method: str, length: int) -> None:
    """Generate a PKCE code verifier and challenge."""
    output: OutputHandler = ctx.obj["output"]
    try:
        pair = generate_pkce_code_pair(method, length)  # type: ignore[arg-type]
    except ConfigurationError as e:
        output.error(e)
        return

    output.fields(
        {
            "code_verifier": pair.code_verifier,
            "code_challenge": pair.code_challenge,
            "code_challenge_method": pair.code_challenge_method,
        }
    )


@main.command("authorize-url")
@click.option("--client-id", required=True, help="OAuth client ID")
@click.option("--redirect-uri", required=True, help="Redirect URI registered for the client")
@click.option("--scope", help="Space-separated scopes to request")
@click.option("--resource", help="Resource indicator (RFC 8707)")
@click.option(
    "--authorization-endpoint",
    default=DEFAULT_AUTHORIZATION_ENDPOINT,
    show_default=True,
    help="Authorization endpoint URL",
)
@click.pass_context
def authorize_url(
    ctx: click.Context,
    client_id: str,
    redirect_uri: str,
    scope: str | None,
    resource: str | None,
    authorization_endpoint: str,
) -> None:
    """Build an OAuth 2.1 authorization URL with a fresh PKCE pair.

    Keep the printed code verifier and state: both are needed to exchange
    the authorization code after the redirect.
    """
    output: OutputHandler = ctx.obj["output"]
    pair = OAuth21Auth.generate_pkce()
    state = generate_state()
    url = OAuth21Auth.build_authorization_url(
        client_id=client_id,
        redirect_uri=redirect_uri,
        code_challenge=pair.code_challenge,
        code_challenge_method=pair.code_challenge_method,
        state=state,
        scope=scope,
        resource=resource,
        authorization_endpoint=authorization_endpoint,
    )

    output.fields(
        {
            "authorization_url": url,
            "code_verifier": pair.code_verifier,
            "state": state,
        }
    )


@main.command()
@click.argument("issuer")
@click.option("--openid", is_flag=True, help="Also fetch the OpenID configuration")
@click.option("--resource", is_flag=True, help="Also fetch protected resource metadata")
@click.option("--timeout", default=10.0, help="Request timeout in seconds")
@click.pass_context
def discover(
    ctx: click.Context, issuer: str, openid: bool, resource: bool, timeout: float
) -> None:
    """Discover the OAuth endpoints of an issuer."""
    output: OutputHandler = ctx.obj["output"]
    discovery = OAuthDiscovery(
        DiscoveryOptions(
            timeout=timeout,
            fetch_openid_config=openid,
            fetch_protected_resource=resource,
        )
    )

    try:
        result = asyncio.run(discovery.discover(issuer))
    except TimesheetError as e:
        output.error(e, help_text="Check the issuer URL and that the server supports RFC 8414.")
        return

    server = result.authorization_server
    data = {
        "issuer": result.issuer,
        "authorization_endpoint": server.authorization_endpoint,
        "token_endpoint": server.token_endpoint,
        "registration_endpoint": server.registration_endpoint,
        "scopes_supported": server.scopes_supported,
        "code_challenge_methods_supported": server.code_challenge_methods_supported,
        "pkce_s256": server.supports_pkce("S256"),
    }
    if result.openid_configuration is not None:
        data["jwks_uri"] = result.openid_configuration.jwks_uri
        data["userinfo_endpoint"] = result.openid_configuration.userinfo_endpoint
    if result.protected_resource is not None:
        data["authorization_servers"] = result.protected_resource.authorization_servers

    output.fields(data, title=f"OAuth metadata for {result.issuer}")


async def _fetch_profile(env_path: Path | None) -> dict:
    async with TimesheetClient.from_env(env_path) as client:
        return await client.profile.get()


@main.command()
@click.pass_context
def profile(ctx: click.Context) -> None:
    """Show the profile of the authenticated user."""
    output: OutputHandler = ctx.obj["output"]

    try:
        data = asyncio.run(_fetch_profile(ctx.obj["env_path"]))
    except ConfigurationError as e:
        output.error(e, help_text=CREDENTIALS_HELP)
        return
    except TimesheetAuthError as e:
        output.error(e, help_text="The configured credentials were rejected.")
        return
    except TimesheetError as e:
        output.error(e)
        return

    if ctx.obj["json_mode"] or not isinstance(data, dict):
        output.success(data)
        return

    summary = {
        key: data.get(key)
        for key in ("email", "firstname", "lastname", "language", "timezone")
        if key in data
    }
    output.fields(summary or data, title="Profile")


if __name__ == "__main__":
    main()
