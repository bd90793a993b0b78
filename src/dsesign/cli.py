"""Command line interface for dsesign."""

import asyncio
import logging
import sys
from typing import Optional, Tuple

import click
import httpx
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import credential_from_env, load_jwt_config, load_oauth2_config
from .errors import ESignError
from .oauth2 import OAuth2Credential
from .userinfo import UserInfo

console = Console()
logger = logging.getLogger(__name__)


def run_async(coro):
    """Run a coroutine to completion from synchronous click commands."""
    return asyncio.run(coro)


def _fail(message: str) -> None:
    console.print(f"❌ {message}", style="red")
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__, prog_name="dsesign")
def cli(verbose: bool):
    """Developer tools for DocuSign integrations.

    \b
    EXAMPLES:
      dsesign auth-url oauth.json --state xyz
      dsesign consent-url jwt.json https://www.example.com/callback
      DOCUSIGN_TOKEN=... dsesign userinfo
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


@cli.command("auth-url")
@click.argument("config", type=click.Path())
@click.option("--state", required=True, help="Opaque state returned to the redirect")
@click.option("--scope", "scopes", multiple=True, help="Scope to request (repeatable)")
def auth_url(config: str, state: str, scopes: Tuple[str, ...]):
    """Print the authorization code grant URL for an OAuth2 CONFIG file."""
    try:
        oauth_config = load_oauth2_config(config)
    except (ESignError, FileNotFoundError) as e:
        _fail(f"Failed to load configuration: {e}")
    console.print(oauth_config.authorization_url(state, *scopes), soft_wrap=True)


@cli.command("consent-url")
@click.argument("config", type=click.Path())
@click.argument("redirect_url")
@click.option("--scope", "scopes", multiple=True, help="Scope to request (repeatable)")
def consent_url(config: str, redirect_url: str, scopes: Tuple[str, ...]):
    """Print the JWT user consent URL for a JWT CONFIG file."""
    try:
        jwt_config = load_jwt_config(config)
    except (ESignError, FileNotFoundError) as e:
        _fail(f"Failed to load configuration: {e}")
    console.print(jwt_config.user_consent_url(redirect_url, *scopes), soft_wrap=True)


def _user_info_table(user_info: UserInfo) -> Table:
    table = Table(title=f"{user_info.name} <{user_info.email}>")
    table.add_column("Account ID", style="cyan")
    table.add_column("Name")
    table.add_column("Default", justify="center")
    table.add_column("Base URI", style="green")
    for account in user_info.accounts:
        table.add_row(
            account.account_id,
            account.account_name,
            "✓" if account.is_default else "",
            account.base_uri,
        )
    return table


async def _fetch_user_info(credential: OAuth2Credential) -> UserInfo:
    async with credential:
        return await credential.user_info()


@cli.command()
@click.option("--jwt-config", type=click.Path(), help="JWT config file")
@click.option("--api-user", help="API user GUID for the JWT grant")
def userinfo(jwt_config: Optional[str], api_user: Optional[str]):
    """Show the authenticated user's accounts.

    Uses --jwt-config and --api-user when given, otherwise DOCUSIGN_TOKEN or
    DOCUSIGN_JWT_CONFIG from the environment.
    """
    try:
        if jwt_config:
            if not api_user:
                _fail("--api-user is required with --jwt-config")
            credential = load_jwt_config(jwt_config).credential(api_user)
        else:
            credential = credential_from_env()
        if credential is None:
            _fail("No credential configured; set DOCUSIGN_TOKEN or use --jwt-config")
        user_info = run_async(_fetch_user_info(credential))
    except (ESignError, FileNotFoundError) as e:
        _fail(str(e))
    except httpx.HTTPError as e:
        _fail(f"Network error: {e}")

    console.print(_user_info_table(user_info))


def main():
    cli()


if __name__ == "__main__":
    main()
