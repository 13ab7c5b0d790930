"""
Login CLI command.

Obtains a registry token either by exchanging an API key or through the
dashboard's browser login, and stores it with the endpoint.
"""

import asyncio
from typing import Optional

import click

from hotpatch.auth import ApiKeyAuth, AuthStrategy, BrowserCallbackAuth, login as run_login
from hotpatch.config import DEFAULT_API_ENDPOINT, HotPatchConfig
from hotpatch.errors import HotPatchError
from hotpatch_cli.output import echo_success, fail


@click.command()
@click.option(
    "--endpoint",
    default=None,
    help=f"Registry URL (default: configured endpoint or {DEFAULT_API_ENDPOINT})",
)
@click.option(
    "--api-key",
    default=None,
    help="API key from the dashboard (prompted for when omitted)",
)
@click.option(
    "--browser",
    is_flag=True,
    default=False,
    help="Log in through the dashboard in a web browser",
)
def login(endpoint: Optional[str], api_key: Optional[str], browser: bool) -> None:
    """
    Log in to the HotPatch registry.

    Stores the endpoint and access token in the config directory so that
    release, patch and rollback commands can authenticate.

    Examples:

        hotpatch login --endpoint https://updates.example.com

        hotpatch login --browser
    """
    if browser and api_key:
        fail("Use either --api-key or --browser, not both.")

    try:
        config = HotPatchConfig()
        endpoint = endpoint or config.api_endpoint or DEFAULT_API_ENDPOINT

        strategy: AuthStrategy
        if browser:
            click.echo("Waiting for browser login...")
            strategy = BrowserCallbackAuth()
        else:
            if not api_key:
                api_key = click.prompt("API key", hide_input=True)
            strategy = ApiKeyAuth(api_key)

        asyncio.run(run_login(config, endpoint, strategy))
    except HotPatchError as e:
        fail(str(e))

    echo_success(f"Logged in to {config.api_endpoint}")
    click.echo(f"Credentials saved to {config.config_path}")
