"""
Status CLI command.

Shows login state, keyring and signing key configuration.
"""

import click

from hotpatch.config import HotPatchConfig
from hotpatch.errors import HotPatchError
from hotpatch.keyring import Keyring
from hotpatch_cli.output import fail


def _mask(token: str) -> str:
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}...{token[-4:]}"


@click.command()
def status() -> None:
    """Show the current HotPatch configuration."""
    try:
        config = HotPatchConfig()
        keyring = Keyring.load(config.keyring_path)
    except HotPatchError as e:
        fail(str(e))

    click.echo(f"Config:      {config.config_path}")
    if config.is_logged_in:
        click.echo(f"Endpoint:    {config.api_endpoint}")
        click.echo(f"Token:       {_mask(config.api_token)}")
    else:
        click.echo("Endpoint:    " + click.style("not logged in", fg="yellow"))
    if config.app_id:
        click.echo(f"App:         {config.app_id}")
    if config.tier:
        click.echo(f"Tier:        {config.tier}")

    click.echo()
    if len(keyring):
        active = keyring.active_id or click.style("none", fg="yellow")
        click.echo(f"Keys:        {len(keyring)} (active: {active})")
    else:
        click.echo("Keys:        none")
    if config.encryption_key:
        click.echo("Legacy key:  configured")

    if config.signing_key_path.exists():
        click.echo(f"Signing key: {config.signing_key_path}")
        if config.public_key_path.exists():
            click.echo(f"Public key:  {config.public_key_path.read_text().strip()}")
    else:
        click.echo("Signing key: " + click.style("missing (run 'hotpatch keygen')", fg="yellow"))
