"""
Keygen CLI command.

Creates the Ed25519 keypair used to sign bundles and patches.
"""

import click

from hotpatch.config import HotPatchConfig
from hotpatch.errors import HotPatchError
from hotpatch.signing import generate_keypair
from hotpatch_cli.output import echo_success, echo_warning, fail


@click.command()
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing signing key")
def keygen(force: bool) -> None:
    """
    Generate the Ed25519 signing keypair.

    The private key stays in the config directory. Embed the printed
    public key in your app so it can verify updates.
    """
    try:
        config = HotPatchConfig()
        public_key = generate_keypair(
            config.signing_key_path, config.public_key_path, force=force
        )
    except HotPatchError as e:
        fail(str(e))
    except OSError as e:
        fail(f"Failed to write signing key: {e}")

    echo_success("Signing keypair generated")
    click.echo(f"  Private key: {config.signing_key_path}")
    click.echo(f"  Public key:  {config.public_key_path}")
    click.echo()
    click.echo("Public key (embed in your app):")
    click.echo(f"  {public_key}")
    if force:
        echo_warning("Apps built with the previous public key will reject new updates.")
