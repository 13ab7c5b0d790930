"""
Keys CLI commands.

Manages the local keyring of AES-256 bundle encryption keys.
"""

from typing import Optional

import click

from hotpatch.config import HotPatchConfig
from hotpatch.errors import HotPatchError
from hotpatch.keyring import Keyring
from hotpatch_cli.output import echo_success, fail


def _load_keyring() -> Keyring:
    return Keyring.load(HotPatchConfig().keyring_path)


# ============================================================================
# Keys Command Group
# ============================================================================


@click.group()
@click.pass_context
def keys(ctx: click.Context) -> None:
    """
    Manage bundle encryption keys.

    The active key encrypts new releases. Older keys are kept so patches
    can still be built against releases encrypted with them.
    """
    ctx.ensure_object(dict)


@keys.command("list")
def list_keys() -> None:
    """List key ids; the active key is marked with *."""
    try:
        keyring = _load_keyring()
    except HotPatchError as e:
        fail(str(e))

    if not len(keyring):
        click.echo("No encryption keys. Create one with 'hotpatch keys generate'.")
        return

    for key_id, active in keyring.list_keys():
        marker = click.style("*", fg="green", bold=True) if active else " "
        click.echo(f"{marker} {key_id}")


@keys.command("generate")
@click.option("--id", "key_id", default=None, help="Key id (derived from the key when omitted)")
@click.option(
    "--no-active",
    is_flag=True,
    default=False,
    help="Add the key without making it the active key",
)
def generate(key_id: Optional[str], no_active: bool) -> None:
    """Generate a new random encryption key."""
    try:
        keyring = _load_keyring()
        new_id = keyring.generate(key_id, activate=not no_active)
    except HotPatchError as e:
        fail(str(e))

    echo_success(f"Generated key {new_id}")
    if not no_active:
        click.echo("  It is now the active key for encrypted releases.")


@keys.command("select")
@click.argument("key_id")
def select(key_id: str) -> None:
    """Make KEY_ID the active key."""
    try:
        _load_keyring().set_active(key_id)
    except HotPatchError as e:
        fail(str(e))

    echo_success(f"Active key set to {key_id}")


@keys.command("remove")
@click.argument("key_id")
@click.option("--yes", "-y", is_flag=True, default=False, help="Skip the confirmation prompt")
def remove(key_id: str, yes: bool) -> None:
    """
    Remove KEY_ID from the keyring.

    Releases encrypted with a removed key can no longer be used as a
    patch base.
    """
    try:
        keyring = _load_keyring()
        if key_id not in keyring:
            fail(f"Key ID '{key_id}' not found in keyring")
        if not yes:
            click.confirm(f"Remove key {key_id}?", abort=True)
        was_active = keyring.active_id == key_id
        keyring.remove(key_id)
    except HotPatchError as e:
        fail(str(e))

    echo_success(f"Removed key {key_id}")
    if was_active:
        click.echo("  No key is active now. Select one with 'hotpatch keys select'.")
