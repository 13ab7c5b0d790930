"""
Rollback CLI command.

Makes a previously published release the active one on its channel.
"""

import asyncio

import click

from hotpatch.errors import HotPatchError
from hotpatch.main import rollback_release
from hotpatch_cli.output import echo_success, fail


@click.command()
@click.option("--version", "version", required=True, help="Version to make active")
@click.option("--channel", default="production", show_default=True, help="Release channel")
@click.option("--yes", "-y", is_flag=True, default=False, help="Skip the confirmation prompt")
def rollback(version: str, channel: str, yes: bool) -> None:
    """
    Roll a channel back to an earlier release.

    Example:

        hotpatch rollback --version 1.0.0 --channel production
    """
    if not yes:
        click.confirm(
            f"Make {version} the active release on {channel}?",
            abort=True,
        )

    try:
        message, active = asyncio.run(rollback_release(version, channel))
    except HotPatchError as e:
        fail(str(e))

    echo_success(message)
    click.echo(f"  Active release: {active.version} (id {active.id})")
