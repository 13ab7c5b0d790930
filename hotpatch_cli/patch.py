"""
Patch CLI command.

Generates a patch between two releases that are already published.
"""

import asyncio
from pathlib import Path
from typing import Optional

import click

from hotpatch.errors import HotPatchError
from hotpatch.hashing import short_hash
from hotpatch.main import generate_patch
from hotpatch_cli.output import echo_success, fail


@click.command()
@click.option("--old", "old_version", required=True, help="Base version devices upgrade from")
@click.option("--new", "new_version", required=True, help="Target version")
@click.option("--channel", default="production", show_default=True, help="Release channel")
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also save the patch to this file",
)
def patch(old_version: str, new_version: str, channel: str, output: Optional[Path]) -> None:
    """
    Generate and upload a patch between two releases.

    Both releases are downloaded and decrypted with their own keys if
    needed, then diffed, signed and uploaded against the new release.

    Example:

        hotpatch patch --old 1.0.0 --new 1.1.0 --output ./1.0.0_to_1.1.0.patch
    """
    try:
        summary = asyncio.run(
            generate_patch(old_version, new_version, channel, output)
        )
    except HotPatchError as e:
        fail(str(e))

    echo_success(
        f"Patch {summary.base_version} -> {summary.target_version} uploaded "
        f"({summary.size} bytes)"
    )
    click.echo(f"  SHA-256: {short_hash(summary.hash)}")
    if summary.output_path is not None:
        click.echo(f"  Saved:   {summary.output_path}")
