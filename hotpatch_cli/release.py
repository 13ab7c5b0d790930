"""
Release CLI command.

Builds the JS bundle, packages and signs it, publishes the release and
a patch from the previous release on the channel.
"""

import asyncio
from pathlib import Path
from typing import Optional

import click

from hotpatch.errors import HotPatchError
from hotpatch.hashing import short_hash
from hotpatch.main import publish_release
from hotpatch_cli.output import echo_success, echo_warning, fail


@click.command()
@click.option(
    "--platform",
    required=True,
    type=click.Choice(["android", "ios"]),
    help="Target platform",
)
@click.option("--version", "version", required=True, help="Release version (e.g. 1.2.0)")
@click.option("--channel", default="production", show_default=True, help="Release channel")
@click.option("--mandatory", is_flag=True, default=False, help="Force devices to install this update")
@click.option(
    "--rollout",
    type=int,
    default=100,
    show_default=True,
    help="Percentage of installs that receive the update (1-100)",
)
@click.option("--entry-file", default="index.js", show_default=True, help="JS entry point")
@click.option(
    "--build-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory the bundler writes to (a temporary directory by default)",
)
@click.option("--encrypt", is_flag=True, default=False, help="Encrypt the bundle with the active key")
@click.option(
    "--skip-build",
    is_flag=True,
    default=False,
    help="Package --build-dir as-is without running the bundler",
)
def release(
    platform: str,
    version: str,
    channel: str,
    mandatory: bool,
    rollout: int,
    entry_file: str,
    build_dir: Optional[Path],
    encrypt: bool,
    skip_build: bool,
) -> None:
    """
    Build and publish a release.

    When the channel already has releases, a binary patch from the most
    recent one is generated and uploaded as well. A failed patch does not
    undo the release; it is reported as a warning.

    Examples:

        hotpatch release --platform android --version 1.2.0

        hotpatch release --platform ios --version 1.2.1 --channel staging --rollout 25 --encrypt
    """
    click.echo(f"Releasing {version} ({platform}) on {channel}...")

    try:
        summary = asyncio.run(
            publish_release(
                platform=platform,
                version=version,
                channel=channel,
                mandatory=mandatory,
                rollout=rollout,
                artifact_dir=build_dir,
                encrypt=encrypt,
                entry_file=entry_file,
                skip_build=skip_build,
            )
        )
    except HotPatchError as e:
        fail(str(e))

    echo_success(f"Release {summary.release.version} published (id {summary.release.id})")
    click.echo(f"  Channel:   {summary.release.channel or channel}")
    click.echo(f"  Size:      {summary.size} bytes")
    click.echo(f"  SHA-256:   {short_hash(summary.hash)}")
    if summary.is_encrypted:
        click.echo(f"  Encrypted: yes (key {summary.key_id or 'legacy'})")

    if summary.patch is not None:
        click.echo(
            f"  Patch:     {summary.patch.base_version} -> {summary.patch.target_version} "
            f"({summary.patch.size} bytes)"
        )
    elif not summary.patch_failed:
        click.echo("  Patch:     none (first release on this channel)")

    for warning in summary.warnings:
        echo_warning(warning)
