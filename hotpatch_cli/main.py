"""
HotPatch CLI entry point.

Main command group for the hotpatch command.
"""

from typing import Optional

import click

from hotpatch import __version__
from hotpatch.config import DEFAULT_LOG_LEVEL, ConfigError, HotPatchConfig
from hotpatch.main import setup_logging


def _resolve_log_level(option: Optional[str]) -> str:
    if option:
        return option
    try:
        return HotPatchConfig().log_level
    except ConfigError:
        # The command itself reports the broken config
        return DEFAULT_LOG_LEVEL


@click.group()
@click.version_option(version=__version__, prog_name="hotpatch")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level (defaults to HOTPATCH_LOG_LEVEL or the config file)",
)
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]) -> None:
    """
    HotPatch - over-the-air updates for React Native apps.

    Builds JS bundles, optionally encrypts them, signs them with your
    Ed25519 key and publishes them to the HotPatch registry together with
    a binary patch from the previous release.

    Use 'hotpatch COMMAND --help' for more information on a command.
    """
    ctx.ensure_object(dict)
    setup_logging(_resolve_log_level(log_level))


# Import and register subcommands
from hotpatch_cli.login import login  # noqa: E402
from hotpatch_cli.release import release  # noqa: E402
from hotpatch_cli.patch import patch  # noqa: E402
from hotpatch_cli.rollback import rollback  # noqa: E402
from hotpatch_cli.keygen import keygen  # noqa: E402
from hotpatch_cli.keys import keys  # noqa: E402
from hotpatch_cli.status import status  # noqa: E402

cli.add_command(login)
cli.add_command(release)
cli.add_command(patch)
cli.add_command(rollback)
cli.add_command(keygen)
cli.add_command(keys)
cli.add_command(status)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
