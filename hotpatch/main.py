"""
Entry points for release and patch runs.

Each function loads configuration, keyring and signer once, opens a
registry client for the duration of the run and hands them to the
orchestrator. These are the calls the CLI makes; they can also be used
directly from build scripts.
"""

import logging
from pathlib import Path
from typing import Optional

from hotpatch.bundle import BundleBuilder
from hotpatch.config import HotPatchConfig
from hotpatch.models import PatchSummary, Release, ReleaseSummary
from hotpatch.patch import PatchOrchestrator, find_release
from hotpatch.pipeline import PipelineContext
from hotpatch.release import ReleaseOrchestrator, validate_release_request

logger = logging.getLogger(__name__)


# ============================================================================
# Logging Setup
# ============================================================================


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Setup logging for the CLI.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logging.getLogger("hotpatch")


# ============================================================================
# Pipelines
# ============================================================================


async def publish_release(
    platform: str,
    version: str,
    channel: str = "production",
    mandatory: bool = False,
    rollout: int = 100,
    artifact_dir: Optional[Path] = None,
    encrypt: bool = False,
    entry_file: str = "index.js",
    skip_build: bool = False,
    config: Optional[HotPatchConfig] = None,
    builder: Optional[BundleBuilder] = None,
) -> ReleaseSummary:
    """
    Build and publish a release, plus its patch from the previous release.

    Parameters are validated before configuration is even read, so a
    rejected request performs no I/O at all.
    """
    validate_release_request(platform, version, channel, rollout)
    config = config or HotPatchConfig()
    ctx = PipelineContext.load(config, builder=builder)
    async with ctx.client:
        return await ReleaseOrchestrator(ctx).publish_release(
            platform=platform,
            version=version,
            channel=channel,
            mandatory=mandatory,
            rollout=rollout,
            artifact_dir=artifact_dir,
            encrypt=encrypt,
            entry_file=entry_file,
            skip_build=skip_build,
        )


async def generate_patch(
    old_version: str,
    new_version: str,
    channel: str = "production",
    output_path: Optional[Path] = None,
    config: Optional[HotPatchConfig] = None,
) -> PatchSummary:
    """Generate and upload a patch between two published versions."""
    config = config or HotPatchConfig()
    ctx = PipelineContext.load(config)
    async with ctx.client:
        return await PatchOrchestrator(ctx).generate_patch(
            old_version, new_version, channel, output_path
        )


async def rollback_release(
    version: str,
    channel: str = "production",
    config: Optional[HotPatchConfig] = None,
) -> tuple[str, Release]:
    """
    Make a previously published version the active release on a channel.

    Returns:
        Tuple of (server message, now-active release)

    Raises:
        NotFoundError: If the version is not on the channel
    """
    config = config or HotPatchConfig()
    ctx = PipelineContext.load(config)
    async with ctx.client:
        releases = await ctx.client.list_releases(channel)
        target = find_release(releases, version, channel)
        logger.info(
            "Rolling back %s to %s (id %s)", channel, version, target.id
        )
        return await ctx.client.rollback(target.id)

