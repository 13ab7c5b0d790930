"""
Patch orchestrator.

Generates and uploads a patch between two published releases on a
channel. Each endpoint is resolved to plaintext with its own encryption
settings, so a patch can be built between an encrypted and a plain
release, or between releases encrypted under different keys.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional

from hotpatch.errors import NotFoundError, ValidationError
from hotpatch.models import PatchSummary, Release
from hotpatch.pipeline import (
    PipelineContext,
    build_patch,
    fetch_plaintext,
    publish_patch,
    step,
)
from hotpatch.workspace import ArtifactWorkspace

logger = logging.getLogger(__name__)


def find_release(releases: list[Release], version: str, channel: str) -> Release:
    """
    Find a release by version.

    Raises:
        NotFoundError: If no release on the channel has that version
    """
    for release in releases:
        if release.version == version:
            return release
    raise NotFoundError(f"Version {version} not found in channel {channel}")


class PatchOrchestrator:
    """
    Generates a patch between two historical releases.

    Attributes:
        ctx: Pipeline context (config, keyring, signer, client)
    """

    def __init__(self, ctx: PipelineContext):
        self.ctx = ctx

    async def generate_patch(
        self,
        old_version: str,
        new_version: str,
        channel: str = "production",
        output_path: Optional[Path] = None,
    ) -> PatchSummary:
        """
        Build, sign and upload the patch old_version -> new_version.

        Args:
            old_version: Base version devices upgrade from
            new_version: Target version; the patch is attached to its release
            channel: Channel both versions are resolved in
            output_path: Keep a copy of the patch here; otherwise nothing
                is left on disk

        Returns:
            PatchSummary describing the uploaded patch

        Raises:
            ValidationError: If the two versions are the same
            NotFoundError: If either version is not on the channel
            HotPatchError: For any download, decryption, signing or upload failure
        """
        if old_version == new_version:
            raise ValidationError("Base and target versions must differ")

        with step("fetch releases"):
            releases = await self.ctx.client.list_releases(channel)
            old_release = find_release(releases, old_version, channel)
            new_release = find_release(releases, new_version, channel)

        logger.info(
            "Generating patch %s -> %s on %s", old_version, new_version, channel
        )

        with ArtifactWorkspace("patch") as workspace:
            old_plaintext = await fetch_plaintext(self.ctx, old_release)
            new_plaintext = await fetch_plaintext(self.ctx, new_release)

            patch = build_patch(
                self.ctx, new_release.id, old_release.version,
                old_plaintext, new_plaintext,
            )

            staged = workspace.path(f"{old_version}_to_{new_version}.patch")
            with step("write patch"):
                staged.write_bytes(patch.data)

            await publish_patch(self.ctx, patch)

            kept: Optional[Path] = None
            if output_path is not None:
                with step("write output"):
                    kept = Path(output_path)
                    kept.parent.mkdir(parents=True, exist_ok=True)
                    shutil.move(str(staged), str(kept))
                logger.info("Patch saved to %s", kept)

        return PatchSummary(
            release_id=new_release.id,
            base_version=old_release.version,
            target_version=new_release.version,
            hash=patch.hash,
            signature=patch.signature,
            size=patch.size,
            output_path=kept,
        )
