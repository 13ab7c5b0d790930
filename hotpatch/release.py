"""
Release orchestrator.

Publishes a new release and, when the channel already has a release, a
binary patch from the most recent sibling to the new release:

    validate -> build -> compress -> resolve key -> [encrypt] -> hash -> sign
    -> upload release -> list siblings -> pick most recent other release
    -> download -> resolve plaintext -> diff -> hash -> sign -> upload patch

Steps run strictly in order and the first failure aborts the run. The
only exception is the patch stage: once the release is published, a
patch failure is reported as a warning on the returned summary instead
of failing the whole run.
"""

import logging
from pathlib import Path
from typing import Optional

from hotpatch import encryption
from hotpatch.bundle import BUNDLE_OUTPUT_NAMES, compress_bundle, validate_platform
from hotpatch.errors import HotPatchError, ValidationError
from hotpatch.hashing import sha256_bytes, short_hash
from hotpatch.models import PatchSummary, Release, ReleaseMetadata, ReleaseSummary
from hotpatch.pipeline import (
    PipelineContext,
    build_patch,
    fetch_plaintext,
    publish_patch,
    resolve_encryption_key,
    step,
)
from hotpatch.workspace import ArtifactWorkspace

logger = logging.getLogger(__name__)

MIN_ROLLOUT = 1
MAX_ROLLOUT = 100


def validate_release_request(platform: str, version: str, channel: str, rollout: int) -> None:
    """
    Check release parameters before anything touches disk or network.

    Raises:
        ValidationError: If any parameter is out of range
    """
    if not isinstance(rollout, int) or not MIN_ROLLOUT <= rollout <= MAX_ROLLOUT:
        raise ValidationError("Rollout percentage must be between 1 and 100")
    validate_platform(platform)
    if not version or not version.strip():
        raise ValidationError("Version must not be empty")
    if not channel or not channel.strip():
        raise ValidationError("Channel must not be empty")


def check_prebuilt_artifacts(platform: str, artifact_dir: Optional[Path]) -> None:
    """Require an existing bundler output directory when the build is skipped."""
    if artifact_dir is None:
        raise ValidationError("A prebuilt artifact directory is required with skip_build")
    artifact_dir = Path(artifact_dir)
    if not artifact_dir.is_dir():
        raise ValidationError(f"Artifact directory not found: {artifact_dir}")
    bundle_name = BUNDLE_OUTPUT_NAMES[platform]
    if not (artifact_dir / bundle_name).is_file():
        raise ValidationError(f"{bundle_name} not found in {artifact_dir}")


def select_patch_base(releases: list[Release], new_release_id: str) -> Optional[Release]:
    """
    Pick the release a new release should be patched from.

    The most recent release on the channel other than the new one, by
    created_at. Registry order (newest first) breaks ties and covers
    releases without a timestamp.
    """
    candidates = [
        (index, release) for index, release in enumerate(releases)
        if release.id != new_release_id
    ]
    if not candidates:
        return None
    candidates.sort(key=lambda item: (item[1].created_at or "", -item[0]), reverse=True)
    return candidates[0][1]


class ReleaseOrchestrator:
    """
    Runs the publish pipeline for one release.

    Attributes:
        ctx: Pipeline context (config, keyring, signer, client, builder)
    """

    def __init__(self, ctx: PipelineContext):
        self.ctx = ctx

    async def publish_release(
        self,
        platform: str,
        version: str,
        channel: str = "production",
        mandatory: bool = False,
        rollout: int = 100,
        artifact_dir: Optional[Path] = None,
        encrypt: bool = False,
        entry_file: str = "index.js",
        skip_build: bool = False,
    ) -> ReleaseSummary:
        """
        Build, package and publish a release, then its patch.

        Args:
            platform: android or ios
            version: New version string
            channel: Release channel
            mandatory: Force devices to install the update
            rollout: Rollout percentage (1-100)
            artifact_dir: Bundler output directory (temporary when omitted)
            encrypt: Encrypt the bundle with AES-256-GCM
            entry_file: JS entry point passed to the bundler
            skip_build: Package artifact_dir as-is without running the bundler

        Returns:
            ReleaseSummary; check `warnings` for a failed patch stage

        Raises:
            ValidationError: Bad parameters (raised before any side effect)
            HotPatchError: Any failure up to and including the release upload
        """
        validate_release_request(platform, version, channel, rollout)
        if skip_build:
            check_prebuilt_artifacts(platform, artifact_dir)

        logger.info(
            "Releasing %s %s on %s (rollout %d%%, mandatory=%s, encrypt=%s)",
            platform, version, channel, rollout, mandatory, encrypt,
        )

        with ArtifactWorkspace("release") as workspace:
            build_dir = Path(artifact_dir) if artifact_dir else workspace.path("build")

            if not skip_build:
                with step("build"):
                    build_dir = self.ctx.builder.build(platform, entry_file, build_dir)

            with step("compress"):
                stats = compress_bundle(build_dir, workspace.path("bundle.zip"))
                plaintext = stats.zip_path.read_bytes()

            key_id: Optional[str] = None
            if encrypt:
                with step("resolve encryption key"):
                    key_id, key = resolve_encryption_key(self.ctx)
                with step("encrypt"):
                    payload = encryption.encrypt(plaintext, key)
                    logger.info(
                        "Encrypted bundle with key %s (%d bytes)",
                        key_id or "<legacy>", len(payload),
                    )
            else:
                payload = plaintext

            with step("hash"):
                digest = sha256_bytes(payload)
            with step("sign"):
                signature = self.ctx.signer.sign(payload)
            logger.info("Bundle sha256 %s", short_hash(digest))

            metadata = ReleaseMetadata(
                version=version,
                channel=channel,
                platform=platform,
                mandatory=mandatory,
                rollout_percentage=rollout,
                hash=digest,
                signature=signature,
                is_encrypted=encrypt,
                size=len(payload),
                key_id=key_id,
            )
            with step("publish release"):
                release = await self.ctx.client.upload_release(
                    metadata, payload, filename="bundle.enc" if encrypt else "bundle.zip"
                )
            logger.info("Published release %s (id %s)", release.version, release.id)

            summary = ReleaseSummary(
                release=release,
                hash=digest,
                signature=signature,
                size=len(payload),
                is_encrypted=encrypt,
                key_id=key_id,
            )

            try:
                summary.patch = await self._publish_sibling_patch(release, channel, plaintext)
            except HotPatchError as e:
                summary.patch_error = str(e)
                warning = (
                    f"Release {release.version} was published, but patch generation failed: {e}"
                )
                summary.warnings.append(warning)
                logger.warning(warning)

        return summary

    async def _publish_sibling_patch(
        self,
        release: Release,
        channel: str,
        new_plaintext: bytes,
    ) -> Optional[PatchSummary]:
        """Diff the most recent sibling release against the new release."""
        with step("fetch sibling releases"):
            releases = await self.ctx.client.list_releases(channel)

        base = select_patch_base(releases, release.id)
        if base is None:
            logger.info("No previous release on %s; skipping patch", channel)
            return None

        logger.info("Generating patch %s -> %s", base.version, release.version)
        base_plaintext = await fetch_plaintext(self.ctx, base)
        patch = build_patch(
            self.ctx, release.id, base.version, base_plaintext, new_plaintext
        )
        await publish_patch(self.ctx, patch)

        return PatchSummary(
            release_id=release.id,
            base_version=base.version,
            target_version=release.version,
            hash=patch.hash,
            signature=patch.signature,
            size=patch.size,
        )
