"""
Shared pipeline plumbing for the release and patch orchestrators.

PipelineContext carries everything a run needs (config, keyring, signer,
registry client, bundler), loaded once per invocation and never mutated
during the run. The helpers below implement the steps both orchestrators
share: key resolution, plaintext resolution of published releases, and
the diff -> hash -> sign -> upload patch suffix.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

from hotpatch import encryption
from hotpatch.api_client import RegistryClient
from hotpatch.bundle import BundleBuilder, ReactNativeBuilder
from hotpatch.config import HotPatchConfig
from hotpatch.diff import create_patch
from hotpatch.errors import (
    HotPatchError,
    KeyringEmptyError,
    NotAuthenticatedError,
    PipelineError,
)
from hotpatch.hashing import sha256_bytes, short_hash
from hotpatch.keyring import Keyring
from hotpatch.models import Patch, Release
from hotpatch.signing import BundleSigner

logger = logging.getLogger(__name__)


# ============================================================================
# Step Tracking
# ============================================================================


@contextmanager
def step(name: str) -> Iterator[None]:
    """
    Run one pipeline step.

    A HotPatchError escaping the step is tagged with the step name (the
    innermost step wins) and re-raised unchanged in type. Any other
    exception is wrapped in PipelineError. Nothing is retried.
    """
    logger.debug("Step started: %s", name)
    try:
        yield
    except HotPatchError as e:
        if e.step is None:
            e.step = name
            logger.error("Step '%s' failed: %s", name, e.message)
        raise
    except Exception as e:
        logger.error("Step '%s' failed unexpectedly: %s", name, e)
        raise PipelineError(name, e) from e
    logger.debug("Step finished: %s", name)


# ============================================================================
# Context
# ============================================================================


@dataclass
class PipelineContext:
    """
    Per-invocation dependencies of an orchestrator run.

    Attributes:
        config: Loaded CLI configuration
        keyring: Loaded keyring (read-only during the run)
        signer: Ed25519 signer for bundles and patches
        client: Registry client
        builder: Bundler used by release runs
    """
    config: HotPatchConfig
    keyring: Keyring
    signer: BundleSigner
    client: RegistryClient
    builder: BundleBuilder = field(default_factory=ReactNativeBuilder)

    @classmethod
    def load(
        cls,
        config: HotPatchConfig,
        client: Optional[RegistryClient] = None,
        builder: Optional[BundleBuilder] = None,
    ) -> "PipelineContext":
        """
        Build a context from configuration.

        Raises:
            NotAuthenticatedError: If no endpoint or token is configured
            KeyringError: If the keyring file is malformed
        """
        if not config.is_logged_in:
            raise NotAuthenticatedError(
                "Not logged in. Run `hotpatch login` first to configure your API endpoint and token."
            )
        keyring = Keyring.load(config.keyring_path)
        signer = BundleSigner(config.signing_key_path)
        if client is None:
            client = RegistryClient(config.api_endpoint, config.api_token)
        return cls(
            config=config,
            keyring=keyring,
            signer=signer,
            client=client,
            builder=builder or ReactNativeBuilder(),
        )


# ============================================================================
# Key Resolution
# ============================================================================


def resolve_encryption_key(ctx: PipelineContext) -> tuple[Optional[str], bytes]:
    """
    Pick the key for a new encrypted release.

    The active keyring key wins; otherwise the legacy single key from the
    config is used (recorded without a key id).

    Returns:
        Tuple of (key_id or None for the legacy key, key bytes)

    Raises:
        KeyringEmptyError: If neither an active key nor a legacy key exists
    """
    if ctx.keyring.active_id is not None:
        return ctx.keyring.active_key()
    if ctx.config.encryption_key:
        logger.warning("No active keyring key; encrypting with the legacy encryption key")
        return None, encryption.parse_hex_key(ctx.config.encryption_key)
    raise KeyringEmptyError(
        "Encryption requested but no keys found in config. "
        "Create one first with `hotpatch keys generate`."
    )


def key_for_release(ctx: PipelineContext, release: Release) -> bytes:
    """
    Find the key an encrypted release was published with.

    Raises:
        KeyNotFoundError: If the release's key id is not in the keyring
        KeyringEmptyError: If the release has no key id and no legacy key exists
    """
    if release.key_id:
        return ctx.keyring.get(release.key_id)
    if ctx.config.encryption_key:
        return encryption.parse_hex_key(ctx.config.encryption_key)
    raise KeyringEmptyError(
        f"Release {release.version} is encrypted without a key id "
        "and no legacy encryption key is configured"
    )


def resolve_plaintext(ctx: PipelineContext, release: Release, data: bytes) -> bytes:
    """
    Turn a downloaded artifact into its plaintext zip.

    Uses the release's own encryption flag and key id, independent of
    whatever key the current run encrypts with.
    """
    if not release.is_encrypted:
        return data
    logger.info(
        "Decrypting %s with key %s", release.version, release.key_id or "<legacy>"
    )
    return encryption.decrypt(data, key_for_release(ctx, release))


async def fetch_plaintext(ctx: PipelineContext, release: Release) -> bytes:
    """Download a release artifact and resolve it to plaintext."""
    with step(f"download {release.version}"):
        data = await ctx.client.download_artifact(release.artifact_url)
        logger.info("Downloaded %s (%d bytes)", release.version, len(data))
    with step(f"resolve plaintext {release.version}"):
        return resolve_plaintext(ctx, release, data)


# ============================================================================
# Patch Suffix
# ============================================================================


def build_patch(
    ctx: PipelineContext,
    release_id: str,
    base_version: str,
    old_plaintext: bytes,
    new_plaintext: bytes,
) -> Patch:
    """
    Diff two plaintext bundles, then hash and sign the resulting patch.

    Both inputs must be plaintext zips; the hash and signature cover the
    patch bytes exactly as uploaded.
    """
    with step("diff"):
        data = create_patch(old_plaintext, new_plaintext)
    with step("hash patch"):
        digest = sha256_bytes(data)
    with step("sign patch"):
        signature = ctx.signer.sign(data)
    logger.info(
        "Patch %s -> release %s: %d bytes, sha256 %s",
        base_version, release_id, len(data), short_hash(digest),
    )
    return Patch(
        release_id=release_id,
        base_version=base_version,
        hash=digest,
        signature=signature,
        data=data,
    )


async def publish_patch(ctx: PipelineContext, patch: Patch) -> None:
    """Upload a patch to the registry."""
    with step("publish patch"):
        await ctx.client.upload_patch(
            patch.release_id,
            patch.base_version,
            patch.hash,
            patch.signature,
            patch.data,
        )
    logger.info("Uploaded patch from %s for release %s", patch.base_version, patch.release_id)
