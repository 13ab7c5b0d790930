"""
Pytest configuration and fixtures for HotPatch tests.

This module provides shared fixtures for testing the release tooling,
including temporary configuration directories, keys, an in-memory
registry and a bundler that does not need React Native installed.
"""

import io
import tempfile
import zipfile
from pathlib import Path
from typing import Generator, Optional

import pytest

from hotpatch.config import HotPatchConfig
from hotpatch.errors import NotFoundError, RemoteError, VersionConflictError
from hotpatch.keyring import Keyring
from hotpatch.models import Release, ReleaseMetadata
from hotpatch.pipeline import PipelineContext
from hotpatch.signing import generate_keypair


# ============================================================================
# Helpers
# ============================================================================


def make_zip(files: dict[str, bytes]) -> bytes:
    """Build an in-memory zip with the given entries."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in sorted(files.items()):
            zf.writestr(name, content)
    return buffer.getvalue()


class FakeBuilder:
    """Bundler stand-in that writes a deterministic bundle per version."""

    def __init__(self, content: bytes = b"console.log('v1');\n" * 50):
        self.content = content
        self.calls: list[tuple[str, str, Path]] = []

    def build(self, platform: str, entry_file: str, out_dir: Path) -> Path:
        self.calls.append((platform, entry_file, Path(out_dir)))
        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        (out_dir / "index.android.bundle").write_bytes(self.content)
        assets = out_dir / "assets"
        assets.mkdir(exist_ok=True)
        (assets / "logo.png").write_bytes(b"\x89PNG fake image")
        return out_dir


class FakeRegistry:
    """
    In-memory registry with the RegistryClient interface.

    Records every upload so tests can assert on what would have been sent.
    """

    def __init__(self):
        self.releases: list[Release] = []
        self.artifacts: dict[str, bytes] = {}
        self.release_uploads: list[tuple[ReleaseMetadata, bytes, str]] = []
        self.patch_uploads: list[dict] = []
        self.rollbacks: list[str] = []
        self.calls: list[str] = []
        self.fail_patch_upload: Optional[Exception] = None
        self.fail_download: Optional[Exception] = None
        self.closed = False
        self._counter = 0

    def add_release(
        self,
        version: str,
        data: bytes,
        channel: str = "production",
        is_encrypted: bool = False,
        key_id: Optional[str] = None,
    ) -> Release:
        """Seed a published release."""
        self._counter += 1
        release = Release(
            id=f"rel-{self._counter}",
            version=version,
            channel=channel,
            artifact_url=f"/artifacts/rel-{self._counter}",
            is_encrypted=is_encrypted,
            key_id=key_id,
            created_at=f"2026-01-01T00:00:{self._counter:02d}Z",
        )
        self.releases.append(release)
        self.artifacts[release.artifact_url] = data
        return release

    async def list_releases(self, channel: str) -> list[Release]:
        self.calls.append("list_releases")
        matching = [r for r in self.releases if r.channel == channel]
        return sorted(matching, key=lambda r: r.created_at, reverse=True)

    async def upload_release(
        self, metadata: ReleaseMetadata, data: bytes, filename: str = "bundle.zip"
    ) -> Release:
        self.calls.append("upload_release")
        for existing in self.releases:
            if existing.version == metadata.version and existing.channel == metadata.channel:
                raise VersionConflictError(metadata.version, metadata.channel)
        self.release_uploads.append((metadata, data, filename))
        return self.add_release(
            metadata.version,
            data,
            channel=metadata.channel,
            is_encrypted=metadata.is_encrypted,
            key_id=metadata.key_id,
        )

    async def upload_patch(
        self, release_id: str, base_version: str, hash: str, signature: str, data: bytes
    ) -> None:
        self.calls.append("upload_patch")
        if self.fail_patch_upload is not None:
            raise self.fail_patch_upload
        self.patch_uploads.append({
            "release_id": release_id,
            "base_version": base_version,
            "hash": hash,
            "signature": signature,
            "data": data,
        })

    async def download_artifact(self, url: str) -> bytes:
        self.calls.append("download_artifact")
        if self.fail_download is not None:
            raise self.fail_download
        if url not in self.artifacts:
            raise NotFoundError(f"Failed to download bundle: {url}")
        return self.artifacts[url]

    async def rollback(self, release_id: str) -> tuple[str, Release]:
        self.calls.append("rollback")
        for release in self.releases:
            if release.id == release_id:
                self.rollbacks.append(release_id)
                return f"Rolled back to {release.version}", release
        raise RemoteError("Rollback failed", status_code=404)

    async def close(self) -> None:
        self.closed = True

    async def __aenter__(self) -> "FakeRegistry":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def temp_config_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for configuration files.

    Yields:
        Path to temporary configuration directory
    """
    with tempfile.TemporaryDirectory(prefix="hotpatch_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, temp_config_dir: Path) -> None:
    """
    Isolate tests from the developer's HotPatch environment.

    Removes HOTPATCH_* overrides and points the default config directory
    at the per-test temporary directory.
    """
    for name in (
        "HOTPATCH_API_ENDPOINT",
        "HOTPATCH_API_TOKEN",
        "HOTPATCH_LOG_LEVEL",
        "HOTPATCH_VERSION",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOTPATCH_CONFIG_DIR", str(temp_config_dir))


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def config(temp_config_dir: Path) -> HotPatchConfig:
    """A logged-in configuration saved to the temporary directory."""
    cfg = HotPatchConfig(config_dir=temp_config_dir)
    cfg.update_credentials("http://localhost:8080", "test-token-1234567890")
    return cfg


@pytest.fixture
def keyring(config: HotPatchConfig) -> Keyring:
    """An empty keyring persisted next to the config."""
    return Keyring.load(config.keyring_path)


@pytest.fixture
def public_key(config: HotPatchConfig) -> str:
    """Generate a signing keypair and return the base64 public key."""
    return generate_keypair(config.signing_key_path, config.public_key_path)


# ============================================================================
# Pipeline Fixtures
# ============================================================================


@pytest.fixture
def fake_registry() -> FakeRegistry:
    """An empty in-memory registry."""
    return FakeRegistry()


@pytest.fixture
def fake_builder() -> FakeBuilder:
    """A bundler that writes a small fixed bundle."""
    return FakeBuilder()


@pytest.fixture
def pipeline_ctx(
    config: HotPatchConfig,
    public_key: str,
    fake_registry: FakeRegistry,
    fake_builder: FakeBuilder,
) -> PipelineContext:
    """
    A pipeline context wired to the fake registry and bundler.

    The signing key exists; the keyring is empty unless a test adds keys
    to pipeline_ctx.keyring.
    """
    return PipelineContext.load(config, client=fake_registry, builder=fake_builder)


@pytest.fixture
def isolated_tmp(tmp_path: Path, monkeypatch) -> Path:
    """
    Redirect tempfile to a private directory so leftovers can be counted.

    Returns:
        The directory all artifact workspaces are created in
    """
    root = tmp_path / "tmp"
    root.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(root))
    return root


@pytest.fixture
def bundle_zip():
    """Factory building in-memory bundle zips: bundle_zip({"name": b"..."})."""
    return make_zip
