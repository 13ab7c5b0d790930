"""
Bundle building and compression.

The React Native bundler is an external tool; ReactNativeBuilder shells
out to `npx react-native bundle` and reports every failure mode as a
single BuildFailedError. compress_bundle() zips the build output with
stable entry ordering and fixed timestamps and permissions, so identical
inputs give byte-identical archives.
"""

import logging
import os
import subprocess
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from hotpatch.errors import BuildFailedError, ValidationError

logger = logging.getLogger(__name__)

# Fixed timestamp so archives depend only on file contents
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)

SUPPORTED_PLATFORMS = ("android", "ios")
BUNDLE_OUTPUT_NAMES = {
    "android": "index.android.bundle",
    "ios": "main.jsbundle",
}
DEFAULT_BUILD_TIMEOUT = 600  # seconds


class BundleBuilder(Protocol):
    """Anything that can produce a bundle directory for a platform."""

    def build(self, platform: str, entry_file: str, out_dir: Path) -> Path:
        ...


class ReactNativeBuilder:
    """Builds JS bundles with the React Native CLI."""

    def __init__(self, command: tuple[str, ...] = ("npx", "react-native"),
                 timeout: int = DEFAULT_BUILD_TIMEOUT):
        self.command = command
        self.timeout = timeout

    def build(self, platform: str, entry_file: str, out_dir: Path) -> Path:
        """
        Run the bundler.

        Args:
            platform: android or ios
            entry_file: JS entry point (e.g. index.js)
            out_dir: Directory receiving the bundle and assets

        Returns:
            The output directory

        Raises:
            BuildFailedError: If the bundler is missing, fails or times out
        """
        if platform not in BUNDLE_OUTPUT_NAMES:
            raise BuildFailedError(
                f"Unsupported platform: {platform}. Use 'android' or 'ios'."
            )

        out_dir = Path(out_dir)
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BuildFailedError(f"Failed to create build directory {out_dir}: {e}")

        bundle_output = out_dir / BUNDLE_OUTPUT_NAMES[platform]
        args = list(self.command) + [
            "bundle",
            "--platform", platform,
            "--dev", "false",
            "--entry-file", entry_file,
            "--bundle-output", str(bundle_output),
            "--assets-dest", str(out_dir),
        ]
        logger.info("Building %s bundle: %s", platform, " ".join(args))

        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise BuildFailedError(
                f"Failed to run '{' '.join(self.command)} bundle'. Is React Native installed?"
            )
        except subprocess.TimeoutExpired:
            raise BuildFailedError(f"Bundler timed out after {self.timeout}s")

        if result.returncode != 0:
            tail = (result.stderr or result.stdout or "").strip().splitlines()[-5:]
            raise BuildFailedError(
                f"React Native bundle command failed with exit code {result.returncode}"
                + (": " + " | ".join(tail) if tail else "")
            )

        if not bundle_output.exists():
            raise BuildFailedError(f"Bundler did not produce {bundle_output}")

        logger.info("Bundle created at %s", bundle_output)
        return out_dir


def validate_platform(platform: str) -> None:
    """Raise ValidationError for platforms the pipeline does not ship."""
    if platform not in SUPPORTED_PLATFORMS:
        raise ValidationError("Platform must be 'android' or 'ios'")


@dataclass
class CompressionStats:
    """Summary of a compress_bundle() run."""
    zip_path: Path
    file_count: int
    total_size: int
    compressed_size: int

    @property
    def reduction_percent(self) -> int:
        if self.total_size <= 0:
            return 0
        return max(0, int((1 - self.compressed_size / self.total_size) * 100))


def compress_bundle(source_dir: Path, zip_path: Path) -> CompressionStats:
    """
    Zip a build directory, preserving its structure.

    Args:
        source_dir: Directory containing the bundle and assets
        zip_path: Output archive (skipped if it lies inside source_dir)

    Returns:
        CompressionStats for the archive

    Raises:
        BuildFailedError: If source_dir holds no files
    """
    source_dir = Path(source_dir)
    zip_path = Path(zip_path)
    file_count = 0
    total_size = 0

    with zipfile.ZipFile(zip_path, "w") as zf:
        for root, dirs, files in os.walk(source_dir):
            dirs.sort()
            root_path = Path(root)
            rel_root = root_path.relative_to(source_dir)
            if rel_root != Path("."):
                info = zipfile.ZipInfo(rel_root.as_posix() + "/", date_time=_ZIP_EPOCH)
                info.external_attr = (0o40755 << 16) | 0x10
                zf.writestr(info, b"")
            for name in sorted(files):
                path = root_path / name
                if path.resolve() == zip_path.resolve():
                    continue
                info = zipfile.ZipInfo((rel_root / name).as_posix(), date_time=_ZIP_EPOCH)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o644 << 16
                data = path.read_bytes()
                zf.writestr(info, data, compresslevel=9)
                total_size += len(data)
                file_count += 1

    if file_count == 0:
        zip_path.unlink(missing_ok=True)
        raise BuildFailedError(f"No files to package in {source_dir}")

    stats = CompressionStats(
        zip_path=zip_path,
        file_count=file_count,
        total_size=total_size,
        compressed_size=zip_path.stat().st_size,
    )
    logger.info(
        "Compressed %d files: %d -> %d bytes (%d%% reduction)",
        stats.file_count, stats.total_size, stats.compressed_size,
        stats.reduction_percent,
    )
    return stats
