"""
Scoped storage for pipeline artifacts.

Every intermediate file (zip, ciphertext, downloaded bundles, decrypted
bundles, patches) lives in a private temporary directory that is removed
when the pipeline exits, whether it succeeded or not. The only file that
may outlive the run is a deliverable the caller explicitly asked to keep.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class ArtifactWorkspace:
    """
    Context manager owning a temporary artifact directory.

    Usage:
        >>> with ArtifactWorkspace("release") as ws:
        ...     zip_path = ws.path("bundle.zip")
        ...     ws.track(build_dir / "index.android.bundle")

    Files registered with track() sit outside the directory (e.g. bundler
    output) and are deleted on exit as well.
    """

    def __init__(self, label: str = "hotpatch"):
        self.label = label
        self._root: Optional[Path] = None
        self._tracked: list[Path] = []

    def __enter__(self) -> "ArtifactWorkspace":
        self._root = Path(tempfile.mkdtemp(prefix=f"hotpatch-{self.label}-"))
        logger.debug("Created artifact workspace %s", self._root)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup()

    @property
    def root(self) -> Path:
        if self._root is None:
            raise RuntimeError("ArtifactWorkspace used outside its context")
        return self._root

    def path(self, name: str) -> Path:
        """Return a path for a new artifact inside the workspace."""
        return self.root / name

    def track(self, path: Path) -> Path:
        """Register an external file for deletion on exit."""
        self._tracked.append(Path(path))
        return Path(path)

    def cleanup(self) -> list[Path]:
        """
        Remove tracked files and the workspace directory.

        Failures are logged and never raised, so cleanup cannot mask the
        pipeline's own result.

        Returns:
            Paths that could not be removed
        """
        leftovers: list[Path] = []
        for path in self._tracked:
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                else:
                    path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Could not clean up %s: %s", path, e)
                leftovers.append(path)
        self._tracked = []

        if self._root is not None:
            try:
                shutil.rmtree(self._root)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Could not clean up %s: %s", self._root, e)
                leftovers.append(self._root)
            self._root = None
        return leftovers
