"""
Binary patch creation using bsdiff.

Patches are BSDIFF40 deltas; devices apply them with a bspatch
implementation to reconstruct the new bundle from the one they hold.
Callers must pass the same representation on both sides (the plaintext
zip); diffing ciphertext against plaintext yields useless patches.
"""

import logging
from pathlib import Path
from typing import Union

import bsdiff4

logger = logging.getLogger(__name__)


def create_patch(old: bytes, new: bytes) -> bytes:
    """Create a patch transforming `old` into `new`."""
    return bsdiff4.diff(old, new)


def apply_patch(old: bytes, patch: bytes) -> bytes:
    """Apply a patch created by create_patch()."""
    return bsdiff4.patch(old, patch)


def create_patch_file(
    old_path: Union[str, Path],
    new_path: Union[str, Path],
    patch_path: Union[str, Path],
) -> int:
    """
    Diff two files and write the patch.

    Args:
        old_path: Base bundle (plaintext)
        new_path: Target bundle (plaintext)
        patch_path: Output patch file

    Returns:
        Size of the patch in bytes
    """
    old = Path(old_path).read_bytes()
    new = Path(new_path).read_bytes()
    patch = create_patch(old, new)
    Path(patch_path).write_bytes(patch)
    logger.info(
        "Created patch %s (%d bytes, base %d bytes, target %d bytes)",
        Path(patch_path).name, len(patch), len(old), len(new),
    )
    return len(patch)
