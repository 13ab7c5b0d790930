"""
Content hashing for release artifacts.

Hashes are lowercase hex SHA-256 digests. The registry stores them next to
the signature and devices recompute them over the downloaded bytes, so
the hash must always be taken over exactly what is uploaded.
"""

import hashlib
from pathlib import Path
from typing import BinaryIO, Iterable, Union

CHUNK_SIZE = 8192


def sha256_bytes(data: bytes) -> str:
    """
    Compute SHA-256 of an in-memory byte string.

    Args:
        data: Bytes to hash

    Returns:
        64-character lowercase hex string
    """
    return hashlib.sha256(data).hexdigest()


def sha256_chunks(chunks: Iterable[bytes]) -> str:
    """Compute SHA-256 over a stream of byte chunks."""
    hasher = hashlib.sha256()
    for chunk in chunks:
        hasher.update(chunk)
    return hasher.hexdigest()


def sha256_stream(stream: BinaryIO) -> str:
    """Compute SHA-256 of a binary file object, read in chunks."""
    return sha256_chunks(iter(lambda: stream.read(CHUNK_SIZE), b""))


def sha256_file(path: Union[str, Path]) -> str:
    """
    Compute SHA-256 of a file.

    Args:
        path: Path to the file to hash

    Returns:
        64-character lowercase hex string

    Raises:
        OSError: If the file cannot be read
    """
    with open(path, "rb") as f:
        return sha256_stream(f)


def short_hash(digest: str) -> str:
    """Abbreviate a hex digest for log output (first 8 ... last 8)."""
    if len(digest) <= 16:
        return digest
    return f"{digest[:8]}...{digest[-8:]}"
