"""
AES-256-GCM bundle encryption.

Encrypted blobs are self-describing: a random 12-byte nonce followed by
the GCM ciphertext with its 16-byte authentication tag appended. Devices
split the blob the same way before decrypting.

A fresh nonce is drawn from os.urandom for every call. Reusing a nonce
under the same key breaks GCM confidentiality and integrity, so there is
no API that accepts a caller-supplied nonce.
"""

import logging
import os
from pathlib import Path
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from hotpatch.errors import (
    DecryptionFailedError,
    InputTooSmallError,
    InvalidKeyError,
)

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


def _check_key(key: bytes) -> None:
    if len(key) != KEY_SIZE:
        raise InvalidKeyError(
            f"AES-256 key must be {KEY_SIZE} bytes, got {len(key)}"
        )


def parse_hex_key(key_hex: str) -> bytes:
    """
    Decode a stored hex key.

    Args:
        key_hex: 64 hex characters

    Returns:
        32 key bytes

    Raises:
        InvalidKeyError: If the value is not valid hex or has the wrong length
    """
    try:
        key = bytes.fromhex(key_hex.strip())
    except (ValueError, AttributeError):
        raise InvalidKeyError("Invalid encryption key format (expected hex)")
    _check_key(key)
    return key


def encrypt(plaintext: bytes, key: bytes) -> bytes:
    """
    Encrypt bytes under a 32-byte key.

    Args:
        plaintext: Bytes to encrypt
        key: 32-byte AES key

    Returns:
        nonce || ciphertext || tag

    Raises:
        InvalidKeyError: If the key is not 32 bytes
    """
    _check_key(key)
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)
    return nonce + ciphertext


def decrypt(blob: bytes, key: bytes) -> bytes:
    """
    Decrypt a blob produced by encrypt().

    Args:
        blob: nonce || ciphertext || tag
        key: 32-byte AES key

    Returns:
        The plaintext bytes

    Raises:
        InvalidKeyError: If the key is not 32 bytes
        InputTooSmallError: If the blob is shorter than the nonce
        DecryptionFailedError: If the tag does not verify
    """
    _check_key(key)
    if len(blob) < NONCE_SIZE:
        raise InputTooSmallError(
            f"Encrypted data too small ({len(blob)} bytes, no nonce)"
        )

    nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
    if len(ciphertext) < TAG_SIZE:
        raise DecryptionFailedError("Encrypted data truncated (no authentication tag)")

    try:
        return AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag:
        raise DecryptionFailedError(
            "Decryption failed: authentication tag mismatch. Are you using the correct key?"
        )


def encrypt_file(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    key: bytes,
) -> int:
    """
    Encrypt a file into another file.

    Returns:
        Size of the encrypted output in bytes
    """
    data = Path(input_path).read_bytes()
    blob = encrypt(data, key)
    Path(output_path).write_bytes(blob)
    logger.debug("Encrypted %s (%d -> %d bytes)", input_path, len(data), len(blob))
    return len(blob)


def decrypt_file(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    key: bytes,
) -> int:
    """
    Decrypt a file into another file.

    Returns:
        Size of the plaintext output in bytes
    """
    plaintext = decrypt(Path(input_path).read_bytes(), key)
    Path(output_path).write_bytes(plaintext)
    logger.debug("Decrypted %s (%d bytes)", input_path, len(plaintext))
    return len(plaintext)
