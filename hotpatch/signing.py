"""
Ed25519 bundle signing.

Signs release bundles and patches with the developer's Ed25519 private
key so devices can verify updates with the public key embedded in the
app. Verification happens on-device and is not implemented here.

Key files (both base64 of the raw 32-byte key):
    signing_key.pem   private key, mode 0600
    public_key.pem    public key, embedded in the app
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import Optional, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from hotpatch.config import write_private_file
from hotpatch.errors import HotPatchError, InvalidKeyError, NotConfiguredError

logger = logging.getLogger(__name__)

PRIVATE_KEY_SIZE = 32
SIGNATURE_SIZE = 64


class SigningKeyExistsError(HotPatchError):
    """Raised when keygen would overwrite an existing signing key."""

    pass


def _raw_public_bytes(private_key: Ed25519PrivateKey) -> bytes:
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def generate_keypair(
    private_path: Path,
    public_path: Path,
    force: bool = False,
) -> str:
    """
    Generate an Ed25519 keypair and write both halves to disk.

    Args:
        private_path: Where to write the private key (mode 0600)
        public_path: Where to write the public key
        force: Overwrite an existing private key

    Returns:
        The base64 public key, for embedding in the app

    Raises:
        SigningKeyExistsError: If a private key exists and force is False
    """
    if Path(private_path).exists() and not force:
        raise SigningKeyExistsError(
            f"Signing key already exists at {private_path}. Use --force to overwrite."
        )

    private_key = Ed25519PrivateKey.generate()
    private_raw = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_b64 = base64.b64encode(_raw_public_bytes(private_key)).decode("ascii")

    write_private_file(Path(private_path), base64.b64encode(private_raw).decode("ascii"))
    Path(public_path).write_text(public_b64)
    logger.info("Generated Ed25519 keypair at %s", private_path)
    return public_b64


class BundleSigner:
    """
    Ed25519 signer backed by a private key file.

    The key is read lazily on the first sign() call so a signer can be
    constructed for runs that fail before anything needs signing.

    Attributes:
        key_path: Path to the base64 private key
    """

    def __init__(self, key_path: Path):
        """
        Initialize the signer.

        Args:
            key_path: Path to the base64-encoded 32-byte private key
        """
        self.key_path = Path(key_path)
        self._private_key: Optional[Ed25519PrivateKey] = None

    @property
    def is_configured(self) -> bool:
        """Check if the private key file exists."""
        return self.key_path.exists()

    def _load_key(self) -> Ed25519PrivateKey:
        if self._private_key is not None:
            return self._private_key

        if not self.key_path.exists():
            raise NotConfiguredError(
                f"No signing key found at {self.key_path}. Run `hotpatch keygen` first."
            )

        try:
            raw = base64.b64decode(self.key_path.read_text().strip(), validate=True)
        except (binascii.Error, ValueError):
            raise InvalidKeyError("Failed to decode signing key (expected base64)")

        if len(raw) != PRIVATE_KEY_SIZE:
            raise InvalidKeyError(
                f"Signing key must be {PRIVATE_KEY_SIZE} bytes, got {len(raw)}"
            )

        self._private_key = Ed25519PrivateKey.from_private_bytes(raw)
        return self._private_key

    def sign(self, data: bytes) -> str:
        """
        Sign bytes.

        Args:
            data: Exact bytes that will be uploaded

        Returns:
            Base64-encoded 64-byte Ed25519 signature

        Raises:
            NotConfiguredError: If the private key file is missing
            InvalidKeyError: If the private key file is malformed
        """
        signature = self._load_key().sign(data)
        return base64.b64encode(signature).decode("ascii")

    def sign_file(self, path: Union[str, Path]) -> str:
        """Sign the contents of a file."""
        return self.sign(Path(path).read_bytes())

    def public_key_b64(self) -> str:
        """Return the base64 public key matching the private key."""
        return base64.b64encode(_raw_public_bytes(self._load_key())).decode("ascii")
