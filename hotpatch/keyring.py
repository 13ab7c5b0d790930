"""
Local keyring for bundle encryption keys.

Stores AES-256 keys as hex strings keyed by id, with at most one active
key used for new encrypted releases. Older keys stay in the keyring so
patches against releases encrypted under them can still be produced.

File layout (keyring.yaml in the config directory, mode 0600):

    active_key_id: 3f9a01bc
    keys:
      3f9a01bc: 9c1e...   # 64 hex chars
      legacy-2023: 0b7d...

Invariant: when active_key_id is set it names a key in `keys`. It is
checked on load and at every mutation; every mutation is written
atomically before the method returns.
"""

import hashlib
import logging
import secrets
from pathlib import Path
from typing import Optional

import yaml

from hotpatch.config import write_private_file
from hotpatch.encryption import KEY_SIZE, parse_hex_key
from hotpatch.errors import (
    InvalidKeyError,
    KeyNotFoundError,
    KeyringEmptyError,
    KeyringError,
)

logger = logging.getLogger(__name__)

SHORT_ID_BYTES = 4


def derive_key_id(key: bytes) -> str:
    """Derive a short id (8 hex chars) from the SHA-256 of a key."""
    return hashlib.sha256(key).hexdigest()[: SHORT_ID_BYTES * 2]


class Keyring:
    """
    Persisted id -> key mapping with one active key.

    Usage:
        >>> keyring = Keyring.load(config.keyring_path)
        >>> key_id = keyring.generate()          # new active key
        >>> key_id, key = keyring.active_key()
        >>> keyring.remove(key_id)
    """

    def __init__(
        self,
        path: Path,
        keys: Optional[dict[str, str]] = None,
        active_id: Optional[str] = None,
    ):
        """
        Initialize a keyring.

        Args:
            path: File the keyring persists to
            keys: Mapping of key id to hex key
            active_id: Id of the active key, if any

        Raises:
            KeyringError: If active_id is not in keys
        """
        self._path = Path(path)
        self._keys: dict[str, str] = dict(keys or {})
        self._active_id = active_id
        self._check_invariant()

    @classmethod
    def load(cls, path: Path) -> "Keyring":
        """
        Load a keyring from disk. A missing file yields an empty keyring.

        Raises:
            KeyringError: If the file is malformed or the active key is missing
        """
        path = Path(path)
        if not path.exists():
            return cls(path)

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise KeyringError(f"Failed to parse keyring file {path}: {e}")

        if not isinstance(data, dict) or not isinstance(data.get("keys") or {}, dict):
            raise KeyringError(f"Keyring file {path} is malformed")
        raw_keys = data.get("keys") or {}

        keys = {}
        for key_id, key_hex in raw_keys.items():
            try:
                parse_hex_key(str(key_hex))
            except InvalidKeyError:
                raise KeyringError(f"Key '{key_id}' in {path} is not a 32-byte hex key")
            keys[str(key_id)] = str(key_hex).lower()

        active_id = data.get("active_key_id")
        return cls(path, keys, str(active_id) if active_id is not None else None)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def path(self) -> Path:
        return self._path

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key_id: str) -> bool:
        return key_id in self._keys

    def list_keys(self) -> list[tuple[str, bool]]:
        """Return (key_id, is_active) pairs sorted by id."""
        return [(key_id, key_id == self._active_id) for key_id in sorted(self._keys)]

    def get(self, key_id: str) -> bytes:
        """
        Get a key by id.

        Raises:
            KeyNotFoundError: If the id is not in the keyring
        """
        if key_id not in self._keys:
            raise KeyNotFoundError(key_id)
        return parse_hex_key(self._keys[key_id])

    def active_key(self) -> tuple[str, bytes]:
        """
        Get the active key.

        Returns:
            Tuple of (key_id, key bytes)

        Raises:
            KeyringEmptyError: If no key is active
            KeyringError: If the active id does not resolve
        """
        self._check_invariant()
        if self._active_id is None:
            raise KeyringEmptyError("No active encryption key in keyring")
        return self._active_id, self.get(self._active_id)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def generate(self, key_id: Optional[str] = None, activate: bool = True) -> str:
        """
        Generate a new random key and add it to the keyring.

        Args:
            key_id: Optional id; derived from the key hash when omitted
            activate: Make the new key the active key

        Returns:
            The id of the new key

        Raises:
            KeyringError: If key_id is already in use
        """
        key = secrets.token_bytes(KEY_SIZE)
        new_id = key_id or derive_key_id(key)
        if new_id in self._keys:
            raise KeyringError(f"Key ID '{new_id}' already exists in keyring")

        keys = dict(self._keys)
        keys[new_id] = key.hex()
        self._commit(keys, new_id if activate else self._active_id)
        logger.info("Generated encryption key %s (active=%s)", new_id, activate)
        return new_id

    def set_active(self, key_id: str) -> None:
        """
        Make an existing key the active key.

        Raises:
            KeyNotFoundError: If the id is not in the keyring
        """
        if key_id not in self._keys:
            raise KeyNotFoundError(key_id)
        self._commit(self._keys, key_id)
        logger.info("Active encryption key set to %s", key_id)

    def remove(self, key_id: str) -> None:
        """
        Remove a key. Clears the active pointer if it was the active key.

        Raises:
            KeyNotFoundError: If the id is not in the keyring (state unchanged)
        """
        if key_id not in self._keys:
            raise KeyNotFoundError(key_id)
        keys = {k: v for k, v in self._keys.items() if k != key_id}
        active = None if self._active_id == key_id else self._active_id
        self._commit(keys, active)
        logger.info("Removed encryption key %s", key_id)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    @staticmethod
    def _validate(keys: dict[str, str], active_id: Optional[str]) -> None:
        if active_id is not None and active_id not in keys:
            raise KeyringError(
                f"Active key '{active_id}' is not present in the keyring"
            )

    def _check_invariant(self) -> None:
        self._validate(self._keys, self._active_id)

    def _commit(self, keys: dict[str, str], active_id: Optional[str]) -> None:
        """Validate, persist, then swap in the new state."""
        self._validate(keys, active_id)
        data = {"active_key_id": active_id, "keys": dict(sorted(keys.items()))}
        write_private_file(self._path, yaml.safe_dump(data, default_flow_style=False))
        self._keys = dict(keys)
        self._active_id = active_id
