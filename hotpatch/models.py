"""
Data records exchanged with the registry and returned to callers.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional


@dataclass
class Release:
    """
    A release as recorded by the registry.

    Attributes:
        id: Registry release id
        version: Version string, unique per channel
        channel: Release channel (e.g. production, staging)
        artifact_url: Download URL of the uploaded bundle
        rollout_percentage: Share of installs eligible (1-100)
        is_active: Whether devices are currently served this release
        is_encrypted: Whether the stored bundle is AES-GCM ciphertext
        key_id: Keyring id of the encryption key (None for legacy key or plain)
        created_at: ISO-8601 creation time
        platform: Target platform when the registry reports it
    """
    id: str
    version: str
    channel: str
    artifact_url: str = ""
    rollout_percentage: int = 100
    is_active: bool = False
    is_encrypted: bool = False
    key_id: Optional[str] = None
    created_at: str = ""
    platform: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Release":
        """Build a Release from a registry JSON object."""
        return cls(
            id=str(data["id"]),
            version=data["version"],
            channel=data.get("channel", ""),
            artifact_url=data.get("bundle_url") or data.get("artifact_url") or "",
            rollout_percentage=int(data.get("rollout_percentage", 100)),
            is_active=bool(data.get("is_active", False)),
            is_encrypted=bool(data.get("is_encrypted", False)),
            key_id=data.get("key_id") or None,
            created_at=data.get("created_at", "") or "",
            platform=data.get("platform"),
        )


@dataclass
class ReleaseMetadata:
    """Metadata sent alongside a release upload."""
    version: str
    channel: str
    platform: str
    mandatory: bool
    rollout_percentage: int
    hash: str
    signature: str
    is_encrypted: bool
    size: int
    is_patch: bool = False
    base_version: Optional[str] = None
    key_id: Optional[str] = None

    def to_api(self) -> dict[str, Any]:
        """Serialize to the registry's JSON field names."""
        return asdict(self)


@dataclass
class Patch:
    """A patch ready for upload to the registry."""
    release_id: str
    base_version: str
    hash: str
    signature: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class TokenResponse:
    """Token returned by the registry's key exchange."""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 0


@dataclass
class PatchSummary:
    """Result of a patch run."""
    release_id: str
    base_version: str
    target_version: str
    hash: str
    signature: str
    size: int
    output_path: Optional[Path] = None


@dataclass
class ReleaseSummary:
    """
    Result of a release run.

    A release can be published while its patch stage fails; in that case
    `patch` is None, `patch_error` holds the reason and `warnings` is not
    empty. Callers must surface the warnings to the operator.
    """
    release: Release
    hash: str
    signature: str
    size: int
    is_encrypted: bool
    key_id: Optional[str] = None
    patch: Optional[PatchSummary] = None
    patch_error: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def patch_failed(self) -> bool:
        return self.patch_error is not None
