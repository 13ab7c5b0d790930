"""
Error taxonomy for the HotPatch release tooling.

Every failure surfaced to callers is a HotPatchError subclass. Pipeline
steps tag the error with the step that failed (see hotpatch.pipeline.step)
so the CLI can report where a release or patch run stopped.
"""

from typing import Optional


# ============================================================================
# Base
# ============================================================================


class HotPatchError(Exception):
    """Base exception for all HotPatch errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.step: Optional[str] = None

    def __str__(self) -> str:
        if self.step:
            return f"{self.step}: {self.message}"
        return self.message


# ============================================================================
# Input and Configuration
# ============================================================================


class ValidationError(HotPatchError):
    """Raised when caller input is rejected before any side effect."""

    pass


class NotAuthenticatedError(HotPatchError):
    """Raised when no usable API token is available or the token is rejected."""

    pass


class NotConfiguredError(HotPatchError):
    """Raised when a required local resource (e.g. the signing key) is missing."""

    pass


class NotFoundError(HotPatchError):
    """Raised when a release version or key cannot be found."""

    pass


# ============================================================================
# Keys and Cryptography
# ============================================================================


class KeyringError(HotPatchError):
    """Raised when the keyring is malformed or its active-key invariant is broken."""

    pass


class KeyringEmptyError(KeyringError):
    """Raised when encryption is requested but no key is available."""

    pass


class KeyNotFoundError(NotFoundError):
    """Raised when a key id is not present in the keyring."""

    def __init__(self, key_id: str):
        super().__init__(f"Key ID '{key_id}' not found in keyring")
        self.key_id = key_id


class InvalidKeyError(HotPatchError):
    """Raised when key material has the wrong length or encoding."""

    pass


class InputTooSmallError(HotPatchError):
    """Raised when an encrypted blob is too short to carry a nonce."""

    pass


class DecryptionFailedError(HotPatchError):
    """Raised when the AEAD tag does not verify."""

    pass


# ============================================================================
# Registry
# ============================================================================


class NetworkError(HotPatchError):
    """Raised when the registry cannot be reached or the transfer breaks."""

    pass


class RemoteError(HotPatchError):
    """Raised when the registry answers with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class VersionConflictError(RemoteError):
    """Raised when the registry already holds the version on the channel."""

    def __init__(self, version: str, channel: str):
        super().__init__(
            f"Version {version} already exists for channel {channel}. "
            "Use a new version number.",
            status_code=409,
        )
        self.version = version
        self.channel = channel


# ============================================================================
# Pipeline
# ============================================================================


class BuildFailedError(HotPatchError):
    """Raised when the external bundler fails in any way."""

    pass


class PipelineError(HotPatchError):
    """Wraps an unexpected failure (I/O, library error) raised inside a step."""

    def __init__(self, step: str, cause: BaseException):
        super().__init__(f"{type(cause).__name__}: {cause}")
        self.step = step
        self.cause = cause
