"""
HotPatch - release packaging, encryption, diffing and signing tooling.

Turns a built React Native bundle into a signed, optionally encrypted
release and computes binary patches between published releases.

Key modules:
- main: Entry points (publish_release, generate_patch) and logging setup
- config: CLI configuration management
- keyring: Local symmetric key storage
- encryption: AES-256-GCM bundle encryption
- signing: Ed25519 bundle signing
- diff: Binary patch creation
- api_client: HTTP client for the release registry
- release / patch: Pipeline orchestrators
"""

import os


def _get_version() -> str:
    """
    Get version with priority: HOTPATCH_VERSION env var > fallback.
    """
    env_version = os.environ.get("HOTPATCH_VERSION")
    if env_version:
        return env_version

    return "0.1.0"


__version__ = _get_version()
