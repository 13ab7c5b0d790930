"""
Registry API client.

Async HTTP client for the HotPatch release registry: token exchange,
release listing, release and patch uploads, artifact downloads and
rollbacks. Transport failures become NetworkError and non-success
responses become typed errors carrying the server's message.
"""

import json
import logging
from typing import Any, Optional

import httpx

from hotpatch import __version__
from hotpatch.errors import (
    NetworkError,
    NotAuthenticatedError,
    NotFoundError,
    RemoteError,
    VersionConflictError,
)
from hotpatch.models import Release, ReleaseMetadata, TokenResponse

logger = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

DEFAULT_TIMEOUT = 120.0  # seconds, uploads can be large
USER_AGENT = f"HotPatch-CLI/{__version__}"


def _error_message(response: httpx.Response, default: str) -> str:
    """Extract the server-provided error message from a response."""
    try:
        body = response.json()
    except (json.JSONDecodeError, ValueError):
        return default
    if isinstance(body, dict):
        return body.get("error") or body.get("detail") or body.get("message") or default
    return default


# ============================================================================
# RegistryClient Class
# ============================================================================


class RegistryClient:
    """
    HTTP client for the HotPatch registry API.

    Attributes:
        base_url: Registry base URL
        token: Bearer token for authenticated requests
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Registry base URL
            token: Optional bearer token
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)

        Raises:
            ValueError: If base_url is empty
        """
        if not base_url:
            raise ValueError("base_url is required")

        self._base_url = base_url.rstrip("/")
        self._token = token

        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        }
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _require_token(self) -> None:
        if not self._token:
            raise NotAuthenticatedError(
                "Not logged in. Run `hotpatch login` first to configure your API endpoint and token."
            )

    def _is_registry_url(self, url: str) -> bool:
        """Check whether a URL is a registry path or on the registry origin."""
        target = httpx.URL(url)
        if target.is_relative_url:
            return True
        base = httpx.URL(self._base_url)
        return (target.scheme, target.host, target.port) == (base.scheme, base.host, base.port)

    async def _request(self, method: str, url: str, action: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request, mapping transport failures to NetworkError.

        The bearer token is only attached for the registry itself; artifact
        URLs on other hosts (CDN, presigned storage URLs) get no credentials.
        """
        if self._token and self._is_registry_url(url):
            headers = dict(kwargs.pop("headers", None) or {})
            headers["Authorization"] = f"Bearer {self._token}"
            kwargs["headers"] = headers
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{action}: connection timed out: {e}")
        except httpx.ConnectError as e:
            raise NetworkError(f"{action}: failed to connect to registry: {e}")
        except httpx.TransportError as e:
            raise NetworkError(f"{action}: transport error: {e}")

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        """Raise a typed error for a non-success response."""
        if response.is_success:
            return
        status = response.status_code
        message = _error_message(response, f"HTTP {status}")
        if status == 401:
            raise NotAuthenticatedError(f"{action}: {message}")
        if status == 404:
            raise NotFoundError(f"{action}: {message}")
        raise RemoteError(f"{action} ({status}): {message}", status_code=status)

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def authenticate(self, api_key: str) -> TokenResponse:
        """
        Exchange an API key for an access token.

        POST /auth/token

        Raises:
            NotAuthenticatedError: If the key is rejected
            NetworkError: If the registry cannot be reached
        """
        response = await self._request(
            "POST", "/auth/token", "Authentication", json={"api_key": api_key}
        )
        if response.status_code in (401, 403):
            raise NotAuthenticatedError(
                f"Authentication failed: {_error_message(response, 'Invalid API key')}"
            )
        self._raise_for_status(response, "Authentication failed")

        data = response.json()
        return TokenResponse(
            access_token=data["access_token"],
            token_type=data.get("token_type", "Bearer"),
            expires_in=int(data.get("expires_in", 0)),
        )

    # -------------------------------------------------------------------------
    # Releases
    # -------------------------------------------------------------------------

    async def list_releases(self, channel: str) -> list[Release]:
        """
        List releases on a channel, newest first.

        GET /releases?channel=...
        """
        self._require_token()
        response = await self._request(
            "GET", "/releases", "Failed to list releases", params={"channel": channel}
        )
        self._raise_for_status(response, "Failed to list releases")
        data = response.json()
        return [Release.from_api(item) for item in data.get("releases") or []]

    async def upload_release(
        self,
        metadata: ReleaseMetadata,
        data: bytes,
        filename: str = "bundle.zip",
    ) -> Release:
        """
        Upload a release bundle.

        POST /releases (multipart: metadata JSON + bundle file)

        Raises:
            VersionConflictError: If the version already exists on the channel
            RemoteError: For other rejections
        """
        self._require_token()
        form = {"metadata": json.dumps(metadata.to_api())}
        content_type = "application/octet-stream" if metadata.is_encrypted else "application/zip"
        files = {"bundle": (filename, data, content_type)}
        logger.debug("Uploading release %s (%d bytes)", metadata.version, len(data))
        response = await self._request(
            "POST", "/releases", "Failed to upload release", data=form, files=files
        )
        if response.status_code == 409:
            raise VersionConflictError(metadata.version, metadata.channel)
        self._raise_for_status(response, "Upload failed")
        return Release.from_api(response.json())

    async def upload_patch(
        self,
        release_id: str,
        base_version: str,
        hash: str,
        signature: str,
        data: bytes,
    ) -> None:
        """
        Upload a patch for an existing release.

        POST /releases/{id}/patches (multipart: metadata JSON + patch file)
        """
        self._require_token()
        metadata = {
            "base_version": base_version,
            "hash": hash,
            "signature": signature,
            "size": len(data),
        }
        form = {"metadata": json.dumps(metadata)}
        files = {"patch": ("diff.patch", data, "application/octet-stream")}
        response = await self._request(
            "POST", f"/releases/{release_id}/patches", "Failed to upload patch", data=form, files=files
        )
        self._raise_for_status(response, "Patch upload failed")

    async def download_artifact(self, url: str) -> bytes:
        """
        Download a stored artifact.

        Args:
            url: Absolute URL or path relative to the registry

        Returns:
            The artifact bytes exactly as stored
        """
        response = await self._request("GET", url, "Failed to download bundle")
        self._raise_for_status(response, "Failed to download bundle")
        return response.content

    async def rollback(self, release_id: str) -> tuple[str, Release]:
        """
        Make a previous release the active one on its channel.

        PATCH /releases/{id}/rollback

        Returns:
            Tuple of (server message, now-active release)
        """
        self._require_token()
        response = await self._request(
            "PATCH", f"/releases/{release_id}/rollback", "Failed to send rollback request"
        )
        self._raise_for_status(response, "Rollback failed")
        data = response.json()
        return data.get("message", "Rollback complete"), Release.from_api(data["release"])

    # -------------------------------------------------------------------------
    # Cleanup
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "RegistryClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
