"""
CLI configuration module.

Manages the registry endpoint, API token, legacy encryption key and
runtime settings. Configuration is loaded from a YAML file in the
per-user config directory and can be overridden by environment variables.

The same directory holds the keyring (keyring.yaml) and the Ed25519
signing keypair (signing_key.pem / public_key.pem).
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml
from platformdirs import user_config_dir

from hotpatch.errors import HotPatchError


# ============================================================================
# Constants
# ============================================================================

APP_NAME = "hotpatch"
APP_AUTHOR = "HotPatch"
CONFIG_FILENAME = "config.yaml"
KEYRING_FILENAME = "keyring.yaml"
SIGNING_KEY_FILENAME = "signing_key.pem"
PUBLIC_KEY_FILENAME = "public_key.pem"

# Environment variable names
ENV_CONFIG_DIR = "HOTPATCH_CONFIG_DIR"
ENV_API_ENDPOINT = "HOTPATCH_API_ENDPOINT"
ENV_API_TOKEN = "HOTPATCH_API_TOKEN"
ENV_LOG_LEVEL = "HOTPATCH_LOG_LEVEL"

# Default values
DEFAULT_API_ENDPOINT = "http://localhost:8080"
DEFAULT_LOG_LEVEL = "INFO"

# URL validation regex
URL_PATTERN = re.compile(
    r"^https?://"  # http:// or https://
    r"(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,6}\.?|"  # domain
    r"localhost|"  # localhost
    r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})"  # ...or ip
    r"(?::\d+)?"  # optional port
    r"(?:/?|[/?]\S+)$",
    re.IGNORECASE,
)


# ============================================================================
# Exceptions
# ============================================================================


class ConfigError(HotPatchError):
    """Base exception for configuration errors."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails."""

    pass


# ============================================================================
# Helper Functions
# ============================================================================


def get_default_config_dir() -> Path:
    """
    Get the configuration directory for the current platform.

    HOTPATCH_CONFIG_DIR takes precedence over the platform default.

    Returns:
        Path to the config directory
    """
    env_dir = os.environ.get(ENV_CONFIG_DIR)
    if env_dir:
        return Path(env_dir)
    return Path(user_config_dir(APP_NAME, APP_AUTHOR))


def write_private_file(path: Path, content: str) -> None:
    """
    Atomically replace a file readable only by the owner.

    The content is written to a temporary file in the same directory,
    flushed to disk and renamed over the target, so readers see either
    the old or the new file and never a partial write.

    Args:
        path: Destination file
        content: Text content to write
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


# ============================================================================
# HotPatchConfig Class
# ============================================================================


class HotPatchConfig:
    """
    CLI configuration manager.

    Configuration sources (in priority order):
    1. Environment variables
    2. Configuration file
    3. Default values

    Attributes:
        api_endpoint: Registry base URL
        api_token: JWT access token obtained at login
        app_id: Optional application id reported by the registry
        tier: Optional plan tier reported by the registry
        encryption_key: Legacy single encryption key (hex), predates the keyring
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config_dir: Optional[Path] = None,
    ):
        """
        Initialize configuration.

        Args:
            config_path: Explicit path to config file (takes precedence)
            config_dir: Directory containing config file
        """
        if config_path:
            self._config_path = Path(config_path)
            self._config_dir = self._config_path.parent
        else:
            self._config_dir = Path(config_dir) if config_dir else get_default_config_dir()
            self._config_path = self._config_dir / CONFIG_FILENAME

        self._api_endpoint: str = ""
        self._api_token: str = ""
        self._app_id: Optional[str] = None
        self._tier: Optional[str] = None
        self._encryption_key: Optional[str] = None
        self._log_level: str = DEFAULT_LOG_LEVEL

        self._load()

    @property
    def config_path(self) -> Path:
        """Get the configuration file path."""
        return self._config_path

    @property
    def config_dir(self) -> Path:
        """Get the configuration directory."""
        return self._config_dir

    @property
    def keyring_path(self) -> Path:
        """Get the keyring file path."""
        return self._config_dir / KEYRING_FILENAME

    @property
    def signing_key_path(self) -> Path:
        """Get the Ed25519 private key path."""
        return self._config_dir / SIGNING_KEY_FILENAME

    @property
    def public_key_path(self) -> Path:
        """Get the Ed25519 public key path."""
        return self._config_dir / PUBLIC_KEY_FILENAME

    # -------------------------------------------------------------------------
    # Configuration Properties
    # -------------------------------------------------------------------------

    @property
    def api_endpoint(self) -> str:
        """Get the registry endpoint."""
        return os.environ.get(ENV_API_ENDPOINT, self._api_endpoint)

    @api_endpoint.setter
    def api_endpoint(self, value: str) -> None:
        self._api_endpoint = value

    @property
    def api_token(self) -> str:
        """Get the API token."""
        return os.environ.get(ENV_API_TOKEN, self._api_token)

    @api_token.setter
    def api_token(self, value: str) -> None:
        self._api_token = value

    @property
    def app_id(self) -> Optional[str]:
        return self._app_id

    @app_id.setter
    def app_id(self, value: Optional[str]) -> None:
        self._app_id = value

    @property
    def tier(self) -> Optional[str]:
        return self._tier

    @tier.setter
    def tier(self, value: Optional[str]) -> None:
        self._tier = value

    @property
    def encryption_key(self) -> Optional[str]:
        """Get the legacy single encryption key (hex)."""
        return self._encryption_key

    @encryption_key.setter
    def encryption_key(self, value: Optional[str]) -> None:
        self._encryption_key = value

    @property
    def log_level(self) -> str:
        """Get the log level."""
        return os.environ.get(ENV_LOG_LEVEL, self._log_level)

    @log_level.setter
    def log_level(self, value: str) -> None:
        self._log_level = value

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def is_logged_in(self) -> bool:
        """Check if an endpoint and token are available."""
        return bool(self.api_endpoint and self.api_token)

    # -------------------------------------------------------------------------
    # Configuration Management
    # -------------------------------------------------------------------------

    def _load(self) -> None:
        """Load configuration from file."""
        if not self._config_path.exists():
            return

        try:
            with open(self._config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config file: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {self._config_path} must contain a mapping")

        self._api_endpoint = data.get("api_endpoint", "") or ""
        self._api_token = data.get("api_token", "") or ""
        self._app_id = data.get("app_id")
        self._tier = data.get("tier")
        self._encryption_key = data.get("encryption_key")
        self._log_level = data.get("log_level", DEFAULT_LOG_LEVEL)

    def to_dict(self) -> dict[str, Any]:
        """Return the persisted fields (without environment overrides)."""
        data: dict[str, Any] = {
            "api_endpoint": self._api_endpoint,
            "api_token": self._api_token,
            "log_level": self._log_level,
        }
        if self._app_id:
            data["app_id"] = self._app_id
        if self._tier:
            data["tier"] = self._tier
        if self._encryption_key:
            data["encryption_key"] = self._encryption_key
        return data

    def save(self) -> None:
        """Save configuration to file."""
        write_private_file(
            self._config_path,
            yaml.safe_dump(self.to_dict(), default_flow_style=False),
        )

    def validate(self) -> None:
        """
        Validate the current configuration.

        Raises:
            ConfigValidationError: If configuration is invalid
        """
        if self.api_endpoint and not URL_PATTERN.match(self.api_endpoint):
            raise ConfigValidationError(
                f"Invalid api_endpoint format: {self.api_endpoint}"
            )

        if self._encryption_key is not None:
            key = self._encryption_key
            if len(key) != 64 or not all(c in "0123456789abcdefABCDEF" for c in key):
                raise ConfigValidationError(
                    "encryption_key must be 64 hex characters (32 bytes)"
                )

    def update_credentials(self, api_endpoint: str, api_token: str) -> None:
        """
        Store a freshly obtained token for an endpoint.

        Automatically saves the configuration after updating.

        Args:
            api_endpoint: Registry base URL
            api_token: Access token from the registry
        """
        self._api_endpoint = api_endpoint.rstrip("/")
        self._api_token = api_token
        self.validate()
        self.save()

    def clear_credentials(self) -> None:
        """
        Clear the stored token.

        Does not automatically save - call save() explicitly.
        """
        self._api_token = ""
