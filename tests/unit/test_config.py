"""
Unit tests for HotPatchConfig.
"""

import os
import stat
from pathlib import Path

import pytest
import yaml

from hotpatch.config import (
    ConfigError,
    ConfigValidationError,
    HotPatchConfig,
    get_default_config_dir,
    write_private_file,
)


class TestConfigLoading:
    """Tests for loading configuration."""

    def test_defaults_without_file(self, temp_config_dir):
        """A missing file yields an empty, logged-out configuration."""
        config = HotPatchConfig(config_dir=temp_config_dir)
        assert config.api_endpoint == ""
        assert config.api_token == ""
        assert config.log_level == "INFO"
        assert not config.is_logged_in

    def test_load_from_file(self, temp_config_dir):
        """Values are read from config.yaml."""
        (temp_config_dir / "config.yaml").write_text(yaml.safe_dump({
            "api_endpoint": "https://updates.example.com",
            "api_token": "tok",
            "app_id": "app-1",
            "tier": "pro",
            "log_level": "DEBUG",
        }))

        config = HotPatchConfig(config_dir=temp_config_dir)

        assert config.api_endpoint == "https://updates.example.com"
        assert config.is_logged_in
        assert config.app_id == "app-1"
        assert config.tier == "pro"
        assert config.log_level == "DEBUG"

    def test_explicit_config_path(self, tmp_path):
        """An explicit path places keys next to it."""
        config = HotPatchConfig(config_path=tmp_path / "custom.yaml")
        assert config.config_dir == tmp_path
        assert config.keyring_path == tmp_path / "keyring.yaml"
        assert config.signing_key_path == tmp_path / "signing_key.pem"

    def test_invalid_yaml(self, temp_config_dir):
        """Unparsable YAML raises ConfigError."""
        (temp_config_dir / "config.yaml").write_text("api_endpoint: [unclosed\n")
        with pytest.raises(ConfigError):
            HotPatchConfig(config_dir=temp_config_dir)

    def test_non_mapping(self, temp_config_dir):
        """A YAML list raises ConfigError."""
        (temp_config_dir / "config.yaml").write_text("- one\n- two\n")
        with pytest.raises(ConfigError):
            HotPatchConfig(config_dir=temp_config_dir)


class TestEnvironmentOverrides:
    """Tests for HOTPATCH_* environment variables."""

    def test_env_overrides_file(self, temp_config_dir, monkeypatch):
        """Environment variables win over the file."""
        (temp_config_dir / "config.yaml").write_text(yaml.safe_dump({
            "api_endpoint": "https://file.example.com",
            "api_token": "file-token",
        }))
        monkeypatch.setenv("HOTPATCH_API_ENDPOINT", "https://env.example.com")
        monkeypatch.setenv("HOTPATCH_API_TOKEN", "env-token")
        monkeypatch.setenv("HOTPATCH_LOG_LEVEL", "WARNING")

        config = HotPatchConfig(config_dir=temp_config_dir)

        assert config.api_endpoint == "https://env.example.com"
        assert config.api_token == "env-token"
        assert config.log_level == "WARNING"

    def test_env_not_persisted(self, temp_config_dir, monkeypatch):
        """Saving writes file values, not environment overrides."""
        monkeypatch.setenv("HOTPATCH_API_TOKEN", "env-token")
        config = HotPatchConfig(config_dir=temp_config_dir)
        config.save()

        data = yaml.safe_load((temp_config_dir / "config.yaml").read_text())
        assert data["api_token"] == ""

    def test_config_dir_from_env(self, monkeypatch, tmp_path):
        """HOTPATCH_CONFIG_DIR selects the default directory."""
        monkeypatch.setenv("HOTPATCH_CONFIG_DIR", str(tmp_path))
        assert get_default_config_dir() == tmp_path
        assert HotPatchConfig().config_path == tmp_path / "config.yaml"

    def test_platform_default(self, monkeypatch):
        """Without an override the platformdirs location is used."""
        monkeypatch.delenv("HOTPATCH_CONFIG_DIR", raising=False)
        assert get_default_config_dir().name == "hotpatch"


class TestCredentials:
    """Tests for update_credentials() and validate()."""

    def test_update_credentials_saves(self, temp_config_dir):
        """Credentials are persisted and the trailing slash is dropped."""
        config = HotPatchConfig(config_dir=temp_config_dir)
        config.update_credentials("https://updates.example.com/", "new-token")

        reloaded = HotPatchConfig(config_dir=temp_config_dir)
        assert reloaded.api_endpoint == "https://updates.example.com"
        assert reloaded.api_token == "new-token"

    def test_invalid_endpoint(self, temp_config_dir):
        """Malformed URLs are rejected before saving."""
        config = HotPatchConfig(config_dir=temp_config_dir)
        with pytest.raises(ConfigValidationError):
            config.update_credentials("not a url", "token")
        assert not (temp_config_dir / "config.yaml").exists()

    def test_invalid_legacy_key(self, temp_config_dir):
        """A legacy key that is not 64 hex chars fails validation."""
        config = HotPatchConfig(config_dir=temp_config_dir)
        config.encryption_key = "abcd"
        with pytest.raises(ConfigValidationError):
            config.validate()

    def test_clear_credentials(self, config):
        """clear_credentials removes the token."""
        config.clear_credentials()
        assert not config.is_logged_in

    def test_saved_file_is_private(self, config):
        """config.yaml is written with mode 0600."""
        assert stat.S_IMODE(os.stat(config.config_path).st_mode) == 0o600


class TestWritePrivateFile:
    """Tests for write_private_file()."""

    def test_creates_parents(self, tmp_path):
        """Missing parent directories are created."""
        target = tmp_path / "a" / "b" / "file.txt"
        write_private_file(target, "content")
        assert target.read_text() == "content"

    def test_replaces_existing(self, tmp_path):
        """An existing file is replaced in full."""
        target = Path(tmp_path / "file.txt")
        target.write_text("old content that is longer")
        write_private_file(target, "new")
        assert target.read_text() == "new"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["file.txt"]
