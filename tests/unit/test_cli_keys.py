"""
Unit tests for the keys, keygen and status CLI commands.

These run against a real config directory (HOTPATCH_CONFIG_DIR points at
a per-test temporary directory).
"""

import pytest
from click.testing import CliRunner

from hotpatch.config import HotPatchConfig
from hotpatch.keyring import Keyring
from hotpatch_cli.main import cli


@pytest.fixture
def runner():
    """Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def saved_keyring(temp_config_dir) -> Keyring:
    keyring = Keyring.load(temp_config_dir / "keyring.yaml")
    keyring.generate("old")
    keyring.generate("new")
    return keyring


class TestKeysCommands:
    """Tests for 'hotpatch keys'."""

    def test_list_empty(self, runner):
        """An empty keyring prints a hint."""
        result = runner.invoke(cli, ["keys", "list"])
        assert result.exit_code == 0
        assert "No encryption keys" in result.output

    def test_list_marks_active(self, runner, saved_keyring):
        """The active key is marked with *."""
        result = runner.invoke(cli, ["keys", "list"])
        lines = result.output.strip().splitlines()
        assert "* new" in lines
        assert "  old" in lines

    def test_generate(self, runner, temp_config_dir):
        """generate creates and activates a key."""
        result = runner.invoke(cli, ["keys", "generate", "--id", "prod-2026"])

        assert result.exit_code == 0, result.output
        assert "Generated key prod-2026" in result.output
        assert Keyring.load(temp_config_dir / "keyring.yaml").active_id == "prod-2026"

    def test_generate_no_active(self, runner, saved_keyring, temp_config_dir):
        """--no-active keeps the current active key."""
        result = runner.invoke(cli, ["keys", "generate", "--id", "spare", "--no-active"])

        assert result.exit_code == 0
        reloaded = Keyring.load(temp_config_dir / "keyring.yaml")
        assert reloaded.active_id == "new"
        assert "spare" in reloaded

    def test_generate_duplicate(self, runner, saved_keyring):
        """A duplicate id exits 1."""
        result = runner.invoke(cli, ["keys", "generate", "--id", "old"])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_select(self, runner, saved_keyring, temp_config_dir):
        """select changes the active key."""
        result = runner.invoke(cli, ["keys", "select", "old"])

        assert result.exit_code == 0
        assert Keyring.load(temp_config_dir / "keyring.yaml").active_id == "old"

    def test_select_unknown(self, runner, saved_keyring):
        """Selecting an unknown id exits 1."""
        result = runner.invoke(cli, ["keys", "select", "missing"])
        assert result.exit_code == 1
        assert "Key ID 'missing' not found" in result.output

    def test_remove_active(self, runner, saved_keyring, temp_config_dir):
        """Removing the active key clears the active pointer."""
        result = runner.invoke(cli, ["keys", "remove", "new", "--yes"])

        assert result.exit_code == 0
        assert "No key is active" in result.output
        reloaded = Keyring.load(temp_config_dir / "keyring.yaml")
        assert reloaded.active_id is None
        assert reloaded.list_keys() == [("old", False)]

    def test_remove_unknown(self, runner, saved_keyring, temp_config_dir):
        """Removing an unknown id exits 1 and changes nothing."""
        result = runner.invoke(cli, ["keys", "remove", "missing", "--yes"])

        assert result.exit_code == 1
        assert len(Keyring.load(temp_config_dir / "keyring.yaml")) == 2

    def test_malformed_keyring(self, runner, temp_config_dir):
        """A broken keyring file is reported, not traced."""
        (temp_config_dir / "keyring.yaml").write_text("active_key_id: ghost\nkeys: {}\n")
        result = runner.invoke(cli, ["keys", "list"])
        assert result.exit_code == 1
        assert "Error: " in result.output


class TestKeygenCommand:
    """Tests for 'hotpatch keygen'."""

    def test_generates_keypair(self, runner, temp_config_dir):
        """keygen writes both key files and prints the public key."""
        result = runner.invoke(cli, ["keygen"])

        assert result.exit_code == 0, result.output
        public = (temp_config_dir / "public_key.pem").read_text()
        assert public in result.output
        assert (temp_config_dir / "signing_key.pem").exists()

    def test_refuses_overwrite(self, runner, temp_config_dir):
        """A second keygen without --force exits 1."""
        runner.invoke(cli, ["keygen"])
        result = runner.invoke(cli, ["keygen"])
        assert result.exit_code == 1
        assert "--force" in result.output

    def test_force(self, runner, temp_config_dir):
        """--force replaces the key and warns about deployed apps."""
        runner.invoke(cli, ["keygen"])
        before = (temp_config_dir / "signing_key.pem").read_text()

        result = runner.invoke(cli, ["keygen", "--force"])

        assert result.exit_code == 0
        assert (temp_config_dir / "signing_key.pem").read_text() != before
        assert "Warning: " in result.output


class TestStatusCommand:
    """Tests for 'hotpatch status'."""

    def test_logged_out(self, runner):
        """A fresh install reports not logged in and no signing key."""
        result = runner.invoke(cli, ["status"])
        assert result.exit_code == 0
        assert "not logged in" in result.output
        assert "missing" in result.output

    def test_logged_in_masks_token(self, runner, temp_config_dir, saved_keyring):
        """The token is masked and the active key shown."""
        HotPatchConfig(config_dir=temp_config_dir).update_credentials(
            "https://updates.example.com", "secret-token-value"
        )
        runner.invoke(cli, ["keygen"])

        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "https://updates.example.com" in result.output
        assert "secret-token-value" not in result.output
        assert "secr...alue" in result.output
        assert "active: new" in result.output
        assert "Public key:" in result.output
