"""
Unit tests for binary patch creation.
"""

import os

from hotpatch.diff import apply_patch, create_patch, create_patch_file


class TestCreatePatch:
    """Tests for create_patch() and apply_patch()."""

    def test_apply_reconstructs_new(self):
        """Applying a patch to the old bytes yields the new bytes."""
        old = b"console.log('hello');\n" * 200
        new = old.replace(b"hello", b"hello world", 5) + b"// appended\n"

        patch = create_patch(old, new)
        assert apply_patch(old, patch) == new

    def test_identical_inputs(self):
        """A patch between identical inputs reproduces the input."""
        data = os.urandom(4096)
        assert apply_patch(data, create_patch(data, data)) == data

    def test_small_change_gives_small_patch(self):
        """Patches for small edits are much smaller than the target."""
        old = os.urandom(64 * 1024)
        new = old[:1000] + b"CHANGED" + old[1007:]
        assert len(create_patch(old, new)) < len(new) // 4

    def test_empty_old(self):
        """Patching from an empty base produces the full target."""
        new = b"first bundle"
        assert apply_patch(b"", create_patch(b"", new)) == new


class TestCreatePatchFile:
    """Tests for create_patch_file()."""

    def test_writes_patch(self, tmp_path):
        """The patch file applies to the old file to give the new file."""
        old_path = tmp_path / "old.zip"
        new_path = tmp_path / "new.zip"
        old_path.write_bytes(b"version one " * 100)
        new_path.write_bytes(b"version two " * 100)

        size = create_patch_file(old_path, new_path, tmp_path / "diff.patch")

        patch = (tmp_path / "diff.patch").read_bytes()
        assert size == len(patch)
        assert apply_patch(old_path.read_bytes(), patch) == new_path.read_bytes()
