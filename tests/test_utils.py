"""Tests for utility functions module."""

import tempfile
from pathlib import Path

import pytest

from devcontainer_runner.utils import (
    find_devcontainer_config,
    format_command,
    is_json_file,
    load_config_file,
)


class TestFindDevcontainerConfig:
    """Test the find_devcontainer_config function."""

    def test_find_toml(self):
        """Test finding devcontainer.toml in .devcontainer directory."""
        with tempfile.TemporaryDirectory() as temp_dir:
            workspace = Path(temp_dir)
            config_dir = workspace / ".devcontainer"
            config_dir.mkdir()
            config_file = config_dir / "devcontainer.toml"
            config_file.write_text('name = "test"\n')

            assert find_devcontainer_config(workspace) == config_file

    def test_find_json_fallback(self):
        """Test falling back to devcontainer.json when no TOML exists."""
        with tempfile.TemporaryDirectory() as temp_dir:
            workspace = Path(temp_dir)
            config_dir = workspace / ".devcontainer"
            config_dir.mkdir()
            config_file = config_dir / "devcontainer.json"
            config_file.write_text('{"name": "test"}')

            assert find_devcontainer_config(workspace) == config_file

    def test_toml_takes_priority(self):
        """Test that devcontainer.toml is preferred over devcontainer.json."""
        with tempfile.TemporaryDirectory() as temp_dir:
            workspace = Path(temp_dir)
            config_dir = workspace / ".devcontainer"
            config_dir.mkdir()
            toml_file = config_dir / "devcontainer.toml"
            toml_file.write_text('name = "toml"\n')
            (config_dir / "devcontainer.json").write_text('{"name": "json"}')

            assert find_devcontainer_config(workspace) == toml_file

    def test_missing_returns_default_path(self):
        """Test that the default TOML path is returned when nothing exists."""
        with tempfile.TemporaryDirectory() as temp_dir:
            workspace = Path(temp_dir)

            result = find_devcontainer_config(workspace)

            assert result == workspace / ".devcontainer" / "devcontainer.toml"
            assert not result.exists()


class TestLoadConfigFile:
    """Test the load_config_file function."""

    def test_load_toml(self):
        """Test loading a TOML file."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".toml", delete=False) as f:
            f.write('name = "test"\n\n[image]\nname = "alpine"\n')
            file_path = Path(f.name)

        try:
            result = load_config_file(file_path)
            assert result == {"name": "test", "image": {"name": "alpine"}}
        finally:
            file_path.unlink()

    def test_load_jsonc_with_comments(self):
        """Test loading JSON with comments and trailing commas."""
        content = """
        {
            // container name
            "name": "test",
            "image": {"name": "alpine"},
        }
        """
        with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as f:
            f.write(content)
            file_path = Path(f.name)

        try:
            result = load_config_file(file_path)
            assert result == {"name": "test", "image": {"name": "alpine"}}
        finally:
            file_path.unlink()

    def test_load_nonexistent_file(self):
        """Test that a missing file raises OSError."""
        with pytest.raises(OSError):
            load_config_file(Path("/non/existent/devcontainer.toml"))

    def test_load_invalid_toml(self):
        """Test that invalid TOML raises ValueError."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".toml", delete=False) as f:
            f.write('name = "unterminated\n')
            file_path = Path(f.name)

        try:
            with pytest.raises(ValueError):
                load_config_file(file_path)
        finally:
            file_path.unlink()

    def test_load_json_array_rejected(self):
        """Test that a JSON document whose top level is not an object is rejected."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as f:
            f.write("[1, 2, 3]")
            file_path = Path(f.name)

        try:
            with pytest.raises(ValueError, match="top level"):
                load_config_file(file_path)
        finally:
            file_path.unlink()


class TestHelpers:
    """Test small helper functions."""

    def test_is_json_file(self):
        assert is_json_file(Path("devcontainer.json"))
        assert is_json_file(Path("devcontainer.JSONC"))
        assert not is_json_file(Path("devcontainer.toml"))

    def test_format_command_quotes_spaces(self):
        """Test that arguments with spaces are shell-quoted."""
        result = format_command(["docker", "run", "--name", "my dev", "alpine"])
        assert result == "docker run --name 'my dev' alpine"
