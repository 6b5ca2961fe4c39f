"""Tests for customization config loading."""

import pytest

from imagecustomizer.config import ConfigLoader, validate_config
from imagecustomizer.errors import ConfigError


@pytest.fixture
def config_dir(tmp_path):
    """Create a config directory with a complete config."""
    (tmp_path / "scripts").mkdir()
    (tmp_path / "scripts" / "setup.sh").write_text("#!/bin/sh\necho setup\n")
    (tmp_path / "files").mkdir()
    (tmp_path / "files" / "motd").write_text("welcome\n")
    (tmp_path / "lists").mkdir()
    (tmp_path / "lists" / "base.yaml").write_text("packages: [vim]\n")

    (tmp_path / "config.yaml").write_text("""
system_config:
  hostname: myhost
  packages_install:
    - openssh-server
  package_lists_install:
    - lists/base.yaml
  additional_files:
    files/motd:
      - path: /etc/motd
        permissions: "644"
      - path: /etc/issue
  post_install_scripts:
    - path: scripts/setup.sh
      args: --verbose
""")
    return tmp_path


class TestConfigLoader:
    """Test ConfigLoader."""

    def test_load(self, config_dir):
        """Test loading a full config."""
        loader = ConfigLoader(config_dir / "config.yaml")

        config = loader.load()

        system_config = config.system_config
        assert system_config.hostname == "myhost"
        assert system_config.packages_install == ("openssh-server",)
        files = system_config.additional_files["files/motd"]
        assert files[0].permissions == 0o644
        assert files[1].permissions is None
        assert system_config.post_install_scripts[0].args == "--verbose"
        assert loader.config is config

    def test_base_config_path(self, config_dir):
        """Test that relative paths resolve against the config file's directory."""
        loader = ConfigLoader(config_dir / "config.yaml")

        assert loader.base_config_path == str(config_dir.resolve())

    def test_empty_file(self, tmp_path):
        """Test that an empty file is an empty config."""
        (tmp_path / "config.yaml").write_text("")

        config = ConfigLoader(tmp_path / "config.yaml").load()

        assert config.system_config.hostname is None

    def test_missing_file(self, tmp_path):
        """Test that a missing config file raises ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            ConfigLoader(tmp_path / "config.yaml").load()

    def test_invalid_yaml(self, tmp_path):
        """Test that unparsable YAML raises ConfigError."""
        (tmp_path / "config.yaml").write_text("system_config: [unclosed\n")

        with pytest.raises(ConfigError):
            ConfigLoader(tmp_path / "config.yaml").load()

    def test_not_a_mapping(self, tmp_path):
        """Test that a non-mapping document raises ConfigError."""
        (tmp_path / "config.yaml").write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="mapping"):
            ConfigLoader(tmp_path / "config.yaml").load()

    def test_unknown_key(self, tmp_path):
        """Test that unknown keys raise ConfigError."""
        (tmp_path / "config.yaml").write_text("system_config:\n  hostnam: x\n")

        with pytest.raises(ConfigError, match="hostnam"):
            ConfigLoader(tmp_path / "config.yaml").load()

    def test_unquoted_permissions_are_octal(self, tmp_path):
        """Test that modes are read as octal however they are written."""
        (tmp_path / "config.yaml").write_text("""
system_config:
  additional_files:
    a.txt:
      - path: /opt/a
        permissions: 0644
      - path: /opt/b
        permissions: 644
      - path: /opt/c
        permissions: 0o755
      - path: /opt/d
        permissions: "0600"
""")

        config = ConfigLoader(tmp_path / "config.yaml").load()

        modes = [f.permissions for f in config.system_config.additional_files["a.txt"]]
        assert modes == [0o644, 0o644, 0o755, 0o600]

    def test_non_octal_permissions(self, tmp_path):
        """Test that a mode with non-octal digits is rejected."""
        (tmp_path / "config.yaml").write_text(
            "system_config:\n  additional_files:\n    a.txt:\n      - path: /opt/a\n        permissions: 0968\n"
        )

        with pytest.raises(ConfigError, match="permissions"):
            ConfigLoader(tmp_path / "config.yaml").load()

    def test_non_string_keys(self, tmp_path):
        """Test that non-string top-level keys raise ConfigError."""
        (tmp_path / "config.yaml").write_text("1: x\nsystem_config: {}\n")

        with pytest.raises(ConfigError):
            ConfigLoader(tmp_path / "config.yaml").load()


class TestValidateConfig:
    """Test referenced-file validation."""

    def test_valid(self, config_dir):
        """Test that a complete config has no problems."""
        loader = ConfigLoader(config_dir / "config.yaml")
        config = loader.load()

        assert validate_config(config, loader.base_config_path) == []

    def test_missing_references(self, config_dir):
        """Test that each missing referenced file is reported."""
        (config_dir / "scripts" / "setup.sh").unlink()
        (config_dir / "files" / "motd").unlink()
        (config_dir / "lists" / "base.yaml").unlink()
        loader = ConfigLoader(config_dir / "config.yaml")
        config = loader.load()

        problems = validate_config(config, loader.base_config_path)

        assert problems == [
            "Additional file not found: files/motd",
            "Script not found: scripts/setup.sh",
            "Package list not found: lists/base.yaml",
        ]
