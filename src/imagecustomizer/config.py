"""Customization config loading and validation."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError
from ruamel.yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from imagecustomizer.errors import ConfigError
from imagecustomizer.models.config import ImageCustomizerConfig


logger = logging.getLogger(__name__)


class ConfigLoader:
    """Loads a customization config file.

    Relative paths inside the config (additional files, scripts, package
    lists) are resolved against the directory holding the config file.
    """

    def __init__(self, config_file: Path):
        """Initialize config loader."""
        self.config_file = Path(config_file).resolve()
        self.yaml = YAML(typ="safe")
        self.config: Optional[ImageCustomizerConfig] = None

    @property
    def base_config_path(self) -> str:
        """Directory the config's relative paths are resolved against."""
        return str(self.config_file.parent)

    def load(self) -> ImageCustomizerConfig:
        """Load and validate the config file."""
        logger.info(f"Loading configuration from {self.config_file}")

        if not self.config_file.is_file():
            raise ConfigError(f"Config file not found: {self.config_file}")

        data = self._read_yaml(self.config_file)
        try:
            self.config = ImageCustomizerConfig.model_validate(data)
        except (ValidationError, TypeError) as e:
            logger.error(f"Invalid config: {e}")
            raise ConfigError(f"Invalid config ({self.config_file}): {e}") from e

        logger.debug(f"Loaded config: {self.config_file}")
        return self.config

    def _read_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse YAML file."""
        try:
            text = file_path.read_text()
            data = self.yaml.load(text)
        except (OSError, YAMLError) as e:
            raise ConfigError(f"Failed to read {file_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config must be a mapping: {file_path}")

        _permissions_as_written(YAML(typ="safe", pure=True).compose(text), data)
        return data


def _mapping_value(node: Optional[Node], key: str) -> Optional[Node]:
    """Value node for a plain key of a mapping node."""
    if not isinstance(node, MappingNode):
        return None
    for key_node, value_node in node.value:
        if isinstance(key_node, ScalarNode) and key_node.value == key:
            return value_node
    return None


def _permissions_as_written(root: Node, data: Dict[str, Any]) -> None:
    """Replace unquoted permission ints with their source text.

    YAML 1.2 reads `0644` as decimal 644; file modes in a config are always
    octal, so the model parses the digits as written instead.
    """
    files_node = _mapping_value(_mapping_value(root, "system_config"), "additional_files")
    system_config = data.get("system_config")
    files = system_config.get("additional_files") if isinstance(system_config, dict) else None
    if not isinstance(files_node, MappingNode) or not isinstance(files, dict):
        return

    for source_node, destinations_node in files_node.value:
        if not isinstance(source_node, ScalarNode) or not isinstance(destinations_node, SequenceNode):
            continue
        destinations = files.get(source_node.value)
        if not isinstance(destinations, list):
            continue

        for entry_node, entry in zip(destinations_node.value, destinations):
            permissions_node = _mapping_value(entry_node, "permissions")
            if (
                isinstance(permissions_node, ScalarNode)
                and isinstance(entry, dict)
                and type(entry.get("permissions")) is int
            ):
                entry["permissions"] = permissions_node.value


def validate_config(config: ImageCustomizerConfig, base_config_path: str) -> List[str]:
    """Check that files the config refers to exist.

    Returns the list of problems found; an empty list means the config is
    usable.
    """
    base = Path(base_config_path)
    system_config = config.system_config
    problems = []

    for source_file in system_config.additional_files:
        if not (base / source_file).is_file():
            problems.append(f"Additional file not found: {source_file}")

    scripts = system_config.post_install_scripts + system_config.finalize_image_scripts
    for script in scripts:
        if not (base / script.path).is_file():
            problems.append(f"Script not found: {script.path}")

    package_lists = (
        system_config.package_lists_install
        + system_config.package_lists_remove
        + system_config.package_lists_update
    )
    for package_list in package_lists:
        if not (base / package_list).is_file():
            problems.append(f"Package list not found: {package_list}")

    return problems
