"""Pydantic models for configuration and validation."""

from imagecustomizer.models.config import ImageCustomizerConfig, CustomizeOptions
from imagecustomizer.models.system import SystemConfig, FileConfig, Script, PackageList

__all__ = [
    "ImageCustomizerConfig",
    "CustomizeOptions",
    "SystemConfig",
    "FileConfig",
    "Script",
    "PackageList",
]
