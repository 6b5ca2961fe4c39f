"""
Image Customizer - Sandboxed OS-image customization.

Applies an ordered set of customizations (packages, hostname, additional
files, scripts) to an offline image root, running in-image commands inside a
chroot jail with scoped bind mounts.
"""

__version__ = "1.0.0"
__author__ = "Image Customizer Development Team"

# Re-export key components for easier access
from imagecustomizer.models.config import ImageCustomizerConfig
from imagecustomizer.models.system import SystemConfig, FileConfig, Script
from imagecustomizer.customize.pipeline import CustomizationPipeline, do_customizations

__all__ = [
    "ImageCustomizerConfig",
    "SystemConfig",
    "FileConfig",
    "Script",
    "CustomizationPipeline",
    "do_customizations",
]
