"""Configuration models."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from imagecustomizer.models.system import SystemConfig


class ImageCustomizerConfig(BaseModel):
    """Top-level customization config document."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    system_config: SystemConfig = Field(default_factory=SystemConfig)


class CustomizeOptions(BaseModel):
    """Options for a single customization run."""
    image_root: str
    config_file: str
    build_dir: str = Field(default="./build")
    rpm_sources: List[str] = Field(default_factory=list)
    use_base_image_rpm_repos: bool = Field(default=True)
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = None
    host_resolv_conf: Optional[str] = None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()
