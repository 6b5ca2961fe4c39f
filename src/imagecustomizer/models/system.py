"""System customization models."""

from pathlib import PurePosixPath
from typing import Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FileConfig(BaseModel):
    """Destination of an additional file inside the image."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = Field(..., description="Absolute destination path inside the image")
    permissions: Optional[int] = Field(None, description="File mode, e.g. \"644\"")

    @field_validator("path")
    @classmethod
    def validate_path(cls, v):
        """Destination must be absolute within the image."""
        if not v.startswith("/"):
            raise ValueError(f"Destination path must be absolute: {v}")
        return v

    @field_validator("permissions", mode="before")
    @classmethod
    def parse_permissions(cls, v: Union[int, str, None]):
        """Accept octal strings ("644", "0o644") as well as ints."""
        if v is None:
            return None
        if isinstance(v, str):
            text = v.strip().lower()
            if text.startswith("0o"):
                text = text[2:]
            try:
                v = int(text, 8)
            except ValueError:
                raise ValueError(f"Invalid permissions: {v!r}")
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError(f"Invalid permissions: {v!r}")
        if not 0 <= v <= 0o7777:
            raise ValueError(f"Permissions out of range: {oct(v)}")
        return v


class Script(BaseModel):
    """Script to run inside the image."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = Field(..., description="Script path relative to the config directory")
    args: str = Field(default="", description="Argument string passed to the script")

    @field_validator("path")
    @classmethod
    def validate_path(cls, v):
        """Script must live under the config directory."""
        path = PurePosixPath(v)
        if not v or path.is_absolute() or ".." in path.parts:
            raise ValueError(f"Script path must be relative to the config directory: {v}")
        return v


class PackageList(BaseModel):
    """Contents of a package list file."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    packages: Tuple[str, ...] = ()


class SystemConfig(BaseModel):
    """Declarative customization request for an image.

    Sequences are tuples so a validated config cannot change during a run.
    The additional_files mapping is still a plain dict; callers must not
    modify it.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    hostname: Optional[str] = None
    additional_files: Dict[str, Tuple[FileConfig, ...]] = Field(default_factory=dict)
    post_install_scripts: Tuple[Script, ...] = ()
    finalize_image_scripts: Tuple[Script, ...] = ()

    packages_install: Tuple[str, ...] = ()
    packages_remove: Tuple[str, ...] = ()
    packages_update: Tuple[str, ...] = ()
    package_lists_install: Tuple[str, ...] = ()
    package_lists_remove: Tuple[str, ...] = ()
    package_lists_update: Tuple[str, ...] = ()
    update_base_image_packages: bool = False

    @field_validator("hostname")
    @classmethod
    def validate_hostname(cls, v):
        """Hostname must be a single line."""
        if v is not None and ("\n" in v or "\r" in v):
            raise ValueError("Hostname must not contain line breaks")
        return v
