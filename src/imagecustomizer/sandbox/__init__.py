"""Sandbox primitives: chroot jail and scoped mounts."""

from imagecustomizer.sandbox.chroot import Chroot, FileToCopy
from imagecustomizer.sandbox.mount import Mount, MountFlags

__all__ = [
    "Chroot",
    "FileToCopy",
    "Mount",
    "MountFlags",
]
