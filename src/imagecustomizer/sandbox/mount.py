"""Scoped mounts for exposing host paths inside an image root."""

import enum
import logging
import os
import subprocess
from pathlib import Path
from typing import List, Optional

from imagecustomizer.errors import MountError
from imagecustomizer.utils.shell import run_command


logger = logging.getLogger(__name__)


class MountFlags(enum.Flag):
    """Mount options understood by Mount."""
    NONE = 0
    BIND = enum.auto()
    READ_ONLY = enum.auto()
    NO_EXEC = enum.auto()
    NO_SUID = enum.auto()
    NO_DEV = enum.auto()
    REMOUNT = enum.auto()


_FLAG_OPTIONS = [
    (MountFlags.REMOUNT, "remount"),
    (MountFlags.BIND, "bind"),
    (MountFlags.READ_ONLY, "ro"),
    (MountFlags.NO_EXEC, "noexec"),
    (MountFlags.NO_SUID, "nosuid"),
    (MountFlags.NO_DEV, "nodev"),
]


def _mount_options(flags: MountFlags, data: str = "") -> List[str]:
    """Translate flags and option data to mount(8) -o entries."""
    options = [name for flag, name in _FLAG_OPTIONS if flag in flags]
    if data:
        options.extend(part for part in data.split(",") if part)
    return options


class Mount:
    """One active mount of source at target.

    Create with Mount.acquire() and release exactly once with release(), or
    use as a context manager. Releasing an already released mount does
    nothing.
    """

    def __init__(
        self,
        source: str,
        target: str,
        fs_type: str = "",
        flags: MountFlags = MountFlags.NONE,
        data: str = "",
        make_and_delete_dir: bool = False,
    ):
        """Describe a mount; nothing is mounted until acquire()."""
        self.source = str(source)
        self.target = str(target)
        self.fs_type = fs_type
        self.flags = flags
        self.data = data
        self.make_and_delete_dir = make_and_delete_dir
        self._mounted = False
        self._created_target = False

    @property
    def is_mounted(self) -> bool:
        """Whether the mount is currently active."""
        return self._mounted

    @classmethod
    def acquire(
        cls,
        source: str,
        target: str,
        fs_type: str = "",
        flags: MountFlags = MountFlags.NONE,
        data: str = "",
        make_and_delete_dir: bool = False,
    ) -> "Mount":
        """Mount source at target and return the active mount."""
        mount = cls(source, target, fs_type, flags, data, make_and_delete_dir)
        mount._mount()
        return mount

    def _mount(self) -> None:
        """Perform the mount, undoing partial work on failure."""
        # Bind mounts of regular paths need an existing source; pseudo
        # filesystems (proc, tmpfs) take a name instead.
        if (MountFlags.BIND in self.flags or not self.fs_type) and not os.path.exists(self.source):
            raise MountError(f"Mount source does not exist: {self.source}")

        target = Path(self.target)
        if not target.exists():
            if not self.make_and_delete_dir:
                raise MountError(f"Mount target does not exist: {self.target}")
            try:
                target.mkdir(parents=True)
            except OSError as e:
                raise MountError(f"Failed to create mount target {self.target}: {e}") from e
            self._created_target = True

        try:
            self._mount_command(self.flags)
            self._mounted = True

            # The kernel ignores read-only on the initial bind, so apply it
            # with a remount
            if MountFlags.BIND in self.flags and MountFlags.READ_ONLY in self.flags:
                self._mount_command(self.flags | MountFlags.REMOUNT, with_source=False)
        except MountError:
            self._rollback()
            raise

        logger.debug(f"Mounted {self.source} at {self.target}")

    def _mount_command(self, flags: MountFlags, with_source: bool = True) -> None:
        """Run mount(8) with the given flags."""
        cmd = ["mount"]
        if self.fs_type:
            cmd.extend(["-t", self.fs_type])

        # The initial bind cannot be read-only
        initial_flags = flags
        if MountFlags.BIND in flags and MountFlags.REMOUNT not in flags:
            initial_flags = flags & ~MountFlags.READ_ONLY

        options = _mount_options(initial_flags, self.data if with_source else "")
        if options:
            cmd.extend(["-o", ",".join(options)])
        if with_source:
            cmd.append(self.source)
        cmd.append(self.target)

        try:
            run_command(cmd)
        except subprocess.CalledProcessError as e:
            raise MountError(
                f"Failed to mount {self.source} at {self.target}: {(e.stderr or '').strip() or e}"
            ) from e
        except OSError as e:
            raise MountError(f"Failed to run mount: {e}") from e

    def _rollback(self) -> None:
        """Undo a partially completed mount."""
        if self._mounted:
            try:
                self._unmount()
            except MountError as e:
                logger.error(f"Failed to roll back mount at {self.target}: {e}")
                return
        self._remove_created_target()

    def _unmount(self) -> None:
        """Run umount(8) on the target."""
        try:
            run_command(["umount", self.target])
        except subprocess.CalledProcessError as e:
            raise MountError(
                f"Failed to unmount {self.target}: {(e.stderr or '').strip() or e}"
            ) from e
        except OSError as e:
            raise MountError(f"Failed to run umount: {e}") from e
        self._mounted = False

    def _remove_created_target(self) -> None:
        """Remove the target directory if this mount created it."""
        if not self._created_target:
            return
        try:
            os.rmdir(self.target)
        except OSError as e:
            raise MountError(f"Failed to remove mount target {self.target}: {e}") from e
        self._created_target = False

    def release(self) -> None:
        """Unmount and clean up. Safe to call more than once."""
        if self._mounted:
            self._unmount()
            logger.debug(f"Unmounted {self.target}")
        self._remove_created_target()

    def __enter__(self) -> "Mount":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.release()
            return False

        # Keep the original error; the release failure is only logged
        try:
            self.release()
        except MountError as e:
            logger.error(f"Failed to release mount at {self.target}: {e}")
        return False

    def __repr__(self) -> str:
        return f"Mount(source={self.source!r}, target={self.target!r}, mounted={self._mounted})"


def release_all(mounts: List[Optional[Mount]]) -> None:
    """Release mounts in reverse order of acquisition.

    Every mount is attempted; the first failure is raised afterwards.
    """
    first_error: Optional[MountError] = None
    for mount in reversed(mounts):
        if mount is None:
            continue
        try:
            mount.release()
        except MountError as e:
            logger.error(f"Failed to release {mount.target}: {e}")
            if first_error is None:
                first_error = e
    if first_error is not None:
        raise first_error
