"""Chroot jail over an image root directory."""

import logging
import os
import stat
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TypeVar

from imagecustomizer.errors import ChrootBusyError, FileCopyError
from imagecustomizer.utils import file


logger = logging.getLogger(__name__)

T = TypeVar("T")

# The filesystem root is process-wide, so only one redirection may be active
_root_redirect_lock = threading.Lock()

# Same limit as the kernel (ELOOP)
MAX_SYMLINKS = 40


@dataclass(frozen=True)
class FileToCopy:
    """A host file to place inside the image."""
    src: str
    dest: str
    permissions: Optional[int] = None


class Chroot:
    """An image root that steps mutate and run commands in.

    The caller owns the directory; Chroot never deletes it.
    """

    def __init__(self, root_dir: str):
        """Initialize chroot over an existing directory."""
        root = Path(root_dir)
        if not root.is_absolute():
            root = root.resolve()
        if not root.is_dir():
            raise ValueError(f"Chroot root is not a directory: {root}")
        self._root_dir = str(root)

    @property
    def root_dir(self) -> str:
        """Absolute path of the image root."""
        return self._root_dir

    def resolve(self, path: str, follow_last: bool = False) -> str:
        """Map a path inside the image to its host path under the root.

        Symlinks met along the way are read as the image sees them: absolute
        targets restart at the image root and ".." stops at the root, so the
        result never leaves the root. The last component is only followed
        when follow_last is set (mount targets); file writes replace a link
        there instead.
        """
        literal = os.path.normpath(os.path.join(self._root_dir, path.lstrip("/")))
        if os.path.commonpath([self._root_dir, literal]) != self._root_dir:
            raise ValueError(f"Path escapes the image root: {path}")

        pending = os.path.relpath(literal, self._root_dir).split("/")
        current = self._root_dir
        links_followed = 0
        while pending:
            name = pending.pop(0)
            if name in ("", "."):
                continue
            if name == "..":
                if current != self._root_dir:
                    current = os.path.dirname(current)
                continue

            candidate = os.path.join(current, name)
            if os.path.islink(candidate) and (pending or follow_last):
                links_followed += 1
                if links_followed > MAX_SYMLINKS:
                    raise ValueError(f"Too many levels of symbolic links: {path}")
                target = os.readlink(candidate)
                if target.startswith("/"):
                    current = self._root_dir
                pending = target.split("/") + pending
                continue
            current = candidate

        return current

    def add_files(self, *files: FileToCopy) -> None:
        """Copy host files into the image.

        The destination gets the configured permissions, or the source's mode
        when none is set. Stops at the first failure.
        """
        for entry in files:
            try:
                dest = self.resolve(entry.dest)
            except ValueError as e:
                raise FileCopyError(str(e)) from e

            logger.debug(f"Copying {entry.src} to {dest}")
            try:
                source_mode = stat.S_IMODE(os.stat(entry.src).st_mode)
                file.copy(entry.src, dest)
                mode = entry.permissions if entry.permissions is not None else source_mode
                os.chmod(dest, mode)
            except OSError as e:
                raise FileCopyError(f"Failed to copy {entry.src} to {entry.dest}: {e}") from e

    def unsafe_run(self, fn: Callable[[], T]) -> T:
        """Run fn with the process root redirected into the image.

        The original root and working directory are restored however fn
        exits. Raises ChrootBusyError if another redirection is active.
        """
        if not _root_redirect_lock.acquire(blocking=False):
            raise ChrootBusyError(
                f"Cannot enter {self._root_dir}: another chroot is active in this process"
            )
        try:
            original_cwd = os.getcwd()
            original_root = os.open("/", os.O_RDONLY | os.O_DIRECTORY)
            try:
                logger.debug(f"Entering chroot {self._root_dir}")
                os.chroot(self._root_dir)
                try:
                    os.chdir("/")
                    return fn()
                finally:
                    os.fchdir(original_root)
                    os.chroot(".")
                    os.chdir(original_cwd)
                    logger.debug(f"Left chroot {self._root_dir}")
            finally:
                os.close(original_root)
        finally:
            _root_redirect_lock.release()

    def __repr__(self) -> str:
        return f"Chroot({self._root_dir!r})"
