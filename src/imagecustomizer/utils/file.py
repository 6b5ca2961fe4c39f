"""File copy and write helpers.

Both helpers overwrite an existing destination and create missing parent
directories. Failures surface as OSError.
"""

import logging
import shutil
from pathlib import Path
from typing import Union


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def copy(src: PathLike, dst: PathLike) -> None:
    """Copy a file's contents and mode to dst."""
    dst_path = Path(dst)
    dst_path.parent.mkdir(parents=True, exist_ok=True)

    # Replace links and other non-regular entries rather than writing through them
    if dst_path.is_symlink() or (dst_path.exists() and not dst_path.is_file()):
        remove(dst_path)

    shutil.copyfile(src, dst_path)
    shutil.copymode(src, dst_path)
    logger.debug(f"Copied {src} to {dst_path}")


def write(content: str, path: PathLike) -> None:
    """Write content to path, replacing any existing file."""
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    if file_path.is_symlink():
        file_path.unlink()

    file_path.write_text(content)
    logger.debug(f"Wrote {file_path}")


def remove(path: PathLike) -> None:
    """Remove a file, link or directory tree; missing paths are ignored."""
    target = Path(path)
    if target.is_dir() and not target.is_symlink():
        shutil.rmtree(target)
    elif target.is_symlink() or target.exists():
        target.unlink()
