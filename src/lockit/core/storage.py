"""
Filesystem helpers shared by the orchestrator, registry and authorizer.

For reference:
> Every file that must never be seen half-written (lock artifacts, the registry,
  the passphrase enrollment) goes through atomic_write_bytes: the data is written
  to a temp file in the same directory, fsync'd, renamed over the target with
  os.replace, and the directory entry is fsync'd as well.
> Temporary archives live next to the folder being locked so the rename and the
  archive never cross filesystems. They are always removed before an operation ends.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def fsync_directory(directory: PathLike) -> None:
    # Persist a rename; not supported on Windows, where os.replace is already durable enough.
    if os.name == "nt":
        return
    fd = os.open(str(directory), os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write_bytes(path: PathLike, data: bytes) -> Path:
    """Write ``data`` to ``path`` all-or-nothing and return the path.

    The target is either untouched or fully replaced; no reader ever sees a
    partial file. Returns only after data and rename are flushed to disk.
    """
    target = Path(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, target)
    except BaseException:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        raise
    fsync_directory(target.parent)
    return target


def temp_archive_path(parent: PathLike, name: str) -> Path:
    """Reserve a unique temporary archive path in ``parent``."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{name}.", suffix=".zip", dir=str(parent))
    os.close(fd)
    return Path(tmp_name)


def remove_quietly(path: PathLike) -> bool:
    """Remove a file, logging instead of raising. Returns True if it is gone."""
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning("Could not remove temporary file %s: %s", path, e)
        return False
    return True


async def remove_with_retry(path: PathLike, attempts: int = 3, backoff: float = 0.05) -> bool:
    """Remove ``path``, retrying to ride out transient handle contention.

    Waits ``backoff`` before each attempt and doubles it after each failure.
    Returns False (and logs) if the file is still there after ``attempts``.
    """
    target = Path(path)
    delay = backoff
    for attempt in range(1, attempts + 1):
        if not target.exists():
            return True
        await asyncio.sleep(delay)
        try:
            target.unlink()
            logger.debug("Removed %s on attempt %d", target, attempt)
            return True
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning("Attempt %d/%d to remove %s failed: %s", attempt, attempts, target, e)
            delay *= 2
    logger.error("Could not remove temporary file %s after %d attempts", target, attempts)
    return False
