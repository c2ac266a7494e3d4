"""
Best-effort removal of a folder tree after it has been locked.

Plain deletion is the default. With ``overwrite_passes`` > 0 every regular file
is overwritten in place (random, zeros, random, ...) and fsync'd before the
tree is removed. Overwriting gives little on SSDs, copy-on-write or journaling
filesystems; it is offered for spinning disks only.
"""

import logging
import os
import shutil
from pathlib import Path

from .exceptions import EraseError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class SecureEraser:
    def __init__(self, overwrite_passes: int = 0):
        if overwrite_passes < 0:
            raise ValueError("overwrite_passes must be >= 0")
        self.overwrite_passes = overwrite_passes

    def erase(self, path: Path) -> None:
        """Remove ``path`` recursively. A missing path is a no-op."""
        path = Path(path)
        if not os.path.lexists(path):
            return
        try:
            if self.overwrite_passes:
                self._overwrite_tree(path)
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as e:
            raise EraseError(f"Could not remove original folder {path}: {e}") from e
        logger.info("Removed %s", path)

    def _overwrite_tree(self, root: Path) -> None:
        if root.is_file() and not root.is_symlink():
            self._overwrite_file(root)
            return
        for dirpath, _dirnames, filenames in os.walk(root):
            for fname in filenames:
                fpath = Path(dirpath) / fname
                if fpath.is_file() and not fpath.is_symlink():
                    self._overwrite_file(fpath)

    def _overwrite_file(self, file_path: Path) -> None:
        size = file_path.stat().st_size
        with open(file_path, "r+b") as f:
            for pass_num in range(self.overwrite_passes):
                f.seek(0)
                remaining = size
                while remaining > 0:
                    n = min(remaining, CHUNK_SIZE)
                    f.write(os.urandom(n) if pass_num % 2 == 0 else b"\x00" * n)
                    remaining -= n
                f.flush()
                os.fsync(f.fileno())
