"""
Archive codec: packs a folder tree into a single zip file and back.

Entries are rooted at the folder's own name, so ``Notes/a.txt`` unpacks to
``<destination>/Notes/a.txt``. Regular files get one entry each; directories
are implied by file paths, except empty subdirectories which get an explicit
``dir/`` entry. A folder with no entries at all is stored as a single
placeholder entry, ``<name>/.lockit_placeholder``, which unpack skips.
"""

import logging
import os
import shutil
import zipfile
from pathlib import Path
from typing import Optional

from .exceptions import ArchiveError, ArchiveReason

logger = logging.getLogger(__name__)

PLACEHOLDER_NAME = ".lockit_placeholder"
PLACEHOLDER_TEXT = b"This file ensures empty folder structure is preserved"


def _raise(err: OSError):
    raise err


class ArchiveCodec:
    """Reversible folder <-> zip conversion."""

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED):
        self.compression = compression

    @staticmethod
    def placeholder_entry(root_name: str) -> str:
        return f"{root_name}/{PLACEHOLDER_NAME}"

    @staticmethod
    def is_placeholder(entry_name: str) -> bool:
        parts = entry_name.rstrip("/").split("/")
        return len(parts) == 2 and parts[1] == PLACEHOLDER_NAME

    def pack(self, folder: Path, destination: Path) -> int:
        """Write ``folder`` into a new zip at ``destination``.

        Returns the number of entries written. Raises ``ArchiveError(PACK_FAILED)``
        for anything that could not be stored faithfully.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise ArchiveError(ArchiveReason.PACK_FAILED, f"Not a directory: {folder}")

        root_name = folder.name
        base = folder.parent
        entries = 0
        try:
            # strict_timestamps=False clamps pre-1980 mtimes instead of failing
            with zipfile.ZipFile(destination, "w", compression=self.compression, strict_timestamps=False) as zf:
                if not any(folder.iterdir()):
                    zf.writestr(self.placeholder_entry(root_name), PLACEHOLDER_TEXT)
                    logger.debug("Empty folder %s, wrote placeholder entry", folder)
                    return 1

                # onerror: an unreadable subdirectory must fail the pack, not be skipped
                for dirpath, dirnames, filenames in os.walk(folder, onerror=_raise):
                    current = Path(dirpath)
                    dirnames.sort()
                    filenames.sort()

                    for d in dirnames:
                        if (current / d).is_symlink():
                            raise ArchiveError(
                                ArchiveReason.PACK_FAILED,
                                f"Cannot archive directory symlink: {current / d}",
                            )

                    if current != folder and not dirnames and not filenames:
                        zf.writestr(current.relative_to(base).as_posix() + "/", b"")
                        entries += 1
                        continue

                    for fname in filenames:
                        fpath = current / fname
                        if current == folder and fname == PLACEHOLDER_NAME:
                            raise ArchiveError(
                                ArchiveReason.PACK_FAILED,
                                f"'{PLACEHOLDER_NAME}' is a reserved name; rename {fpath} and lock again.",
                            )
                        if not fpath.is_file():
                            raise ArchiveError(
                                ArchiveReason.PACK_FAILED,
                                f"Unsupported file type: {fpath}",
                            )
                        zf.write(fpath, arcname=fpath.relative_to(base).as_posix())
                        entries += 1
        except ArchiveError:
            raise
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            raise ArchiveError(ArchiveReason.PACK_FAILED, f"Could not archive {folder}: {e}") from e

        logger.debug("Packed %d entries from %s", entries, folder)
        return entries

    def unpack(self, archive: Path, destination_root: Path) -> Optional[Path]:
        """Extract ``archive`` under ``destination_root``.

        Returns the path of the archive's root folder (None for an empty archive).
        Raises ``ArchiveError(UNPACK_FAILED)`` on a corrupt archive or an entry
        that would land outside ``destination_root``.
        """
        dest_root = Path(destination_root).resolve()
        root: Optional[Path] = None
        try:
            with zipfile.ZipFile(archive, "r") as zf:
                for info in zf.infolist():
                    name = info.filename
                    if root is None:
                        root = dest_root / name.split("/", 1)[0]
                    if self.is_placeholder(name):
                        logger.debug("Skipping placeholder entry %s", name)
                        continue

                    target = self._safe_target(dest_root, name)
                    if info.is_dir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue

                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(info) as src, open(target, "wb") as dst:
                        shutil.copyfileobj(src, dst)
                    mode = (info.external_attr >> 16) & 0o777
                    if mode:
                        os.chmod(target, mode)
        except ArchiveError:
            raise
        except (OSError, ValueError, zipfile.BadZipFile) as e:
            raise ArchiveError(ArchiveReason.UNPACK_FAILED, f"Could not extract {archive}: {e}") from e
        return root

    @staticmethod
    def _safe_target(dest_root: Path, entry_name: str) -> Path:
        # Ensures the entry does not lead to path traversal outside the destination.
        target = (dest_root / entry_name).resolve()
        if target == dest_root or not target.is_relative_to(dest_root):
            raise ArchiveError(
                ArchiveReason.UNPACK_FAILED,
                f"Archive entry escapes destination: {entry_name}",
            )
        return target
