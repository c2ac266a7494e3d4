"""
Base data models for tracked folders and their lock state
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
import uuid


LOCK_SUFFIX = ".lockit"


class LockState(Enum):
    # Derived from disk on every probe, never stored as ground truth
    UNLOCKED = "unlocked"
    LOCKED = "locked"


@dataclass(frozen=True)
class FolderRecord:
    """
    A folder tracked by the registry.

    ``locator`` is an opaque token understood by the locator factory; it is
    what lets the app find the folder again after a restart. ``locked`` is a
    cached flag for display only.
    """

    name: str
    original_path: str
    locator: str
    locked: bool = False
    folder_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def path(self) -> Path:
        return Path(self.original_path)

    @property
    def parent(self) -> Path:
        return self.path.parent

    @property
    def artifact_path(self) -> Path:
        return artifact_path_for(self.path)

    def with_locked(self, locked: bool) -> "FolderRecord":
        return replace(self, locked=locked)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "folder_id": self.folder_id,
            "name": self.name,
            "original_path": self.original_path,
            "locator": self.locator,
            "locked": self.locked,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FolderRecord":
        return cls(
            folder_id=data["folder_id"],
            name=data["name"],
            original_path=data["original_path"],
            locator=data.get("locator", data["original_path"]),
            locked=bool(data.get("locked", False)),
        )

    def __repr__(self):
        return f"FolderRecord(folder_id={self.folder_id!r}, name={self.name!r}, locked={self.locked!r})"


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of checking a folder against the filesystem."""

    state: LockState
    folder_exists: bool = False
    artifact_exists: bool = False
    locator_stale: bool = False
    path: Optional[Path] = None

    @property
    def locked(self) -> bool:
        return self.state is LockState.LOCKED

    @property
    def ambiguous(self) -> bool:
        # both the folder and its lock file are present
        return self.folder_exists and self.artifact_exists

    @property
    def missing(self) -> bool:
        return not self.locator_stale and not self.folder_exists and not self.artifact_exists


def artifact_path_for(folder_path: Path) -> Path:
    # <parent>/<name>.lockit
    folder_path = Path(folder_path)
    return folder_path.parent / (folder_path.name + LOCK_SUFFIX)


def folder_path_for(artifact_path: Path) -> Optional[Path]:
    # inverse of artifact_path_for; None when the name is not a lock artifact
    artifact_path = Path(artifact_path)
    name = artifact_path.name
    if not name.endswith(LOCK_SUFFIX) or len(name) == len(LOCK_SUFFIX):
        return None
    return artifact_path.parent / name[: -len(LOCK_SUFFIX)]
