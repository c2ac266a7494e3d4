"""
Folder registry: the ordered list of tracked folders, stored as JSON.

Structure Map for reference:
==============================
 - <lockit_home>/
      - folders.json   [ {folder_id, name, original_path, locator, locked}, ... ]
      - auth.json      passphrase enrollment (see security/auth.py)
==============================
The registry only persists records. Whether a folder is locked is always
re-derived from disk by the orchestrator; the ``locked`` field is a cache for
display and for folders whose locator no longer resolves.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from .exceptions import FolderNotRegisteredError, RegistryError, RegistryFullError
from .hashing import normalize_path
from .models import FolderRecord
from .storage import atomic_write_bytes

logger = logging.getLogger(__name__)


class FolderRegistry:
    def __init__(self, path: Path | str, max_folders: int = 3):
        self.path = Path(path)
        self.max_folders = max_folders

    def load(self) -> List[FolderRecord]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return [FolderRecord.from_dict(item) for item in raw]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise RegistryError(f"Folder registry {self.path} is unreadable: {e}") from e

    def save(self, records: List[FolderRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False)
        try:
            atomic_write_bytes(self.path, data.encode("utf-8"))
        except OSError as e:
            raise RegistryError(f"Could not save folder registry {self.path}: {e}") from e

    def get(self, folder_id: str) -> FolderRecord:
        for record in self.load():
            if record.folder_id == folder_id:
                return record
        raise FolderNotRegisteredError(f"No tracked folder with id '{folder_id}'.")

    def find_by_name(self, name: str) -> Optional[FolderRecord]:
        for record in self.load():
            if record.name == name:
                return record
        return None

    def find_by_path(self, path) -> Optional[FolderRecord]:
        target = normalize_path(path)
        for record in self.load():
            if normalize_path(record.original_path) == target:
                return record
        return None

    def add(self, record: FolderRecord) -> FolderRecord:
        records = self.load()
        if len(records) >= self.max_folders:
            raise RegistryFullError(f"Only {self.max_folders} folders can be tracked.")
        target = normalize_path(record.original_path)
        for existing in records:
            if normalize_path(existing.original_path) == target:
                raise RegistryError(f"'{existing.name}' is already tracked.")
        records.append(record)
        self.save(records)
        logger.info("Registered folder %s at %s", record.name, record.original_path)
        return record

    def update(self, record: FolderRecord) -> FolderRecord:
        records = self.load()
        for i, existing in enumerate(records):
            if existing.folder_id == record.folder_id:
                records[i] = record
                self.save(records)
                return record
        raise FolderNotRegisteredError(f"No tracked folder with id '{record.folder_id}'.")

    def remove(self, folder_id: str) -> FolderRecord:
        records = self.load()
        for i, existing in enumerate(records):
            if existing.folder_id == folder_id:
                del records[i]
                self.save(records)
                logger.info("Stopped tracking %s", existing.name)
                return existing
        raise FolderNotRegisteredError(f"No tracked folder with id '{folder_id}'.")
