"""
FolderManager for LockIt: tracked folders over the registry and orchestrator.
"""

import logging
from pathlib import Path
from typing import Dict, List

from .exceptions import FolderNotRegisteredError, LockItError, RegistryError, RegistryFullError
from .hashing import normalize_path
from .models import FolderRecord, ProbeResult
from .orchestrator import LockOrchestrator
from .registry import FolderRegistry

logger = logging.getLogger(__name__)


class FolderManager:
    """High-level folder operations; persists every state change to the registry."""

    def __init__(self, registry: FolderRegistry, orchestrator: LockOrchestrator):
        self.registry = registry
        self.orchestrator = orchestrator

    def list_folders(self) -> List[FolderRecord]:
        return self.registry.load()

    def find(self, name_or_id: str) -> FolderRecord:
        """Look a folder up by id, then by name."""
        records = self.registry.load()
        for record in records:
            if record.folder_id == name_or_id:
                return record
        matches = [r for r in records if r.name == name_or_id]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise FolderNotRegisteredError(f"Several tracked folders are named '{name_or_id}'; use the id.")
        raise FolderNotRegisteredError(f"'{name_or_id}' is not a tracked folder.")

    def register_folder(self, path) -> FolderRecord:
        """Start tracking an existing directory."""
        folder = Path(normalize_path(path))
        if not folder.is_dir():
            raise LockItError(f"{folder} is not a directory.")
        locator = self.orchestrator.locator_factory.for_path(folder)
        record = FolderRecord(name=folder.name, original_path=str(folder), locator=locator.token)
        return self.registry.add(record)

    def create_folder(self, parent, name: str) -> FolderRecord:
        """Create ``parent/name`` and start tracking it."""
        name = name.strip()
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise LockItError("Folder name must be a single, non-empty path component.")
        if len(self.registry.load()) >= self.registry.max_folders:
            raise RegistryFullError(f"Only {self.registry.max_folders} folders can be tracked.")
        folder = Path(normalize_path(parent)) / name
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LockItError(f"Failed to create folder: {e}") from e
        logger.info("Created folder %s", folder)
        return self.register_folder(folder)

    def remove_folder(self, folder_id: str) -> FolderRecord:
        """Stop tracking a folder; nothing on disk is touched."""
        return self.registry.remove(folder_id)

    def status(self, folder_id: str) -> ProbeResult:
        return self.orchestrator.probe_state(self.registry.get(folder_id))

    def refresh_lock_states(self) -> List[FolderRecord]:
        """Re-probe every folder from disk and persist the results."""
        refreshed = []
        for record in self.registry.load():
            probe = self.orchestrator.probe_state(record)
            if probe.locked != record.locked:
                logger.info("%s: locked %s -> %s", record.name, record.locked, probe.locked)
            refreshed.append(record.with_locked(probe.locked))
        self.registry.save(refreshed)
        return refreshed

    async def lock(self, folder_id: str) -> FolderRecord:
        record = self.registry.get(folder_id)
        try:
            updated = await self.orchestrator.lock(record)
        except Exception:
            self._reprobe(record)
            raise
        return self.registry.update(updated)

    async def unlock(self, folder_id: str) -> FolderRecord:
        record = self.registry.get(folder_id)
        try:
            updated = await self.orchestrator.unlock(record)
        except Exception:
            self._reprobe(record)
            raise
        return self.registry.update(updated)

    async def lock_all(self) -> Dict[str, Exception]:
        """Lock every unlocked folder, one at a time.

        Individual failures are logged and collected (keyed by folder id)
        without stopping the sweep. States are re-probed and saved at the end.
        """
        failures: Dict[str, Exception] = {}
        for record in self.registry.load():
            if self.orchestrator.probe_state(record).locked:
                continue
            try:
                await self.orchestrator.lock(record)
            except LockItError as e:
                logger.warning("Could not lock %s: %s", record.name, e)
                failures[record.folder_id] = e
            except Exception as e:
                logger.exception("Unexpected error locking %s", record.name)
                failures[record.folder_id] = e
        self.refresh_lock_states()
        return failures

    async def recover_and_register(self, artifact_path) -> FolderRecord:
        """Restore a folder from a ``.lockit`` file and track it."""
        name = await self.orchestrator.recover(artifact_path)
        folder = Path(normalize_path(artifact_path)).parent / name
        existing = self.registry.find_by_path(folder)
        if existing is not None:
            return self.registry.update(existing.with_locked(False))
        try:
            return self.register_folder(folder)
        except RegistryError as e:
            raise RegistryError(f"Recovered '{name}' but could not track it: {e}") from e

    def _reprobe(self, record: FolderRecord) -> None:
        try:
            probe = self.orchestrator.probe_state(record)
            self.registry.update(record.with_locked(probe.locked))
        except LockItError as e:
            logger.warning("Could not refresh state of %s: %s", record.name, e)
