"""
Lock orchestrator: the state machine behind lock, unlock and recover.

A folder is LOCKED when ``<parent>/<name>.lockit`` exists and the folder does
not; every other combination reads as UNLOCKED. That state is recomputed from
disk on every call and never taken from the registry's cached flag, except
when the folder's locator can no longer be resolved.

lock:    resolve -> probe -> authorize -> key (create on first lock)
         -> [pack -> encrypt -> atomic write -> erase] -> locked record
unlock:  probe -> authorize -> primary key -> [decrypt -> unpack] -> drop artifact
recover: same as unlock, keyed by the recovery account derived from the path

The bracketed parts run in a worker thread and, once started, are finished
even if the awaiting task is cancelled. Operations on the same folder path are
serialized by a per-folder guard.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, List, Optional

from lockit.security import crypto
from lockit.security.auth import AuthContext, Authorizer
from lockit.security.vault import KeyVault
from .archive import ArchiveCodec
from .eraser import SecureEraser
from .exceptions import (
    ConflictReason,
    EraseError,
    FolderMissingError,
    KeyMissingError,
    KeyNotFoundError,
    PathResolutionError,
    StateConflictError,
)
from .hashing import normalize_path
from .locator import Locator, LocatorFactory, PathLocator
from .models import (
    FolderRecord,
    LockState,
    ProbeResult,
    artifact_path_for,
    folder_path_for,
)
from .storage import atomic_write_bytes, remove_quietly, remove_with_retry, temp_archive_path

logger = logging.getLogger(__name__)


class FolderGuard:
    """One asyncio.Lock per folder path; waiters queue in arrival order."""

    def __init__(self):
        self._locks: Dict[str, List] = {}

    @asynccontextmanager
    async def hold(self, key: str):
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                self._locks.pop(key, None)


class LockOrchestrator:
    def __init__(
        self,
        authorizer: Authorizer,
        vault: KeyVault,
        codec: Optional[ArchiveCodec] = None,
        eraser: Optional[SecureEraser] = None,
        locator_factory: LocatorFactory = PathLocator,
        temp_removal_attempts: int = 3,
        temp_removal_backoff: float = 0.05,
    ):
        self.authorizer = authorizer
        self.vault = vault
        self.codec = codec or ArchiveCodec()
        self.eraser = eraser or SecureEraser()
        self.locator_factory = locator_factory
        self.temp_removal_attempts = temp_removal_attempts
        self.temp_removal_backoff = temp_removal_backoff
        self.guard = FolderGuard()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def locator_for(self, record: FolderRecord) -> Locator:
        return self.locator_factory(record.locator)

    def probe_state(self, record: FolderRecord) -> ProbeResult:
        """Recompute a folder's state from disk.

        Falls back to the record's cached flag, with ``locator_stale`` set,
        when the locator cannot be resolved.
        """
        try:
            path = self.locator_for(record).resolve()
        except PathResolutionError as e:
            logger.warning(
                "Locator for %s is stale (%s); using cached state locked=%s",
                record.name, e, record.locked,
            )
            state = LockState.LOCKED if record.locked else LockState.UNLOCKED
            return ProbeResult(state=state, locator_stale=True)
        return self.probe_path(path)

    @staticmethod
    def probe_path(path: Path) -> ProbeResult:
        path = Path(path)
        # any entry at the folder path counts, matching the unlock check
        folder_exists = os.path.lexists(path)
        artifact_exists = artifact_path_for(path).is_file()
        state = LockState.LOCKED if artifact_exists and not folder_exists else LockState.UNLOCKED
        logger.debug(
            "Lock check for %s: folder exists=%s, lock exists=%s -> %s",
            path, folder_exists, artifact_exists, state.value,
        )
        return ProbeResult(
            state=state,
            folder_exists=folder_exists,
            artifact_exists=artifact_exists,
            path=path,
        )

    # ------------------------------------------------------------------
    # Lock
    # ------------------------------------------------------------------

    async def lock(self, record: FolderRecord) -> FolderRecord:
        """Replace the folder with its encrypted ``.lockit`` file.

        Returns a copy of ``record`` with ``locked=True``. Nothing on disk is
        touched unless authorization and key retrieval succeed, and the folder
        is only erased once the artifact is durably written. If erasing fails
        an :class:`EraseError` is raised and the artifact is kept; callers
        should re-probe.
        """
        locator = self.locator_for(record)
        path = locator.resolve()
        logger.info("Locking %s at %s", record.name, path)

        async with self.guard.hold(normalize_path(path)):
            probe = self.probe_path(path)
            if probe.locked:
                raise StateConflictError(ConflictReason.ALREADY_LOCKED)
            if probe.ambiguous:
                raise StateConflictError(ConflictReason.AMBIGUOUS)
            if not probe.folder_exists:
                raise FolderMissingError(f"Folder {path} does not exist and has no lock file.")
            if not path.is_dir():
                raise FolderMissingError(f"{path} is not a folder.")

            context = await self.authorizer.authorize(f"Authenticate to lock {record.name}")
            key = await self._key_for_lock(record, path, context)
            await self._run_to_completion(self._seal_folder, locator, path, key)

        logger.info("Locked %s", record.name)
        return record.with_locked(True)

    async def _key_for_lock(self, record: FolderRecord, path: Path, context: AuthContext) -> bytes:
        account = self.vault.primary_account(record.folder_id)
        try:
            return await asyncio.to_thread(self.vault.get, account, context)
        except KeyNotFoundError:
            pass

        # First lock of this folder: the only place a key is created.
        # Recovery copy first so a stored primary key always has one.
        key = crypto.generate_key()
        await asyncio.to_thread(self.vault.put, self.vault.recovery_account(path), key)
        await asyncio.to_thread(self.vault.put, account, key)
        logger.info("Generated new key for %s with recovery backup", record.name)
        return key

    def _seal_folder(self, locator: Locator, path: Path, key: bytes) -> None:
        artifact = artifact_path_for(path)
        with locator.access(path):
            tmp = temp_archive_path(path.parent, path.name)
            try:
                entries = self.codec.pack(path, tmp)
                envelope = crypto.encrypt(tmp.read_bytes(), key)
                atomic_write_bytes(artifact, envelope)
                logger.info("Wrote %s (%d entries, %d bytes)", artifact, entries, len(envelope))
                # only after the artifact is durable
                self.eraser.erase(path)
            finally:
                remove_quietly(tmp)

    # ------------------------------------------------------------------
    # Unlock / recover
    # ------------------------------------------------------------------

    async def unlock(self, record: FolderRecord) -> FolderRecord:
        """Restore the folder from its ``.lockit`` file using the primary key.

        Returns a copy of ``record`` with ``locked=False``.
        """
        path = Path(normalize_path(record.original_path))
        logger.info("Unlocking %s at %s", record.name, path)
        async with self.guard.hold(str(path)):
            await self._restore(
                path,
                self.vault.primary_account(record.folder_id),
                f"Authenticate to unlock {record.name}",
            )
        logger.info("Unlocked %s", record.name)
        return record.with_locked(False)

    async def recover(self, artifact_path) -> str:
        """Restore a folder from a ``.lockit`` file alone, using its recovery key.

        Consumes the artifact on success and returns the restored folder's name.
        """
        artifact = Path(normalize_path(artifact_path))
        path = folder_path_for(artifact)
        if path is None:
            raise KeyMissingError(f"{artifact.name} is not a .lockit file.")
        logger.info("Recovering %s from %s", path.name, artifact)
        async with self.guard.hold(str(path)):
            await self._restore(
                path,
                self.vault.recovery_account(path),
                f"Authenticate to recover {path.name}",
            )
        logger.info("Recovered %s", path.name)
        return path.name

    async def _restore(self, path: Path, account: str, reason: str) -> None:
        artifact = artifact_path_for(path)
        if os.path.lexists(path):
            raise StateConflictError(ConflictReason.ALREADY_UNLOCKED)
        if not artifact.is_file():
            raise KeyMissingError(f"No lock file found at {artifact}.")

        context = await self.authorizer.authorize(reason)
        try:
            key = await asyncio.to_thread(self.vault.get, account, context)
        except KeyNotFoundError as e:
            raise KeyMissingError() from e

        tmp = await self._run_to_completion(self._open_artifact, artifact, path, key)
        await remove_with_retry(tmp, self.temp_removal_attempts, self.temp_removal_backoff)

        try:
            artifact.unlink()
        except FileNotFoundError:
            logger.warning("Lock file %s vanished before it could be removed", artifact)
        except OSError as e:
            raise EraseError(f"Folder restored, but lock file {artifact} could not be removed: {e}") from e

    def _open_artifact(self, artifact: Path, path: Path, key: bytes) -> Path:
        # Decrypt fully before writing anything; a bad tag leaves disk untouched.
        archive_bytes = crypto.decrypt(artifact.read_bytes(), key)

        parent = path.parent
        tmp = temp_archive_path(parent, path.name)
        staging = Path(tempfile.mkdtemp(prefix=f".{path.name}.", suffix=".restore", dir=str(parent)))
        try:
            tmp.write_bytes(archive_bytes)
            root = self.codec.unpack(tmp, staging)
            if root is not None and root.is_dir():
                if root.name != path.name:
                    logger.warning("Archive root %r restored as %r", root.name, path.name)
                os.rename(root, path)
            if not path.exists():
                # empty folders only carry a placeholder entry
                path.mkdir()
        except BaseException:
            remove_quietly(tmp)
            raise
        finally:
            shutil.rmtree(staging, ignore_errors=True)
            if staging.exists():
                logger.warning("Could not remove staging directory %s", staging)
        return tmp

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _run_to_completion(self, fn, *args):
        # File work is not cancellable once started; if the awaiting task is
        # cancelled we wait for the worker before propagating.
        fut = asyncio.ensure_future(asyncio.to_thread(fn, *args))
        try:
            return await asyncio.shield(fut)
        except asyncio.CancelledError:
            logger.warning("Cancellation requested during file operations; finishing first")
            try:
                await fut
            except Exception:
                logger.exception("File operation failed after cancellation")
            raise
