"""Small helper to build a LockIt app context for the CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from lockit.config import Settings
from lockit.core.archive import ArchiveCodec
from lockit.core.eraser import SecureEraser
from lockit.core.folder_manager import FolderManager
from lockit.core.orchestrator import LockOrchestrator
from lockit.core.registry import FolderRegistry
from lockit.security.auth import Authorizer, PassphraseAuthorizer, Prompt
from lockit.security.vault import KeyVault

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Container for runtime objects the CLI needs."""

    settings: Settings
    manager: FolderManager
    orchestrator: LockOrchestrator
    authorizer: Authorizer
    vault: KeyVault


def build_context(
    settings: Optional[Settings] = None,
    authorizer: Optional[Authorizer] = None,
    prompt: Optional[Prompt] = None,
) -> AppContext:
    """
    Wire registry, vault, authorizer and orchestrator from ``settings``.

    Settings default to :meth:`Settings.from_env`. The authorizer defaults to a
    :class:`PassphraseAuthorizer` backed by ``<home>/auth.json``; pass another
    implementation (or a custom ``prompt``) to change how identity is checked.

    Registry states are refreshed from disk here, so a crash between locking a
    folder and saving the registry is corrected on the next start.
    """
    settings = settings or Settings.from_env()
    settings.home.mkdir(parents=True, exist_ok=True)

    vault = KeyVault(service=settings.keyring_service, namespace=settings.account_namespace)
    secure, msg = vault.assess_backend()
    if not secure:
        logger.warning("Keyring backend check: %s", msg)
    else:
        logger.debug("Keyring backend check: %s", msg)

    if authorizer is None:
        authorizer = PassphraseAuthorizer(
            settings.auth_path,
            prompt=prompt,
            ttl_seconds=settings.auth_ttl_seconds,
        )

    orchestrator = LockOrchestrator(
        authorizer=authorizer,
        vault=vault,
        codec=ArchiveCodec(),
        eraser=SecureEraser(overwrite_passes=settings.erase_passes),
    )
    registry = FolderRegistry(settings.registry_path, max_folders=settings.max_folders)
    manager = FolderManager(registry, orchestrator)
    manager.refresh_lock_states()

    return AppContext(
        settings=settings,
        manager=manager,
        orchestrator=orchestrator,
        authorizer=authorizer,
        vault=vault,
    )
