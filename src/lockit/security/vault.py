"""Folder key storage on top of the OS keystore.

Each locked folder has two byte-identical copies of its key:

- primary:  ``<namespace>.key.<folder_id>``
- recovery: ``<namespace>.recovery.<sha256 of the folder's absolute path>``

The recovery copy lets a folder be restored from its ``.lockit`` file alone,
without the registry record that holds ``folder_id``.
"""
from __future__ import annotations

import logging
from typing import Optional

from lockit.core.exceptions import (
    AuthorizationError,
    AuthorizationReason,
    KeyNotFoundError,
    KeyVaultError,
    KeyVaultReason,
)
from lockit.core.hashing import hash_path
from .auth import AuthContext
from .crypto import KEY_SIZE
from .keystore import assess_keyring_backend, delete_key, load_key, save_key

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "LockIT"
DEFAULT_NAMESPACE = "io.lockit"


class KeyVault:
    def __init__(self, service: str = DEFAULT_SERVICE, namespace: str = DEFAULT_NAMESPACE):
        self.service = service
        self.namespace = namespace

    # ------------------------------------------------------------------
    # Account ids
    # ------------------------------------------------------------------

    def primary_account(self, folder_id: str) -> str:
        return f"{self.namespace}.key.{folder_id}"

    def recovery_account(self, folder_path) -> str:
        return f"{self.namespace}.recovery.{hash_path(folder_path)}"

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def put(self, account: str, key_bytes: bytes) -> None:
        """Store ``key_bytes`` under ``account``, replacing any existing key."""
        try:
            delete_key(self.service, account)
            save_key(self.service, account, key_bytes)
        except Exception as e:
            raise KeyVaultError(KeyVaultReason.UNHANDLED, f"Could not store key for '{account}': {e}") from e
        logger.debug("Stored key for %s", account)

    def get(self, account: str, context: Optional[AuthContext]) -> bytes:
        """Return the key stored under ``account``.

        Requires an authorization context that has not expired.
        """
        if context is None or not context.is_valid():
            raise AuthorizationError(AuthorizationReason.FAILED, "Authorization expired; please authenticate again.")
        try:
            key = load_key(self.service, account)
        except Exception as e:
            raise KeyVaultError(KeyVaultReason.UNHANDLED, f"Could not read key for '{account}': {e}") from e
        if key is None:
            raise KeyNotFoundError(account)
        if len(key) != KEY_SIZE:
            raise KeyVaultError(
                KeyVaultReason.UNHANDLED,
                f"Key for '{account}' has unexpected length {len(key)}",
            )
        return key

    def delete(self, account: str) -> bool:
        try:
            return delete_key(self.service, account)
        except Exception as e:
            raise KeyVaultError(KeyVaultReason.UNHANDLED, f"Could not delete key for '{account}': {e}") from e

    def assess_backend(self) -> tuple[bool, str]:
        return assess_keyring_backend()
