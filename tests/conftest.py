"""
Shared fixtures for LockIt tests.

Every test runs against an in-memory keyring backend so no real OS keystore
is ever touched.
"""

from pathlib import Path
from typing import Dict, Optional, Union

import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from lockit.core.locator import PathLocator
from lockit.core.models import FolderRecord
from lockit.core.orchestrator import LockOrchestrator
from lockit.security.auth import AuthContext
from lockit.security.vault import KeyVault


class MemoryKeyring(KeyringBackend):
    """Keyring backend that keeps secrets in a dict."""

    priority = 1

    def __init__(self):
        super().__init__()
        self.store: Dict[tuple, str] = {}

    def get_password(self, service, username):
        return self.store.get((service, username))

    def set_password(self, service, username, password):
        self.store[(service, username)] = password

    def delete_password(self, service, username):
        try:
            del self.store[(service, username)]
        except KeyError:
            raise PasswordDeleteError("not found") from None


class StaticAuthorizer:
    """Authorizer that always succeeds, unless ``error`` is set."""

    def __init__(self, ttl_seconds: float = 60):
        self.ttl_seconds = ttl_seconds
        self.error: Optional[Exception] = None
        self.calls = []

    async def authorize(self, reason: str) -> AuthContext:
        self.calls.append(reason)
        if self.error is not None:
            raise self.error
        return AuthContext.issue(self.ttl_seconds)


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture(autouse=True)
def memory_keyring():
    """Install an in-memory keyring for the duration of a test."""
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


@pytest.fixture
def vault():
    return KeyVault(service="LockIT-test", namespace="test.lockit")


@pytest.fixture
def authorizer():
    return StaticAuthorizer()


@pytest.fixture
def orchestrator(authorizer, vault):
    return LockOrchestrator(authorizer=authorizer, vault=vault, temp_removal_backoff=0)


@pytest.fixture
def make_tree():
    """Return a function that builds a directory tree.

    ``spec`` maps relative paths to file contents (bytes) or None for an
    empty directory.
    """

    def _make(root: Path, spec: Dict[str, Optional[bytes]]) -> Path:
        root.mkdir(parents=True, exist_ok=True)
        for rel, content in spec.items():
            target = root / rel
            if content is None:
                target.mkdir(parents=True, exist_ok=True)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(content)
        return root

    return _make


@pytest.fixture
def snapshot():
    """Return a function mapping every entry under a root to its bytes (or 'dir')."""

    def _snap(root: Path) -> Dict[str, Union[bytes, str]]:
        out: Dict[str, Union[bytes, str]] = {}
        for p in sorted(root.rglob("*")):
            rel = p.relative_to(root).as_posix()
            out[rel] = "dir" if p.is_dir() else p.read_bytes()
        return out

    return _snap


@pytest.fixture
def make_record():
    def _record(folder: Path, locked: bool = False) -> FolderRecord:
        locator = PathLocator.for_path(folder)
        return FolderRecord(name=folder.name, original_path=locator.token, locator=locator.token, locked=locked)

    return _record
