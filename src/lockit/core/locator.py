"""
Locators: persistent handles that let the app find a tracked folder again.

A locator's ``token`` is what the registry stores. ``resolve()`` turns it back
into a concrete path or raises ``PathResolutionError``; ``access(path)`` is a
context manager around the work that needs to touch files inside the folder,
released on every exit path. Platforms with capability-style bookmarks can
plug in their own class through the orchestrator's
``locator_factory``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Protocol, Type

from .exceptions import PathResolutionError
from .hashing import normalize_path

logger = logging.getLogger(__name__)


class Locator(Protocol):
    token: str

    @classmethod
    def for_path(cls, path) -> "Locator":
        ...

    def resolve(self) -> Path:
        ...

    def access(self, path: Path):
        ...


# a locator class: built from a path when a folder is registered, from its token afterwards
LocatorFactory = Type[Locator]


class PathLocator:
    """Locator backed by a plain absolute path.

    Resolution succeeds while the folder's parent directory exists; the
    folder itself may be absent (for example while it is locked).
    """

    def __init__(self, token: str):
        self.token = token

    @classmethod
    def for_path(cls, path) -> "PathLocator":
        return cls(normalize_path(path))

    def resolve(self) -> Path:
        path = Path(self.token)
        if not self.token or not path.is_absolute():
            raise PathResolutionError(f"Stored folder location is not an absolute path: {self.token!r}")
        if not path.parent.is_dir():
            raise PathResolutionError(f"Folder location is no longer reachable: {path.parent}")
        return path

    @contextmanager
    def access(self, path: Path) -> Iterator[Path]:
        logger.debug("Acquired access to %s", path)
        try:
            yield path
        finally:
            logger.debug("Released access to %s", path)

    def __repr__(self):
        return f"PathLocator({self.token!r})"
