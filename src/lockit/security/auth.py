"""Local authorization for key access.

An :class:`AuthContext` is a short-lived capability handed out after a
successful identity check. The key vault refuses to read keys without a
context that is still valid, so every lock, unlock and recover starts with
``await authorizer.authorize(reason)``.

:class:`PassphraseAuthorizer` is the portable implementation: the user
enrolls a passphrase once, and only Argon2id parameters plus an HMAC
sentinel derived from it are written to ``auth.json``. Later checks
re-derive the key from the typed passphrase and compare sentinels.
"""
from __future__ import annotations

import asyncio
import getpass
import hashlib
import hmac
import json
import logging
import os
import signal
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Protocol

from lockit.core.exceptions import AuthorizationError, AuthorizationReason
from lockit.core.storage import atomic_write_bytes
from .kdf import KdfParams, derive_key

logger = logging.getLogger(__name__)

SENTINEL_LABEL = b"lockit-authorizer"


@dataclass(frozen=True)
class AuthContext:
    """Opaque, time-bounded proof of a successful identity check."""

    expires_at: float
    issued_at: float = field(default_factory=time.time)
    token: bytes = field(default_factory=lambda: os.urandom(16), repr=False)

    @classmethod
    def issue(cls, ttl_seconds: float) -> "AuthContext":
        now = time.time()
        return cls(issued_at=now, expires_at=now + float(ttl_seconds))

    def is_valid(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now <= self.expires_at


class Authorizer(Protocol):
    async def authorize(self, reason: str) -> AuthContext:
        ...


Prompt = Callable[[str], str]


class PassphraseAuthorizer:
    def __init__(
        self,
        meta_path: Path | str,
        prompt: Optional[Prompt] = None,
        ttl_seconds: float = 60,
    ):
        self.meta_path = Path(meta_path)
        self.prompt = prompt or getpass.getpass
        self.ttl_seconds = ttl_seconds

    @property
    def enrolled(self) -> bool:
        return self.meta_path.exists()

    def enroll(self, passphrase: str, params: Optional[KdfParams] = None) -> None:
        """Record a new passphrase. Replaces any previous enrollment."""
        if not passphrase:
            raise ValueError("passphrase must not be empty")
        params = params or KdfParams()
        sentinel = self._sentinel(passphrase, params)
        meta = {"kdf": params.to_dict(), "sentinel": sentinel.hex()}
        self.meta_path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_bytes(self.meta_path, json.dumps(meta).encode("utf-8"))
        logger.info("Enrolled local passphrase at %s", self.meta_path)

    def verify(self, passphrase: str) -> bool:
        params, expected = self._load_meta()
        mac = self._sentinel(passphrase, params)
        return hmac.compare_digest(mac, expected)

    async def authorize(self, reason: str) -> AuthContext:
        if not self.enrolled:
            raise AuthorizationError(
                AuthorizationReason.UNAVAILABLE,
                "No passphrase enrolled; run 'lockit enroll' first.",
            )
        try:
            passphrase = self._ask(f"{reason}\nPassphrase: ")
        except (KeyboardInterrupt, EOFError) as e:
            raise AuthorizationError(AuthorizationReason.CANCELED) from e
        except OSError as e:
            # no controlling terminal
            raise AuthorizationError(AuthorizationReason.UNAVAILABLE, f"Cannot prompt for passphrase: {e}") from e

        ok = await asyncio.to_thread(self.verify, passphrase)
        if not ok:
            logger.warning("Passphrase check failed (%s)", reason)
            raise AuthorizationError(AuthorizationReason.FAILED)
        return AuthContext.issue(self.ttl_seconds)

    def _ask(self, text: str) -> str:
        # Ctrl-C must interrupt the read; asyncio.run's SIGINT handler only cancels the task.
        if threading.current_thread() is not threading.main_thread():
            return self.prompt(text)
        previous = signal.signal(signal.SIGINT, signal.default_int_handler)
        try:
            return self.prompt(text)
        finally:
            if previous is not None:
                signal.signal(signal.SIGINT, previous)

    def _load_meta(self) -> tuple[KdfParams, bytes]:
        try:
            meta = json.loads(self.meta_path.read_text(encoding="utf-8"))
            return KdfParams.from_dict(meta["kdf"]), bytes.fromhex(meta["sentinel"])
        except (OSError, ValueError, KeyError) as e:
            raise AuthorizationError(
                AuthorizationReason.UNAVAILABLE, f"Passphrase enrollment is unreadable: {e}"
            ) from e

    @staticmethod
    def _sentinel(passphrase: str, params: KdfParams) -> bytes:
        key = derive_key(passphrase, params)
        return hmac.new(key, SENTINEL_LABEL, hashlib.sha256).digest()
