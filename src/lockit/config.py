"""Runtime settings, read from ``LOCKIT_*`` environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    home: Path
    keyring_service: str = "LockIT"
    account_namespace: str = "io.lockit"
    auth_ttl_seconds: int = 60
    max_folders: int = 3
    erase_passes: int = 0
    log_level: int = logging.INFO

    @property
    def registry_path(self) -> Path:
        return self.home / "folders.json"

    @property
    def auth_path(self) -> Path:
        return self.home / "auth.json"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        home = Path(env.get("LOCKIT_HOME") or Path.home() / ".lockit").expanduser()

        level_name = env.get("LOCKIT_LOG_LEVEL", "INFO").upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            raise ValueError(f"LOCKIT_LOG_LEVEL is not a logging level: {level_name!r}")

        return cls(
            home=home,
            keyring_service=env.get("LOCKIT_KEYRING_SERVICE") or "LockIT",
            account_namespace=env.get("LOCKIT_ACCOUNT_NAMESPACE") or "io.lockit",
            auth_ttl_seconds=_int(env, "LOCKIT_AUTH_TTL", 60),
            max_folders=_int(env, "LOCKIT_MAX_FOLDERS", 3),
            erase_passes=_int(env, "LOCKIT_ERASE_PASSES", 0),
            log_level=level,
        )
