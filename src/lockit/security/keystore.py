"""OS keystore integration using keyring for folder key storage.

This module provides a tiny wrapper around `keyring` to store and retrieve
binary keys (base64-encoded) under a service/account pair. Do not assume
keyring provides hardware-backed security on all platforms; see
`assess_keyring_backend`.
"""
import base64
import binascii
from typing import Optional

try:
    import keyring
    from keyring.errors import PasswordDeleteError
except Exception:
    keyring = None
    PasswordDeleteError = None


# qualified-name fragments (lowercase) of keyring backends that write secrets unencrypted or not at all
_INSECURE_BACKENDS = ("plaintext", "uncrypted", ".null", ".fail")
# OS-provided stores
_PLATFORM_BACKENDS = ("macos", "keychain", "windows", "winvault", "secretservice", "kwallet", "libsecret")


def _require_keyring():
    if keyring is None:
        raise RuntimeError("keyring package is not available; install keyring to use keystore features")


def save_key(service: str, account: str, key_bytes: bytes) -> None:
    """Persist binary key_bytes in the OS keystore under (service, account).

    The key is base64-encoded before storage to keep it string-friendly.
    """
    _require_keyring()
    secret = base64.b64encode(key_bytes).decode("ascii")
    keyring.set_password(service, account, secret)


def assess_keyring_backend() -> tuple[bool, str]:
    """Return (is_secure, message) describing the current keyring backend.

    Heuristics are used because the `keyring` package exposes different backends
    across platforms. If `keyring` is not available this returns (False, reason).
    """
    if keyring is None:
        return False, "keyring package is not installed"

    try:
        backend = keyring.get_keyring()
    except Exception as e:
        return False, f"failed to get keyring backend: {e}"

    name = f"{type(backend).__module__}.{type(backend).__name__}"
    lowered = name.lower()
    priority = getattr(backend, "priority", None)

    if any(tok in lowered for tok in _INSECURE_BACKENDS):
        return False, f"insecure backend detected: {name}"
    if priority is not None and priority <= 0:
        return False, f"no usable keyring backend (backend={name}, priority={priority})"
    if any(tok in lowered for tok in _PLATFORM_BACKENDS):
        return True, f"platform backend in use: {name}"
    return True, f"unrecognised backend '{name}' (priority={priority}); keys may not be protected"


def load_key(service: str, account: str) -> Optional[bytes]:
    """Load a persisted key from the OS keystore; returns raw bytes or None if absent.

    Raises ValueError when a secret exists but is not valid base64.
    """
    _require_keyring()
    secret = keyring.get_password(service, account)
    if secret is None:
        return None
    try:
        return base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"stored key for '{account}' is not valid base64") from e


def delete_key(service: str, account: str) -> bool:
    """Remove the key from the OS keystore; returns False if nothing was stored."""
    _require_keyring()
    try:
        keyring.delete_password(service, account)
    except PasswordDeleteError:
        return False
    return True
