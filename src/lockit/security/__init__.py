"""Security helpers: folder cipher, key vault and local authorization for LockIt.

This package provides:
- AES-256-GCM envelope encryption for lock artifacts
- an OS-keystore backed key vault (primary + recovery accounts)
- an Argon2id passphrase authorizer issuing short-lived auth contexts
"""

from .crypto import generate_key, encrypt, decrypt
from .keystore import save_key, load_key, delete_key, assess_keyring_backend
from .vault import KeyVault
from .auth import AuthContext, Authorizer, PassphraseAuthorizer

__all__ = [
    "generate_key",
    "encrypt",
    "decrypt",
    "save_key",
    "load_key",
    "delete_key",
    "assess_keyring_backend",
    "KeyVault",
    "AuthContext",
    "Authorizer",
    "PassphraseAuthorizer",
]
