"""AES-256-GCM envelope encryption for lock artifacts.

Envelope layout (binary, no header):
- 12 bytes: random nonce
- N bytes: ciphertext
- 16 bytes: GCM authentication tag

This matches the "combined" sealed-box form used by most AES-GCM libraries, so an
artifact is nothing more than one sealed box. The key is never stored alongside it.
"""
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from lockit.core.exceptions import AuthenticationFailure


KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


def generate_key() -> bytes:
    return os.urandom(KEY_SIZE)


def _cipher(key: bytes) -> AESGCM:
    if len(key) != KEY_SIZE:
        raise ValueError(f"key must be {KEY_SIZE} bytes, got {len(key)}")
    return AESGCM(key)


def encrypt(plaintext: bytes, key: bytes) -> bytes:
    """Seal ``plaintext`` under ``key`` and return ``nonce || ciphertext || tag``.

    A fresh random nonce is drawn on every call.
    """
    aead = _cipher(key)
    nonce = os.urandom(NONCE_SIZE)
    return nonce + aead.encrypt(nonce, plaintext, None)


def decrypt(envelope: bytes, key: bytes) -> bytes:
    """Open an envelope produced by :func:`encrypt`.

    Raises :class:`AuthenticationFailure` if the envelope is truncated, was
    modified, or was sealed under another key. No plaintext is returned in
    that case.
    """
    if len(envelope) < NONCE_SIZE + TAG_SIZE:
        raise AuthenticationFailure("Lock file is too short to be valid.")
    try:
        aead = _cipher(key)
    except ValueError as e:
        raise AuthenticationFailure(f"Unusable decryption key: {e}") from e
    nonce, ct = envelope[:NONCE_SIZE], envelope[NONCE_SIZE:]
    try:
        return aead.decrypt(nonce, ct, None)
    except InvalidTag as e:
        raise AuthenticationFailure() from e
