"""
Exceptions for LockIt core module
This is placed such that there is a general error catcher
"""

from enum import Enum


class LockItError(Exception):
    # general container for errors, message is shown to the user as-is
    pass


class AuthorizationReason(Enum):
    UNAVAILABLE = "unavailable"
    FAILED = "failed"
    CANCELED = "canceled"


class AuthorizationError(LockItError):
    # raised when the local identity check cannot produce a context

    _messages = {
        AuthorizationReason.UNAVAILABLE: "Authentication is not available on this device.",
        AuthorizationReason.FAILED: "Authentication failed.",
        AuthorizationReason.CANCELED: "Authentication was canceled.",
    }

    def __init__(self, reason: AuthorizationReason, message: str | None = None):
        self.reason = reason
        super().__init__(message or self._messages[reason])


class PathResolutionError(LockItError):
    # raised when a locator no longer resolves to a usable path
    def __init__(self, message: str = "Unable to access the selected folder."):
        super().__init__(message)


class FolderMissingError(LockItError):
    # raised when neither the folder nor its lock artifact exist
    pass


class ConflictReason(Enum):
    ALREADY_LOCKED = "already_locked"
    ALREADY_UNLOCKED = "already_unlocked"
    AMBIGUOUS = "ambiguous"


class StateConflictError(LockItError):
    # raised when an operation does not apply to the current on-disk state

    _messages = {
        ConflictReason.ALREADY_LOCKED: "Folder is already locked.",
        ConflictReason.ALREADY_UNLOCKED: "Folder is already unlocked.",
        ConflictReason.AMBIGUOUS: "Folder and lock file both exist; refusing to overwrite.",
    }

    def __init__(self, reason: ConflictReason, message: str | None = None):
        self.reason = reason
        super().__init__(message or self._messages[reason])


class KeyVaultReason(Enum):
    NOT_FOUND = "not_found"
    UNHANDLED = "unhandled"


class KeyVaultError(LockItError):
    # raised on key store faults
    def __init__(self, reason: KeyVaultReason, message: str):
        self.reason = reason
        super().__init__(message)


class KeyNotFoundError(KeyVaultError):
    # raised when no key is stored under an account
    def __init__(self, account: str):
        self.account = account
        super().__init__(KeyVaultReason.NOT_FOUND, f"No key stored for account '{account}'.")


class KeyMissingError(LockItError):
    # raised when the artifact or the key needed to open it is missing
    def __init__(self, message: str = "Encryption key missing. Re-register folder."):
        super().__init__(message)


class AuthenticationFailure(LockItError):
    # raised when ciphertext does not verify under the key (tampered or wrong key)
    def __init__(self, message: str = "Lock file failed authentication (corrupted or wrong key)."):
        super().__init__(message)


class ArchiveReason(Enum):
    PACK_FAILED = "pack_failed"
    UNPACK_FAILED = "unpack_failed"


class ArchiveError(LockItError):
    # raised when packing or unpacking a folder archive fails
    def __init__(self, reason: ArchiveReason, message: str):
        self.reason = reason
        super().__init__(message)


class EraseError(LockItError):
    # raised when the original folder could not be removed after locking
    pass


class RegistryError(LockItError):
    # raised when the folder registry cannot be read or written
    pass


class RegistryFullError(RegistryError):
    # raised when the registry already tracks the maximum number of folders
    pass


class FolderNotRegisteredError(RegistryError):
    # raised when a folder id or name is not in the registry
    pass
