"""
Unit tests for the keystore module.
"""

import base64

import pytest
from unittest.mock import patch

from lockit.security import keystore


def _backend(module: str, name: str = "Keyring", priority=1):
    """Build a backend instance whose qualified name is ``module.name``."""
    cls = type(name, (), {"__module__": module, "priority": priority})
    return cls()


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def mock_keyring_lib():
    """Patches the keyring module within lockit.security.keystore."""
    with patch("lockit.security.keystore.keyring", autospec=True) as mock_lib:
        yield mock_lib


@pytest.fixture
def no_keyring_lib():
    """Simulates keyring not being installed."""
    with patch("lockit.security.keystore.keyring", None):
        yield


# ==============================================================================
# Tests: Dependency Availability (_require_keyring)
# ==============================================================================

def test_require_keyring_raises_if_missing(no_keyring_lib):
    """Every storage call needs keyring."""
    with pytest.raises(RuntimeError, match="keyring package is not available"):
        keystore.save_key("service", "user", b"key")

    with pytest.raises(RuntimeError, match="keyring package is not available"):
        keystore.load_key("service", "user")

    with pytest.raises(RuntimeError, match="keyring package is not available"):
        keystore.delete_key("service", "user")


def test_assess_backend_returns_false_if_missing(no_keyring_lib):
    is_secure, msg = keystore.assess_keyring_backend()
    assert is_secure is False
    assert "not installed" in msg


# ==============================================================================
# Tests: Save Key (save_key)
# ==============================================================================

def test_save_key_encodes_and_stores(mock_keyring_lib):
    """Bytes are base64 encoded before storage."""
    key_bytes = b"\x01\x02\x03\x04"

    keystore.save_key("LockIT", "io.lockit.key.abc", key_bytes)

    called_service, called_account, called_secret = mock_keyring_lib.set_password.call_args[0]
    assert called_service == "LockIT"
    assert called_account == "io.lockit.key.abc"
    assert called_secret == base64.b64encode(key_bytes).decode("ascii")


# ==============================================================================
# Tests: Load Key (load_key)
# ==============================================================================

def test_load_key_returns_bytes(mock_keyring_lib):
    original_key = b"secret_bytes"
    mock_keyring_lib.get_password.return_value = base64.b64encode(original_key).decode("ascii")

    assert keystore.load_key("svc", "usr") == original_key


def test_load_key_returns_none_if_missing(mock_keyring_lib):
    mock_keyring_lib.get_password.return_value = None

    assert keystore.load_key("svc", "usr") is None


def test_load_key_raises_on_corrupt_data(mock_keyring_lib):
    """A corrupt secret is an error, not an absent key."""
    mock_keyring_lib.get_password.return_value = "NotValidBase64!!!"

    with pytest.raises(ValueError, match="not valid base64"):
        keystore.load_key("svc", "usr")


# ==============================================================================
# Tests: Delete Key (delete_key)
# ==============================================================================

def test_delete_key_calls_backend(mock_keyring_lib):
    assert keystore.delete_key("svc", "usr") is True
    mock_keyring_lib.delete_password.assert_called_once_with("svc", "usr")


def test_delete_key_missing_entry_returns_false(mock_keyring_lib):
    mock_keyring_lib.delete_password.side_effect = keystore.PasswordDeleteError("Not found")

    assert keystore.delete_key("svc", "usr") is False


def test_delete_key_propagates_backend_failures(mock_keyring_lib):
    mock_keyring_lib.delete_password.side_effect = RuntimeError("DBus error")

    with pytest.raises(RuntimeError):
        keystore.delete_key("svc", "usr")


# ==============================================================================
# Tests: Backend Assessment (assess_keyring_backend)
# ==============================================================================

def test_assess_backend_handles_exception(mock_keyring_lib):
    mock_keyring_lib.get_keyring.side_effect = Exception("DBus error")

    is_secure, msg = keystore.assess_keyring_backend()
    assert is_secure is False
    assert "failed to get keyring backend" in msg


@pytest.mark.parametrize(
    "module, name",
    [
        ("keyrings.alt.file", "PlaintextKeyring"),
        ("keyrings.alt.file", "UncryptedFileKeyring"),
        ("keyring.backends.null", "Keyring"),
        ("keyring.backends.fail", "Keyring"),
    ],
)
def test_assess_backend_insecure_names(mock_keyring_lib, module, name):
    mock_keyring_lib.get_keyring.return_value = _backend(module, name, priority=1)

    is_secure, msg = keystore.assess_keyring_backend()
    assert is_secure is False
    assert "insecure backend detected" in msg


def test_assess_backend_low_priority(mock_keyring_lib):
    mock_keyring_lib.get_keyring.return_value = _backend("some.generic", "Backend", priority=0)

    is_secure, msg = keystore.assess_keyring_backend()
    assert is_secure is False
    assert "no usable keyring backend" in msg


@pytest.mark.parametrize(
    "module",
    [
        "keyring.backends.macOS",
        "keyring.backends.Windows",
        "keyring.backends.SecretService",
        "keyring.backends.kwallet",
        "keyring.backends.libsecret",
    ],
)
def test_assess_backend_platform_names(mock_keyring_lib, module):
    mock_keyring_lib.get_keyring.return_value = _backend(module, priority=5)

    is_secure, msg = keystore.assess_keyring_backend()
    assert is_secure is True
    assert "platform backend in use" in msg


def test_assess_backend_unknown_but_usable(mock_keyring_lib):
    mock_keyring_lib.get_keyring.return_value = _backend("vendor.hsm", "HardwareKeyring", priority=5)

    is_secure, msg = keystore.assess_keyring_backend()
    assert is_secure is True
    assert "unrecognised backend" in msg
