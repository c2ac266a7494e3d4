"""Unit tests for the Key Derivation Function (KDF) module."""

import pytest
from lockit.security.kdf import KdfParams, derive_key, generate_salt


def _fast(**overrides) -> KdfParams:
    # very low costs for speed in unit tests
    values = dict(salt=b"\x01" * 16, time_cost=1, memory_cost=8, parallelism=1)
    values.update(overrides)
    return KdfParams(**values)


def test_generate_salt_defaults():
    salt = generate_salt()
    assert isinstance(salt, bytes)
    assert len(salt) == 16


def test_generate_salt_custom_length():
    assert len(generate_salt(length=32)) == 32


def test_default_params_get_random_salt():
    assert KdfParams().salt != KdfParams().salt
    assert KdfParams().time_cost == 3
    assert KdfParams().memory_cost == 65536


def test_derive_key_string_and_bytes_agree():
    """String passphrases are UTF-8 encoded before hashing."""
    params = _fast()
    assert derive_key("password123", params) == derive_key(b"password123", params)


def test_derive_key_respects_length():
    assert len(derive_key(b"pass", _fast(key_len=64))) == 64


def test_derive_key_depends_on_salt():
    assert derive_key(b"pass", _fast()) != derive_key(b"pass", _fast(salt=b"\x02" * 16))


def test_params_to_dict():
    params = KdfParams(salt=b"\xaa" * 16, time_cost=2, memory_cost=1024, parallelism=4)

    assert params.to_dict() == {
        "algo": "argon2id",
        "salt": "aa" * 16,
        "time": 2,
        "memory": 1024,
        "parallelism": 4,
        "key_len": 32,
    }


def test_params_from_dict_roundtrip():
    params = _fast(key_len=48)
    assert KdfParams.from_dict(params.to_dict()) == params


def test_params_from_dict_rejects_other_algorithms():
    data = _fast().to_dict()
    data["algo"] = "scrypt"
    with pytest.raises(ValueError, match="unsupported kdf"):
        KdfParams.from_dict(data)
