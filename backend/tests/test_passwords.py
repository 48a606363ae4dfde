"""Credential verifier: bcrypt hashing and the dummy comparison for unknown users."""

from unittest.mock import patch

import bcrypt

from app.core.auth import hash_password, verify_dummy_password, verify_password


def test_hash_and_verify():
    h = hash_password("Correct1")
    assert h != "Correct1"
    assert verify_password("Correct1", h)
    assert not verify_password("Correct2", h)


def test_hashes_are_salted():
    assert hash_password("Correct1") != hash_password("Correct1")


def test_password_longer_than_72_bytes():
    """bcrypt only sees the first 72 bytes; hashing and checking truncate the same way."""
    long_password = "A1b" * 40
    assert verify_password(long_password, hash_password(long_password))


def test_malformed_hash_is_a_mismatch():
    assert verify_password("Correct1", "not-a-bcrypt-hash") is False


def test_dummy_verify_runs_bcrypt_and_fails():
    with patch("app.core.auth.bcrypt.checkpw", wraps=bcrypt.checkpw) as checkpw:
        assert verify_dummy_password("whatever") is False
    checkpw.assert_called_once()
