"""Tests for password hashing, verification and legacy-hash migration."""

import hashlib

import pytest

from finalexam.auth.password import (
    PBKDF2_ITERATIONS,
    PasswordCheck,
    hash_password,
    verify_password,
)


def _legacy_hash(password: str, salt_hex: str = "a1b2c3d4e5f60718") -> str:
    return f"{salt_hex}:{hashlib.sha256((salt_hex + password).encode()).hexdigest()}"


class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = hash_password("password123")
        assert verify_password("password123", hashed) == PasswordCheck(valid=True, needs_rehash=False)

    def test_wrong_password_rejected(self):
        hashed = hash_password("CorrectPass1")
        assert verify_password("WrongPass1", hashed).valid is False

    def test_hash_format(self):
        prefix, iterations, salt_hex, key_hex = hash_password("password123").split(":")
        assert prefix == "pbkdf2"
        assert int(iterations) == PBKDF2_ITERATIONS == 600_000
        assert len(bytes.fromhex(salt_hex)) == 16
        assert len(bytes.fromhex(key_hex)) == 32

    def test_same_password_gets_distinct_salts(self):
        assert hash_password("password123") != hash_password("password123")

    def test_unicode_password(self):
        hashed = hash_password("pässwörd-密码")
        assert verify_password("pässwörd-密码", hashed).valid is True
        assert verify_password("passwort-密码", hashed).valid is False

    def test_unencodable_password_is_invalid(self):
        hashed = hash_password("password123")
        assert verify_password("abc\ud800defgh", hashed) == PasswordCheck(valid=False, needs_rehash=False)
        assert verify_password("abc\ud800defgh", _legacy_hash("password123")).valid is False


class TestLegacyHashes:
    def test_matching_legacy_hash_needs_rehash(self):
        assert verify_password("password123", _legacy_hash("password123")) == PasswordCheck(
            valid=True, needs_rehash=True
        )

    def test_legacy_hash_wrong_password(self):
        assert verify_password("password124", _legacy_hash("password123")) == PasswordCheck(
            valid=False, needs_rehash=False
        )

    def test_legacy_hash_is_case_insensitive_hex(self):
        salt, digest = _legacy_hash("password123").split(":")
        assert verify_password("password123", f"{salt}:{digest.upper()}").valid is True

    def test_rehash_after_legacy_match(self):
        legacy = _legacy_hash("password123")
        assert verify_password("password123", legacy).needs_rehash is True
        upgraded = hash_password("password123")
        assert verify_password("password123", upgraded) == PasswordCheck(valid=True, needs_rehash=False)


class TestParameterUpgrade:
    def test_low_iteration_hash_needs_rehash(self, monkeypatch):
        monkeypatch.setattr("finalexam.auth.password.PBKDF2_ITERATIONS", 1_000)
        weak = hash_password("password123")
        monkeypatch.undo()
        assert weak.startswith("pbkdf2:1000:")
        assert verify_password("password123", weak) == PasswordCheck(valid=True, needs_rehash=True)

    def test_low_iteration_wrong_password(self, monkeypatch):
        monkeypatch.setattr("finalexam.auth.password.PBKDF2_ITERATIONS", 1_000)
        weak = hash_password("password123")
        monkeypatch.undo()
        assert verify_password("nope", weak) == PasswordCheck(valid=False, needs_rehash=False)


class TestMalformedHashes:
    @pytest.mark.parametrize(
        "stored",
        [
            None,
            "",
            "garbage",
            "pbkdf2:600000:abcd",
            "pbkdf2:notanumber:abcd:abcd",
            "pbkdf2:0:abcd:abcd",
            "pbkdf2:-5:abcd:abcd",
            "pbkdf2:1000:zz:abcd",
            "pbkdf2:1000::abcd",
            "pbkdf2:1000:abcd:",
            "a:b:c",
            ":abcd",
            "abcd:",
            "salt:ünïcödé",
        ],
    )
    def test_malformed_hash_is_invalid_and_never_raises(self, stored):
        assert verify_password("password123", stored) == PasswordCheck(valid=False, needs_rehash=False)
