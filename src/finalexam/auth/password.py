"""
Password hashing and verification using PBKDF2-HMAC-SHA256.

Stored format: ``pbkdf2:<iterations>:<saltHex>:<hashHex>``.

Accounts created before PBKDF2 was introduced carry a legacy ``saltHex:hashHex``
string (a single SHA-256 over ``saltHex + password``). Those still verify, but report
``needs_rehash`` so the login flow can upgrade them in place.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import NamedTuple

PBKDF2_PREFIX = "pbkdf2"
PBKDF2_ITERATIONS = 600_000
SALT_BYTES = 16
KEY_BYTES = 32


class PasswordCheck(NamedTuple):
    valid: bool
    needs_rehash: bool


_INVALID = PasswordCheck(valid=False, needs_rehash=False)


def _derive(password: str, salt: bytes, iterations: int) -> str:
    return hashlib.pbkdf2_hmac("sha256", password.encode(), salt, iterations, dklen=KEY_BYTES).hex()


def hash_password(password: str) -> str:
    """Hash a password with a fresh random salt. Returns the full hash string."""
    salt = secrets.token_bytes(SALT_BYTES)
    return f"{PBKDF2_PREFIX}:{PBKDF2_ITERATIONS}:{salt.hex()}:{_derive(password, salt, PBKDF2_ITERATIONS)}"


def _verify_pbkdf2(password: str, stored_hash: str) -> PasswordCheck:
    parts = stored_hash.split(":")
    if len(parts) != 4:
        return _INVALID
    _, iterations_str, salt_hex, expected = parts
    try:
        iterations = int(iterations_str)
        salt = bytes.fromhex(salt_hex)
    except ValueError:
        return _INVALID
    if iterations <= 0 or not salt or not expected:
        return _INVALID

    valid = hmac.compare_digest(_derive(password, salt, iterations).encode(), expected.lower().encode())
    return PasswordCheck(valid=valid, needs_rehash=valid and iterations < PBKDF2_ITERATIONS)


def _verify_legacy(password: str, stored_hash: str) -> PasswordCheck:
    parts = stored_hash.split(":")
    if len(parts) != 2 or not all(parts):
        return _INVALID
    salt_hex, expected = parts
    digest = hashlib.sha256((salt_hex + password).encode()).hexdigest()
    valid = hmac.compare_digest(digest.encode(), expected.lower().encode())
    return PasswordCheck(valid=valid, needs_rehash=valid)


def verify_password(password: str, stored_hash: str | None) -> PasswordCheck:
    """
    Verify a password against a stored hash of either format.

    Never raises: a malformed or missing stored hash, or a password that cannot be
    encoded as UTF-8, is simply invalid.
    """
    if not isinstance(password, str) or not isinstance(stored_hash, str) or not stored_hash:
        return _INVALID
    try:
        if stored_hash.startswith(f"{PBKDF2_PREFIX}:"):
            return _verify_pbkdf2(password, stored_hash)
        return _verify_legacy(password, stored_hash)
    except UnicodeEncodeError:
        return _INVALID

