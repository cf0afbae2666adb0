"""
Password hashing with PBKDF2-HMAC-SHA256.

Stored values are ``base64(salt || derived_key)``. Verification re-derives the
key with the stored salt and compares in constant time.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import os

HASH_NAME = "sha256"
ITERATIONS = 100_000
SALT_LENGTH = 16
KEY_LENGTH = 32


def _derive(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac(
        HASH_NAME, password.encode("utf-8"), salt, ITERATIONS, dklen=KEY_LENGTH
    )


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("Password must not be empty")
    salt = os.urandom(SALT_LENGTH)
    return base64.b64encode(salt + _derive(password, salt)).decode("ascii")


def verify_password(password: str, encoded: str) -> bool:
    """Return True if ``password`` matches ``encoded``; malformed hashes never match."""
    if not isinstance(password, str) or not isinstance(encoded, str):
        return False
    try:
        raw = base64.b64decode(encoded.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError):
        return False
    if len(raw) != SALT_LENGTH + KEY_LENGTH:
        return False
    salt, expected = raw[:SALT_LENGTH], raw[SALT_LENGTH:]
    return hmac.compare_digest(_derive(password, salt), expected)


# Verified against when a username is unknown so both failure paths cost one KDF run.
DUMMY_HASH = base64.b64encode(
    b"\x00" * SALT_LENGTH + _derive("", b"\x00" * SALT_LENGTH)
).decode("ascii")
