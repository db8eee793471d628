"""Password hashing contract shared by the server and the client.

The stored digest is the lowercase hex of SHA-256(salt || UTF-8(password)).
The client computes it after fetching the salt with ``getsalt``; the server
only compares hex strings, so cleartext passwords never cross the wire.

Unknown names receive a synthetic salt derived with HMAC-SHA256 from a
server secret, so ``getsalt`` answers look the same for every name.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets

SALT_LENGTH = 16
USERNAME_MAX_LENGTH = 64
HASH_HEX_MAX_LENGTH = 128

_HASH_HEX_PATTERN = re.compile(r"^[0-9a-fA-F]+$")

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F


def generate_salt() -> bytes:
    """Return SALT_LENGTH cryptographically random bytes."""
    return secrets.token_bytes(SALT_LENGTH)


def hash_password(password: str, salt: bytes) -> str:
    """Hash a password with its salt, returning zero-padded lowercase hex."""
    digest = hashlib.sha256()
    digest.update(salt)
    digest.update(password.encode("utf-8"))
    return digest.hexdigest()


def synthetic_salt(secret: bytes, username: str) -> bytes:
    """Deterministic per-name salt for accounts that do not exist."""
    return hmac.new(secret, username.encode("utf-8"), hashlib.sha256).digest()[:SALT_LENGTH]


def is_valid_hash_hex(value: str) -> bool:
    return 0 < len(value) <= HASH_HEX_MAX_LENGTH and _HASH_HEX_PATTERN.match(value) is not None


def validate_username(username: str) -> None:
    """Raise ValueError unless the name is 1..64 printable code points."""
    if not username or len(username) > USERNAME_MAX_LENGTH:
        raise ValueError(f"username must be between 1 and {USERNAME_MAX_LENGTH} characters")
    if any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in username):
        raise ValueError("username must not contain control characters")
    if username != username.strip():
        raise ValueError("username must not start or end with whitespace")
