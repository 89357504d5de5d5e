"""Password hashing for the MD5 authentication exchange."""

from __future__ import annotations

import hashlib


def md5_hash(username: bytes, password: bytes, salt: bytes) -> str:
    """Hash credentials in reply to an ``AuthenticationMD5Password`` request.

    The result is sent back to the server in a ``PasswordMessage``.
    """
    if len(salt) != 4:
        raise ValueError("salt must be exactly 4 bytes")
    inner = hashlib.md5(bytes(password) + bytes(username)).hexdigest()
    outer = hashlib.md5(inner.encode("ascii") + bytes(salt)).hexdigest()
    return f"md5{outer}"