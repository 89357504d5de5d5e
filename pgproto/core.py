"""Shared helpers for the wire format: checked lengths and nullable values."""

from __future__ import annotations

import struct

I16_MAX = 0x7FFF
I32_MAX = 0x7FFF_FFFF

_NULL_LENGTH = struct.pack(">i", -1)


class DecodeError(ValueError):
    """Raised when a binary value received from the server is malformed."""


def _checked(n: int, limit: int) -> int:
    if n > limit:
        raise ValueError("value too large to transmit")
    return n


def checked_i16(n: int) -> int:
    """Return ``n`` if it fits in a signed 16-bit count, else raise ValueError."""
    return _checked(n, I16_MAX)


def checked_i32(n: int) -> int:
    """Return ``n`` if it fits in a signed 32-bit count, else raise ValueError."""
    return _checked(n, I32_MAX)


def nullable(value: bytes | None) -> bytes:
    """Frame a value with its 32-bit length prefix; ``None`` is written as length -1."""
    if value is None:
        return _NULL_LENGTH
    data = bytes(value)
    return struct.pack(">i", checked_i32(len(data))) + data