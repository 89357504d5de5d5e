"""Binary encoding of scalar values: numbers, text, hstore, bit strings and more.

Every ``*_to_sql`` function returns the encoded value as bytes. Every
``*_from_sql`` function decodes a value received from the server and raises
:class:`~pgproto.core.DecodeError` when the buffer is malformed.
"""

from __future__ import annotations

import struct
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .core import DecodeError, checked_i32

_BUFFER_SIZE = "invalid buffer size"


class _Reader:
    """Sequential reader over a received buffer."""

    def __init__(self, buf: bytes) -> None:
        self._buf = bytes(buf)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._buf) - self._pos

    def take(self, n: int) -> bytes:
        if n > self.remaining:
            raise DecodeError("unexpected end of buffer")
        chunk = self._buf[self._pos:self._pos + n]
        self._pos += n
        return chunk

    def unpack(self, fmt: str) -> int | float:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))[0]

    def rest(self) -> bytes:
        return self.take(self.remaining)

    def finish(self, message: str) -> None:
        if self.remaining:
            raise DecodeError(message)


def _pack(fmt: str, value: int | float) -> bytes:
    try:
        return struct.pack(fmt, value)
    except struct.error as exc:
        raise ValueError(str(exc)) from exc


def _unpack_exact(buf: bytes, fmt: str, message: str = _BUFFER_SIZE) -> int | float:
    reader = _Reader(buf)
    value = reader.unpack(fmt)
    reader.finish(message)
    return value


def _utf8(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(str(exc)) from exc


def _fixed(value: bytes, size: int, what: str) -> bytes:
    raw = bytes(value)
    if len(raw) != size:
        raise ValueError(f"{what} must be exactly {size} bytes")
    return raw


def bool_to_sql(value: bool) -> bytes:
    """Encode a ``BOOL`` as a single 0 or 1 byte."""
    return _pack(">B", 1 if value else 0)


def bool_from_sql(buf: bytes) -> bool:
    """Decode a ``BOOL``."""
    raw = bytes(buf)
    if len(raw) != 1:
        raise DecodeError(_BUFFER_SIZE)
    return raw[0] != 0


def bytea_to_sql(value: bytes) -> bytes:
    """Encode a ``BYTEA``."""
    return bytes(value)


def bytea_from_sql(buf: bytes) -> bytes:
    """Decode a ``BYTEA``."""
    return bytes(buf)


def text_to_sql(value: str) -> bytes:
    """Encode a ``TEXT``, ``VARCHAR``, ``CHAR(n)``, ``NAME`` or ``CITEXT``."""
    return value.encode("utf-8")


def text_from_sql(buf: bytes) -> str:
    """Decode a ``TEXT``, ``VARCHAR``, ``CHAR(n)``, ``NAME`` or ``CITEXT``."""
    return _utf8(bytes(buf))


def char_to_sql(value: int) -> bytes:
    """Encode a ``"char"`` (a signed byte)."""
    return _pack(">b", value)


def char_from_sql(buf: bytes) -> int:
    """Decode a ``"char"`` (a signed byte)."""
    return int(_unpack_exact(buf, ">b"))


def int2_to_sql(value: int) -> bytes:
    """Encode an ``INT2``."""
    return _pack(">h", value)


def int2_from_sql(buf: bytes) -> int:
    """Decode an ``INT2``."""
    return int(_unpack_exact(buf, ">h"))


def int4_to_sql(value: int) -> bytes:
    """Encode an ``INT4``."""
    return _pack(">i", value)


def int4_from_sql(buf: bytes) -> int:
    """Decode an ``INT4``."""
    return int(_unpack_exact(buf, ">i"))


def oid_to_sql(value: int) -> bytes:
    """Encode an ``OID``."""
    return _pack(">I", value)


def oid_from_sql(buf: bytes) -> int:
    """Decode an ``OID``."""
    return int(_unpack_exact(buf, ">I"))


def int8_to_sql(value: int) -> bytes:
    """Encode an ``INT8``."""
    return _pack(">q", value)


def int8_from_sql(buf: bytes) -> int:
    """Decode an ``INT8``."""
    return int(_unpack_exact(buf, ">q"))


def lsn_to_sql(value: int) -> bytes:
    """Encode a ``PG_LSN``."""
    return _pack(">Q", value)


def lsn_from_sql(buf: bytes) -> int:
    """Decode a ``PG_LSN``."""
    return int(_unpack_exact(buf, ">Q"))


def float4_to_sql(value: float) -> bytes:
    """Encode a ``FLOAT4``."""
    return _pack(">f", value)


def float4_from_sql(buf: bytes) -> float:
    """Decode a ``FLOAT4``."""
    return float(_unpack_exact(buf, ">f"))


def float8_to_sql(value: float) -> bytes:
    """Encode a ``FLOAT8``."""
    return _pack(">d", value)


def float8_from_sql(buf: bytes) -> float:
    """Decode a ``FLOAT8``."""
    return float(_unpack_exact(buf, ">d"))


def _pascal_string(text: str) -> bytes:
    raw = text.encode("utf-8")
    return struct.pack(">i", checked_i32(len(raw))) + raw


def hstore_to_sql(
    entries: Mapping[str, str | None] | Iterable[tuple[str, str | None]],
) -> bytes:
    """Encode an ``HSTORE`` from a mapping or key/value pairs; ``None`` is NULL."""
    pairs = entries.items() if isinstance(entries, Mapping) else entries
    parts = []
    for key, value in pairs:
        parts.append(_pascal_string(key))
        parts.append(struct.pack(">i", -1) if value is None else _pascal_string(value))
    count = checked_i32(len(parts) // 2)
    return struct.pack(">i", count) + b"".join(parts)


def hstore_from_sql(buf: bytes) -> dict[str, str | None]:
    """Decode an ``HSTORE`` into a dict, keeping the order of the entries."""
    reader = _Reader(buf)
    count = int(reader.unpack(">i"))
    if count < 0:
        raise DecodeError("invalid entry count")

    entries: dict[str, str | None] = {}
    for _ in range(count):
        key_len = int(reader.unpack(">i"))
        if key_len < 0:
            raise DecodeError("invalid key length")
        key = _utf8(reader.take(key_len))

        value_len = int(reader.unpack(">i"))
        entries[key] = None if value_len < 0 else _utf8(reader.take(value_len))

    reader.finish(_BUFFER_SIZE)
    return entries


@dataclass(frozen=True)
class Varbit:
    """A ``VARBIT`` or ``BIT`` value: a bit count and the bytes holding the bits."""

    length: int
    data: bytes

    def __len__(self) -> int:
        return self.length


def varbit_to_sql(length: int, data: Iterable[int] | bytes) -> bytes:
    """Encode a ``VARBIT`` or ``BIT`` of ``length`` bits packed in ``data``."""
    return struct.pack(">i", checked_i32(length)) + bytes(data)


def varbit_from_sql(buf: bytes) -> Varbit:
    """Decode a ``VARBIT`` or ``BIT``."""
    reader = _Reader(buf)
    length = int(reader.unpack(">i"))
    if length < 0:
        raise DecodeError("invalid varbit length: varbit < 0")
    if reader.remaining != (length + 7) // 8:
        raise DecodeError("invalid message length: varbit mismatch")
    return Varbit(length, reader.rest())


def timestamp_to_sql(value: int) -> bytes:
    """Encode a ``TIMESTAMP`` or ``TIMESTAMPTZ``.

    The value counts microseconds since midnight, January 1st, 2000.
    """
    return _pack(">q", value)


def timestamp_from_sql(buf: bytes) -> int:
    """Decode a ``TIMESTAMP`` or ``TIMESTAMPTZ`` as microseconds since 2000-01-01."""
    return int(_unpack_exact(buf, ">q", "invalid message length: timestamp not drained"))


def date_to_sql(value: int) -> bytes:
    """Encode a ``DATE`` given as days since January 1st, 2000."""
    return _pack(">i", value)


def date_from_sql(buf: bytes) -> int:
    """Decode a ``DATE`` as days since January 1st, 2000."""
    return int(_unpack_exact(buf, ">i", "invalid message length: date not drained"))


def time_to_sql(value: int) -> bytes:
    """Encode a ``TIME`` or ``TIMETZ`` given as microseconds since midnight."""
    return _pack(">q", value)


def time_from_sql(buf: bytes) -> int:
    """Decode a ``TIME`` or ``TIMETZ`` as microseconds since midnight."""
    return int(_unpack_exact(buf, ">q", "invalid message length: time not drained"))


def macaddr_to_sql(value: bytes) -> bytes:
    """Encode a ``MACADDR`` from its six bytes."""
    return _fixed(value, 6, "a MAC address")


def macaddr_from_sql(buf: bytes) -> bytes:
    """Decode a ``MACADDR`` into its six bytes."""
    raw = bytes(buf)
    if len(raw) != 6:
        raise DecodeError("invalid message length: macaddr length mismatch")
    return raw


def uuid_to_sql(value: bytes | uuid.UUID) -> bytes:
    """Encode a ``UUID`` from its sixteen bytes or a :class:`uuid.UUID`."""
    if isinstance(value, uuid.UUID):
        return value.bytes
    return _fixed(value, 16, "a UUID")


def uuid_from_sql(buf: bytes) -> bytes:
    """Decode a ``UUID`` into its sixteen bytes."""
    raw = bytes(buf)
    if len(raw) != 16:
        raise DecodeError("invalid message length: uuid size mismatch")
    return raw