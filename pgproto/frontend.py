"""Serialization of messages sent from the client to the server.

Each function returns the complete message as bytes, ready to be written to
the connection.
"""

from __future__ import annotations

import struct
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from .core import checked_i16, checked_i32, nullable

CANCEL_REQUEST_CODE = 80_877_102
SSL_REQUEST_CODE = 80_877_103
PROTOCOL_VERSION = 0x0003_0000  # protocol 3.0


class BindError(Exception):
    """Raised when a ``Bind`` message cannot be built."""


class ConversionError(BindError):
    """A parameter value could not be converted by its serializer."""


class SerializationError(BindError, ValueError):
    """The message could not be encoded (embedded null, value too large...)."""


def _frame(body: bytes, tag: bytes = b"") -> bytes:
    return tag + struct.pack(">i", checked_i32(len(body) + 4)) + body


def _cstr(data: str | bytes) -> bytes:
    raw = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    if b"\0" in raw:
        raise ValueError("string contains embedded null")
    return raw + b"\0"


def _counted(parts: Iterable[bytes]) -> bytes:
    items = list(parts)
    return struct.pack(">h", checked_i16(len(items))) + b"".join(items)


def _byte(variant: int | str | bytes) -> bytes:
    if isinstance(variant, int):
        return bytes([variant])
    raw = variant.encode("ascii") if isinstance(variant, str) else bytes(variant)
    if len(raw) != 1:
        raise ValueError("variant must be a single byte")
    return raw


@contextmanager
def _serializing() -> Iterator[None]:
    try:
        yield
    except (ValueError, struct.error) as exc:
        raise SerializationError(str(exc)) from exc


def bind(
    portal: str,
    statement: str,
    formats: Iterable[int],
    values: Iterable[Any],
    serializer: Callable[[Any], bytes | None],
    result_formats: Iterable[int],
) -> bytes:
    """Build a ``Bind`` message.

    ``serializer`` turns each value into its encoded bytes, or ``None`` for
    SQL NULL. An exception it raises is wrapped in :class:`ConversionError`.
    """
    with _serializing():
        head = _cstr(portal) + _cstr(statement)
        head += _counted(struct.pack(">h", f) for f in formats)

    encoded = []
    for value in values:
        try:
            data = serializer(value)
        except Exception as exc:
            raise ConversionError(str(exc)) from exc
        with _serializing():
            encoded.append(nullable(data))

    with _serializing():
        body = head + _counted(encoded)
        body += _counted(struct.pack(">h", f) for f in result_formats)
        return _frame(body, b"B")


def cancel_request(process_id: int, secret_key: int) -> bytes:
    """Build a ``CancelRequest`` message."""
    return _frame(struct.pack(">iii", CANCEL_REQUEST_CODE, process_id, secret_key))


def close(variant: int | str | bytes, name: str) -> bytes:
    """Build a ``Close`` message for a statement (``S``) or portal (``P``)."""
    return _frame(_byte(variant) + _cstr(name), b"C")


def copy_data(data: bytes) -> bytes:
    """Build a ``CopyData`` message carrying ``data``."""
    raw = bytes(data)
    length = len(raw) + 4
    if length > 0x7FFF_FFFF:
        raise ValueError("message length overflow")
    return b"d" + struct.pack(">i", length) + raw


def copy_done() -> bytes:
    """Build a ``CopyDone`` message."""
    return _frame(b"", b"c")


def copy_fail(message: str) -> bytes:
    """Build a ``CopyFail`` message with an error description."""
    return _frame(_cstr(message), b"f")


def describe(variant: int | str | bytes, name: str) -> bytes:
    """Build a ``Describe`` message for a statement (``S``) or portal (``P``)."""
    return _frame(_byte(variant) + _cstr(name), b"D")


def execute(portal: str, max_rows: int) -> bytes:
    """Build an ``Execute`` message; ``max_rows`` of 0 means no limit."""
    return _frame(_cstr(portal) + struct.pack(">i", max_rows), b"E")


def parse(name: str, query: str, param_types: Iterable[int]) -> bytes:
    """Build a ``Parse`` message with the given parameter type OIDs."""
    body = _cstr(name) + _cstr(query) + _counted(struct.pack(">I", oid) for oid in param_types)
    return _frame(body, b"P")


def password_message(password: bytes) -> bytes:
    """Build a ``PasswordMessage``."""
    return _frame(_cstr(password), b"p")


def query(text: str) -> bytes:
    """Build a simple ``Query`` message."""
    return _frame(_cstr(text), b"Q")


def sasl_initial_response(mechanism: str, data: bytes) -> bytes:
    """Build a ``SASLInitialResponse`` message."""
    raw = bytes(data)
    body = _cstr(mechanism) + struct.pack(">i", checked_i32(len(raw))) + raw
    return _frame(body, b"p")


def sasl_response(data: bytes) -> bytes:
    """Build a ``SASLResponse`` message."""
    return _frame(bytes(data), b"p")


def ssl_request() -> bytes:
    """Build an ``SSLRequest`` message."""
    return _frame(struct.pack(">i", SSL_REQUEST_CODE))


def startup_message(parameters: Mapping[str, str] | Iterable[tuple[str, str]]) -> bytes:
    """Build a ``StartupMessage`` from key/value pairs or a mapping."""
    pairs = parameters.items() if isinstance(parameters, Mapping) else parameters
    body = struct.pack(">i", PROTOCOL_VERSION)
    body += b"".join(_cstr(key) + _cstr(value) for key, value in pairs)
    return _frame(body + b"\0")


def sync() -> bytes:
    """Build a ``Sync`` message."""
    return _frame(b"", b"S")


def terminate() -> bytes:
    """Build a ``Terminate`` message."""
    return _frame(b"", b"X")