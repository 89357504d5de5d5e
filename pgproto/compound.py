"""Binary encoding of compound values: arrays, ranges, geometry and network addresses.

Every ``*_to_sql`` function returns the encoded value as bytes. Every
``*_from_sql`` function decodes a value received from the server and raises
:class:`~pgproto.core.DecodeError` when the buffer is malformed.
"""

from __future__ import annotations

import enum
import ipaddress
import struct
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Union

from .core import DecodeError, checked_i32, nullable
from .scalars import _Reader

RANGE_UPPER_UNBOUNDED = 0b0001_0000
RANGE_LOWER_UNBOUNDED = 0b0000_1000
RANGE_UPPER_INCLUSIVE = 0b0000_0100
RANGE_LOWER_INCLUSIVE = 0b0000_0010
RANGE_EMPTY = 0b0000_0001

PGSQL_AF_INET = 2
PGSQL_AF_INET6 = 3

_I32_MIN = -0x8000_0000
_I32_MAX = 0x7FFF_FFFF

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass(frozen=True)
class ArrayDimension:
    """One dimension of an array: its length and the index of its first element."""

    length: int
    lower_bound: int


@dataclass(frozen=True)
class Array:
    """A decoded array header with lazy access to its dimensions and values."""

    has_nulls: bool
    element_type: int
    ndim: int
    count: int
    data: bytes

    def dimensions(self) -> Iterator[ArrayDimension]:
        """Yield the dimensions of the array."""
        reader = _Reader(self.data[: self.ndim * 8])
        while reader.remaining:
            length = int(reader.unpack(">i"))
            lower_bound = int(reader.unpack(">i"))
            yield ArrayDimension(length, lower_bound)

    def values(self) -> Iterator[bytes | None]:
        """Yield the encoded elements in row-major order; ``None`` is NULL."""
        reader = _Reader(self.data[self.ndim * 8 :])
        for _ in range(self.count):
            length = int(reader.unpack(">i"))
            if length < 0:
                yield None
                continue
            if reader.remaining < length:
                raise DecodeError("invalid value length")
            yield reader.take(length)
        reader.finish("invalid message length: arrayvalue not drained")


def array_to_sql(
    dimensions: Iterable[ArrayDimension],
    element_type: int,
    elements: Iterable[Any],
    serializer: Callable[[Any], bytes | None],
) -> bytes:
    """Encode an array.

    ``serializer`` turns each element into its encoded bytes, or ``None`` for
    a NULL element.
    """
    dims = b"".join(struct.pack(">ii", d.length, d.lower_bound) for d in dimensions)
    ndim = checked_i32(len(dims) // 8)

    has_nulls = False
    encoded = []
    for element in elements:
        data = serializer(element)
        if data is None:
            has_nulls = True
        encoded.append(nullable(data))

    header = struct.pack(">iiI", ndim, int(has_nulls), element_type)
    return header + dims + b"".join(encoded)


def array_from_sql(buf: bytes) -> Array:
    """Decode an array header; elements are read through :meth:`Array.values`."""
    reader = _Reader(buf)
    ndim = int(reader.unpack(">i"))
    if ndim < 0:
        raise DecodeError("invalid dimension count")
    has_nulls = int(reader.unpack(">i")) != 0
    element_type = int(reader.unpack(">I"))
    data = reader.rest()

    dims = _Reader(data)
    count = 1
    for _ in range(ndim):
        length = int(dims.unpack(">i"))
        if length < 0:
            raise DecodeError("invalid dimension size")
        dims.unpack(">i")
        count *= length
        if count > _I32_MAX:
            raise DecodeError("too many array elements")

    if ndim == 0:
        count = 0

    return Array(has_nulls, element_type, ndim, count, data)


class BoundKind(enum.Enum):
    """How one side of a range is bounded."""

    INCLUSIVE = "inclusive"
    EXCLUSIVE = "exclusive"
    UNBOUNDED = "unbounded"


@dataclass(frozen=True)
class RangeBound:
    """One side of a range; ``value`` holds the encoded bound, ``None`` for NULL."""

    kind: BoundKind
    value: bytes | None = None

    @classmethod
    def inclusive(cls, value: bytes | None) -> RangeBound:
        return cls(BoundKind.INCLUSIVE, value)

    @classmethod
    def exclusive(cls, value: bytes | None) -> RangeBound:
        return cls(BoundKind.EXCLUSIVE, value)

    @classmethod
    def unbounded(cls) -> RangeBound:
        return cls(BoundKind.UNBOUNDED)


@dataclass(frozen=True)
class Range:
    """A range value; with no bounds at all it is the empty range."""

    lower: RangeBound | None = None
    upper: RangeBound | None = None

    @property
    def is_empty(self) -> bool:
        return self.lower is None and self.upper is None


def empty_range_to_sql() -> bytes:
    """Encode the empty range."""
    return bytes([RANGE_EMPTY])


def _bound_to_sql(bound: RangeBound, unbounded: int, inclusive: int) -> tuple[int, bytes]:
    if bound.kind is BoundKind.UNBOUNDED:
        return unbounded, b""
    tag = inclusive if bound.kind is BoundKind.INCLUSIVE else 0
    return tag, nullable(bound.value)


def range_to_sql(lower: RangeBound, upper: RangeBound) -> bytes:
    """Encode a nonempty range from its two bounds."""
    lower_tag, lower_data = _bound_to_sql(lower, RANGE_LOWER_UNBOUNDED, RANGE_LOWER_INCLUSIVE)
    upper_tag, upper_data = _bound_to_sql(upper, RANGE_UPPER_UNBOUNDED, RANGE_UPPER_INCLUSIVE)
    return bytes([lower_tag | upper_tag]) + lower_data + upper_data


def _read_bound(reader: _Reader, tag: int, unbounded: int, inclusive: int) -> RangeBound:
    if tag & unbounded:
        return RangeBound.unbounded()
    length = int(reader.unpack(">i"))
    value = None
    if length >= 0:
        if reader.remaining < length:
            raise DecodeError("invalid message size")
        value = reader.take(length)
    kind = BoundKind.INCLUSIVE if tag & inclusive else BoundKind.EXCLUSIVE
    return RangeBound(kind, value)


def range_from_sql(buf: bytes) -> Range:
    """Decode a range value."""
    reader = _Reader(buf)
    tag = int(reader.unpack(">B"))

    if tag == RANGE_EMPTY:
        reader.finish("invalid message size")
        return Range()

    lower = _read_bound(reader, tag, RANGE_LOWER_UNBOUNDED, RANGE_LOWER_INCLUSIVE)
    upper = _read_bound(reader, tag, RANGE_UPPER_UNBOUNDED, RANGE_UPPER_INCLUSIVE)
    reader.finish("invalid message size")
    return Range(lower, upper)


@dataclass(frozen=True)
class Point:
    """A ``POINT``."""

    x: float
    y: float

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y


@dataclass(frozen=True)
class Box:
    """A ``BOX`` given by two opposite corners."""

    upper_right: Point
    lower_left: Point


def point_to_sql(x: float, y: float) -> bytes:
    """Encode a ``POINT``."""
    return struct.pack(">dd", x, y)


def point_from_sql(buf: bytes) -> Point:
    """Decode a ``POINT``."""
    reader = _Reader(buf)
    x, y = float(reader.unpack(">d")), float(reader.unpack(">d"))
    reader.finish("invalid buffer size")
    return Point(x, y)


def box_to_sql(x1: float, y1: float, x2: float, y2: float) -> bytes:
    """Encode a ``BOX``."""
    return struct.pack(">dddd", x1, y1, x2, y2)


def box_from_sql(buf: bytes) -> Box:
    """Decode a ``BOX``."""
    reader = _Reader(buf)
    x1, y1, x2, y2 = (float(reader.unpack(">d")) for _ in range(4))
    reader.finish("invalid buffer size")
    return Box(Point(x1, y1), Point(x2, y2))


@dataclass(frozen=True)
class Path:
    """A ``PATH``: open or closed, with lazily decoded points."""

    closed: bool
    count: int
    data: bytes

    def points(self) -> Iterator[Point]:
        """Yield the points of the path."""
        reader = _Reader(self.data)
        remaining = self.count
        while remaining != 0:
            remaining -= 1
            x, y = float(reader.unpack(">d")), float(reader.unpack(">d"))
            yield Point(x, y)
        reader.finish("invalid message length: path points not drained")


def path_to_sql(closed: bool, points: Iterable[tuple[float, float] | Point]) -> bytes:
    """Encode a ``PATH`` from ``(x, y)`` pairs or points."""
    encoded = [struct.pack(">dd", x, y) for x, y in points]
    count = checked_i32(len(encoded))
    return bytes([1 if closed else 0]) + struct.pack(">i", count) + b"".join(encoded)


def path_from_sql(buf: bytes) -> Path:
    """Decode a ``PATH``; points are read through :meth:`Path.points`."""
    reader = _Reader(buf)
    closed = int(reader.unpack(">B")) != 0
    count = int(reader.unpack(">i"))
    return Path(closed, count, reader.rest())


@dataclass(frozen=True)
class Inet:
    """An ``INET`` network address with its netmask."""

    addr: IPAddress
    netmask: int


def inet_to_sql(addr: str | IPAddress, netmask: int) -> bytes:
    """Encode an ``INET``."""
    ip = ipaddress.ip_address(addr)
    family = PGSQL_AF_INET if ip.version == 4 else PGSQL_AF_INET6
    if not 0 <= netmask <= 0xFF:
        raise ValueError("netmask must fit in one byte")
    raw = ip.packed
    return bytes([family, netmask, 0, len(raw)]) + raw


def inet_from_sql(buf: bytes) -> Inet:
    """Decode an ``INET``."""
    reader = _Reader(buf)
    family = int(reader.unpack(">B"))
    netmask = int(reader.unpack(">B"))
    reader.unpack(">B")  # is_cidr
    length = int(reader.unpack(">B"))

    addr: IPAddress
    if family == PGSQL_AF_INET:
        if netmask > 32:
            raise DecodeError("invalid IPv4 netmask")
        if length != 4:
            raise DecodeError("invalid IPv4 address length")
        addr = ipaddress.IPv4Address(reader.take(4))
    elif family == PGSQL_AF_INET6:
        if netmask > 128:
            raise DecodeError("invalid IPv6 netmask")
        if length != 16:
            raise DecodeError("invalid IPv6 address length")
        addr = ipaddress.IPv6Address(reader.take(16))
    else:
        raise DecodeError("invalid IP family")

    reader.finish("invalid buffer size")
    return Inet(addr, netmask)