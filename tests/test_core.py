import struct

import pytest

from pgproto.core import I16_MAX, I32_MAX, checked_i16, checked_i32, nullable


def test_checked_i16_accepts_limit():
    assert checked_i16(I16_MAX) == I16_MAX
    assert checked_i16(0) == 0


def test_checked_i16_rejects_overflow():
    with pytest.raises(ValueError, match="value too large to transmit"):
        checked_i16(I16_MAX + 1)


def test_checked_i32_accepts_limit():
    assert checked_i32(I32_MAX) == I32_MAX


def test_checked_i32_rejects_overflow():
    with pytest.raises(ValueError, match="value too large to transmit"):
        checked_i32(I32_MAX + 1)


def test_nullable_none_is_minus_one():
    assert nullable(None) == b"\xff\xff\xff\xff"


def test_nullable_prefixes_length():
    assert nullable(b"abc") == b"\x00\x00\x00\x03abc"


def test_nullable_round_trip_length():
    data = bytes(range(200))
    framed = nullable(data)
    (length,) = struct.unpack(">i", framed[:4])
    assert length == len(data)
    assert framed[4:] == data


def test_nullable_empty_value():
    assert nullable(b"") == b"\x00\x00\x00\x00"