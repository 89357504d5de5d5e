import pytest

from pgproto.auth import md5_hash


def test_md5():
    username = b"md5_user"
    password = b"password"
    salt = bytes([0x2A, 0x3D, 0x8F, 0xE0])
    assert md5_hash(username, password, salt) == "md562af4dd09bbb41884907a838a3233294"


def test_md5_result_shape():
    password = b"password"
    result = md5_hash(b"someone", password, b"\x00\x01\x02\x03")
    assert result.startswith("md5")
    assert len(result) == 35
    assert all(c in "0123456789abcdef" for c in result[3:])


def test_md5_depends_on_salt():
    password = b"password"
    first = md5_hash(b"someone", password, b"\x00\x00\x00\x00")
    second = md5_hash(b"someone", password, b"\x00\x00\x00\x01")
    assert first != second
    assert first.startswith("md5") and second.startswith("md5")


def test_md5_rejects_bad_salt():
    password = b"password"
    with pytest.raises(ValueError):
        md5_hash(b"someone", password, b"\x00\x01")