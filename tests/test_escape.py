import pytest

from pgproto.escape import escape_identifier, escape_literal


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("foo", '"foo"'),
        ("f\\oo", '"f\\oo"'),
        ("f'oo", '"f\'oo"'),
        ('f"oo', '"f""oo"'),
    ],
)
def test_escape_identifier(raw, expected):
    assert escape_identifier(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("foo", "'foo'"),
        ("f\\oo", " E'f\\\\oo'"),
        ("f'oo", "'f''oo'"),
        ('f"oo', "'f\"oo'"),
    ],
)
def test_escape_literal(raw, expected):
    assert escape_literal(raw) == expected


def test_escape_literal_quote_and_backslash():
    assert escape_literal("a'\\b") == " E'a''\\\\b'"