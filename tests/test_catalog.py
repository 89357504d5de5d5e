import html

import pytest

from pgproto.catalog import (
    CatalogType,
    DatParseError,
    DatParser,
    parse_errcodes,
    parse_types,
    snake_to_camel,
)

TYPE_DAT = """
# built-in types
[

{ oid => '16', array_type_oid => '1000',
  descr => 'boolean, \\'true\\'/\\'false\\'',
  typname => 'bool', typcategory => 'B' },
{ oid => '23', array_type_oid => '1007',
  descr => 'a < b & c',
  typname => 'int4', typcategory => 'N' },
{ oid => '3904', array_type_oid => '3905', descr => 'range of integers',
  typname => 'int4range', typcategory => 'R' },
{ oid => '83', typname => 'pg_class', typcategory => 'C' },
{ oid => '2249', typname => 'record', typcategory => 'P' },

]
"""

RANGE_DAT = """
[
{ rngtypid => 'int4range', rngsubtype => 'int4' },
]
"""


@pytest.mark.parametrize("text", ["foo_bar", "int4_range", "_bool", "a__b", "plain"])
def test_snake_to_camel_drops_underscores(text):
    result = snake_to_camel(text)
    assert "_" not in result
    assert result.lower() == text.replace("_", "").lower()


def test_snake_to_camel_capitalizes_words():
    assert snake_to_camel("foo_bar") == "FooBar"


def test_dat_parser_reads_objects_with_comments_and_escapes():
    text = "[\n# comment\n{ oid => '16', descr => 'it\\'s' },\n\t{ x => 'y' },\n]\n"
    assert DatParser(text).parse_array() == [{"oid": "16", "descr": "it's"}, {"x": "y"}]


def test_dat_parser_empty_array():
    assert DatParser("[ ]").parse_array() == []


@pytest.mark.parametrize(
    "text",
    [
        "{ a => 'b' },",
        "[ { a => 'b' }, ] extra",
        "[ { a => 'b },",
        "[ { a => 'b' } ]",
        "[ { a -> 'b' }, ]",
        "[ { a => 'b', }, ]",
    ],
)
def test_dat_parser_rejects_malformed_input(text):
    with pytest.raises(DatParseError):
        DatParser(text).parse_array()


def test_parse_errcodes_groups_names_by_code_in_order():
    text = (
        "# comment line\n"
        "Section: Class 00 - Successful Completion\n"
        "\n"
        "00000    S    ERRCODE_SUCCESSFUL_COMPLETION    successful_completion\n"
        "01000    W    ERRCODE_WARNING    warning\n"
        "01000    W    ERRCODE_WARNING_ALIAS\n"
    )
    codes = parse_errcodes(text)
    assert list(codes) == ["00000", "01000"]
    assert codes["00000"] == ["SUCCESSFUL_COMPLETION"]
    assert codes["01000"] == ["WARNING", "WARNING_ALIAS"]


def test_parse_errcodes_rejects_short_line():
    with pytest.raises(ValueError):
        parse_errcodes("00000 S\n")


def test_parse_types_is_ordered_by_oid():
    types = parse_types(TYPE_DAT, RANGE_DAT)
    assert list(types) == sorted(types)
    assert set(types) == {16, 23, 1000, 1007, 2249, 3904, 3905}


def test_parse_types_skips_composites():
    types = parse_types(TYPE_DAT, RANGE_DAT)
    assert 83 not in types
    assert all(t.kind not in ("C", "E") for t in types.values())


def test_parse_types_array_entries():
    types = parse_types(TYPE_DAT, RANGE_DAT)
    array = types[1000]
    assert array.name == "_bool"
    assert array.kind == "A"
    assert array.element == 16
    assert array.variant == types[16].variant + "Array"
    assert array.ident == types[16].ident + "_ARRAY"
    assert array.doc == "BOOL&#91;&#93;"


def test_parse_types_range_element_and_names():
    types = parse_types(TYPE_DAT, RANGE_DAT)
    rng = types[3904]
    assert rng.kind == "R"
    assert rng.element == 23
    assert rng.name == "int4range"
    assert rng.variant == snake_to_camel("int4_range")
    assert rng.ident == rng.ident.upper()
    assert types[3905].element == 3904


def test_parse_types_simple_and_pseudo_have_no_element():
    types = parse_types(TYPE_DAT, RANGE_DAT)
    assert types[23].element == 0
    assert types[2249].element == 0
    assert types[2249].kind == "P"


def test_parse_types_escapes_documentation():
    types = parse_types(TYPE_DAT, RANGE_DAT)
    doc = types[23].doc
    assert "<" not in doc
    assert html.unescape(doc) == "INT4 - a < b & c"
    assert html.unescape(types[16].doc) == "BOOL - boolean, 'true'/'false'"
    assert "'" not in types[16].doc


def test_parse_types_returns_catalog_types():
    types = parse_types(TYPE_DAT, RANGE_DAT)
    assert types[16] == CatalogType(
        name="bool",
        variant=types[16].variant,
        ident=types[16].ident,
        kind="B",
        element=0,
        doc=types[16].doc,
    )


def test_parse_types_unknown_range_subtype():
    bad_ranges = "[ { rngtypid => 'int4range', rngsubtype => 'nope' }, ]"
    with pytest.raises(ValueError):
        parse_types(TYPE_DAT, bad_ranges)


def test_parse_types_range_without_range_entry():
    with pytest.raises(ValueError):
        parse_types(TYPE_DAT, "[ ]")


def test_parse_types_missing_oid():
    with pytest.raises(ValueError):
        parse_types("[ { typname => 'x', typcategory => 'N' }, ]", "[ ]")