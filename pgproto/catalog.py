"""Readers for the server's catalog sources: error codes and built-in types.

``parse_errcodes`` reads the ``errcodes.txt`` table of SQLSTATE codes.
``parse_types`` reads ``pg_type.dat`` and ``pg_range.dat`` and describes
every built-in type that can be known ahead of time.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

_RANGE_VECTOR_RE = re.compile(r"(range|vector)\Z")
_ARRAY_RE = re.compile(r"^_(.*)")

_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
}

_WHITESPACE = "\n \t"


class DatParseError(ValueError):
    """Raised when a catalog ``.dat`` file is malformed."""


def _ascii_upper(text: str) -> str:
    return "".join(ch.upper() if "a" <= ch <= "z" else ch for ch in text)


def _html_escape(text: str) -> str:
    return "".join(_HTML_ESCAPES.get(ch, ch) for ch in text)


def snake_to_camel(text: str) -> str:
    """Turn ``snake_case`` into ``CamelCase``, dropping the underscores."""
    words = text.split("_")
    return "".join(_ascii_upper(word[:1]) + word[1:] for word in words)


class DatParser:
    """Parser for the Perl-like array-of-hashes format of catalog ``.dat`` files."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0

    def _peek_char(self) -> str | None:
        return self._text[self._pos] if self._pos < len(self._text) else None

    def _skip_ws(self) -> None:
        while True:
            ch = self._peek_char()
            if ch == "#":
                newline = self._text.find("\n", self._pos)
                self._pos = len(self._text) if newline < 0 else newline + 1
            elif ch is not None and ch in _WHITESPACE:
                self._pos += 1
            else:
                return

    def _eat(self, target: str) -> None:
        self._skip_ws()
        ch = self._peek_char()
        if ch is None:
            raise DatParseError(f"expected {target} but got eof")
        if ch != target:
            raise DatParseError(f"expected {target} but got {ch}")
        self._pos += 1

    def _try_eat(self, target: str) -> bool:
        self._skip_ws()
        if self._peek_char() == target:
            self._pos += 1
            return True
        return False

    def _eof(self) -> None:
        self._skip_ws()
        ch = self._peek_char()
        if ch is not None:
            raise DatParseError(f"expected eof but got {ch}")

    def _parse_ident(self) -> str:
        self._skip_ws()
        start = self._pos
        while (ch := self._peek_char()) is not None and ("a" <= ch <= "z" or ch == "_"):
            self._pos += 1
        return self._text[start:self._pos]

    def _parse_string(self) -> str:
        self._skip_ws()
        self._eat("'")
        chars = []
        while True:
            ch = self._peek_char()
            if ch is None:
                raise DatParseError("unexpected eof")
            self._pos += 1
            if ch == "'":
                return "".join(chars)
            if ch == "\\":
                escaped = self._peek_char()
                if escaped is None:
                    raise DatParseError("unexpected eof")
                self._pos += 1
                chars.append(escaped)
            else:
                chars.append(ch)

    def _parse_object(self) -> dict[str, str]:
        obj: dict[str, str] = {}
        self._eat("{")
        while True:
            key = self._parse_ident()
            self._eat("=")
            self._eat(">")
            obj[key] = self._parse_string()
            if not self._try_eat(","):
                break
        self._eat("}")
        self._eat(",")
        return obj

    def parse_array(self) -> list[dict[str, str]]:
        """Parse the whole input as an array of string-valued objects."""
        self._eat("[")
        objects = []
        while not self._try_eat("]"):
            objects.append(self._parse_object())
        self._eof()
        return objects


def parse_errcodes(text: str) -> dict[str, list[str]]:
    """Map each SQLSTATE code to its condition names, in file order.

    Comment lines, ``Section`` headers and blank lines are skipped; the
    ``ERRCODE_`` prefix is removed from names.
    """
    codes: dict[str, list[str]] = {}
    for line in text.splitlines():
        if line.startswith("#") or line.startswith("Section") or not line.strip():
            continue
        fields = line.split()
        if len(fields) < 3:
            raise ValueError(f"malformed error code line: {line!r}")
        code, _, name = fields[:3]
        codes.setdefault(code, []).append(name.replace("ERRCODE_", ""))
    return codes


@dataclass(frozen=True)
class CatalogType:
    """A built-in type as described by the catalog.

    ``kind`` is the type category letter; ``element`` is the OID of the
    element type for arrays and ranges and 0 otherwise. ``doc`` is
    HTML-escaped.
    """

    name: str
    variant: str
    ident: str
    kind: str
    element: int
    doc: str


def _field(obj: Mapping[str, str], key: str) -> str:
    try:
        return obj[key]
    except KeyError:
        raise ValueError(f"catalog entry is missing {key!r}") from None


def _oid(text: str) -> int:
    if not text.isascii() or not text.isdigit():
        raise ValueError(f"invalid OID {text!r}")
    value = int(text)
    if value > 0xFFFF_FFFF:
        raise ValueError(f"invalid OID {text!r}")
    return value


def _lookup(table: Mapping, key, what: str):
    try:
        return table[key]
    except KeyError:
        raise ValueError(f"unknown {what} {key!r}") from None


def parse_types(type_dat: str, range_dat: str) -> dict[int, CatalogType]:
    """Describe the built-in types, keyed and ordered by OID.

    Composite and enum types are left out, since their fields and variants
    are only known at run time. Each type declaring an ``array_type_oid``
    also yields its array type.
    """
    raw_types = DatParser(type_dat).parse_array()
    raw_ranges = DatParser(range_dat).parse_array()

    oids_by_name = {_field(m, "typname"): _oid(_field(m, "oid")) for m in raw_types}
    range_elements = {
        _lookup(oids_by_name, _field(m, "rngtypid"), "type"): _lookup(
            oids_by_name, _field(m, "rngsubtype"), "type"
        )
        for m in raw_ranges
    }

    types: dict[int, CatalogType] = {}
    for raw in raw_types:
        oid = _oid(_field(raw, "oid"))
        name = _field(raw, "typname")

        ident = _RANGE_VECTOR_RE.sub(r"_\1", name, count=1)
        ident = _ARRAY_RE.sub(r"\1_array", ident, count=1)
        variant = snake_to_camel(ident)
        ident = _ascii_upper(ident)

        kind = _field(raw, "typcategory")
        if kind in ("C", "E"):
            continue

        if kind == "R":
            element = _lookup(range_elements, oid, "range type")
        elif kind == "A":
            element = _lookup(oids_by_name, _field(raw, "typelem"), "type")
        else:
            element = 0

        doc_name = _ascii_upper(_ARRAY_RE.sub(r"\1[]", name, count=1))
        doc = doc_name
        if "descr" in raw:
            doc += f" - {raw['descr']}"

        if "array_type_oid" in raw:
            types[_oid(raw["array_type_oid"])] = CatalogType(
                name=f"_{name}",
                variant=f"{variant}Array",
                ident=f"{ident}_ARRAY",
                kind="A",
                element=oid,
                doc=f"{doc_name}&#91;&#93;",
            )

        types[oid] = CatalogType(
            name=name,
            variant=variant,
            ident=ident,
            kind=kind,
            element=element,
            doc=_html_escape(doc),
        )

    return dict(sorted(types.items()))