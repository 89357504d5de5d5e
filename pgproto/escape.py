"""Escaping of SQL literals and identifiers.

Prefer parameterized queries; never escape values passed as parameters.
"""

from __future__ import annotations


def _escape(text: str, as_ident: bool) -> str:
    quote = '"' if as_ident else "'"
    has_backslash = "\\" in text

    escaped = text.replace(quote, quote * 2)
    if not as_ident:
        escaped = escaped.replace("\\", "\\\\")

    # A literal with backslashes uses the E'' syntax so it is read the same
    # whatever standard_conforming_strings is; the leading space guards
    # against being pasted directly after an identifier.
    prefix = " E" if not as_ident and has_backslash else ""
    return f"{prefix}{quote}{escaped}{quote}"


def escape_literal(text: str) -> str:
    """Escape a string literal and surround it with single quotes."""
    return _escape(text, as_ident=False)


def escape_identifier(text: str) -> str:
    """Escape an identifier and surround it with double quotes."""
    return _escape(text, as_ident=True)