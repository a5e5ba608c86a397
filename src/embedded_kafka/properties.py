"""Reader for the Java ``.properties`` text format.

Follows ``java.util.Properties.load``:

- lines end only at ``\\n``, ``\\r`` or ``\\r\\n``
- a logical line may span several physical lines; a line ending in an odd
  number of backslashes continues on the next one, whose leading whitespace
  is dropped
- lines whose first non-blank character is ``#`` or ``!`` are comments
- the key ends at the first unescaped ``=``, ``:`` or whitespace; whitespace
  and at most one ``=``/``:`` separate it from the value
- ``\\t``, ``\\n``, ``\\r``, ``\\f`` and ``\\uXXXX`` are escapes; any other
  escaped character stands for itself
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from typing import TextIO

_WHITESPACE = " \t\f"
_SEPARATORS = "=:"
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class PropertiesFormatError(ValueError):
    """Raised when a properties line cannot be decoded."""


def _ends_with_continuation(line: str) -> bool:
    backslashes = len(line) - len(line.rstrip("\\"))
    return backslashes % 2 == 1


def _logical_lines(text: str) -> Iterator[str]:
    pending: list[str] = []
    for raw in _LINE_BREAK.split(text):
        line = raw.lstrip(_WHITESPACE)
        if not pending and (not line or line[0] in "#!"):
            continue
        if _ends_with_continuation(line):
            pending.append(line[:-1])
            continue
        pending.append(line)
        yield "".join(pending)
        pending.clear()
    if pending:
        yield "".join(pending)


def _unescape(text: str, line: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch != "\\" or i + 1 >= len(text):
            out.append(ch)
            i += 1
            continue
        nxt = text[i + 1]
        if nxt == "u":
            digits = text[i + 2 : i + 6]
            if len(digits) != 4 or any(c not in "0123456789abcdefABCDEF" for c in digits):
                msg = f"Malformed \\uxxxx encoding in line: {line!r}"
                raise PropertiesFormatError(msg)
            out.append(chr(int(digits, 16)))
            i += 6
            continue
        out.append(_ESCAPES.get(nxt, nxt))
        i += 2
    return "".join(out)


def _split_key_value(line: str) -> tuple[str, str]:
    key_end = len(line)
    escaped = False
    for i, ch in enumerate(line):
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch in _SEPARATORS or ch in _WHITESPACE:
            key_end = i
            break
    rest = line[key_end:].lstrip(_WHITESPACE)
    if rest and rest[0] in _SEPARATORS:
        rest = rest[1:].lstrip(_WHITESPACE)
    return line[:key_end], rest


def parse_properties(text: str) -> dict[str, str]:
    """Parse properties text; later keys overwrite earlier ones."""
    result: dict[str, str] = {}
    for line in _logical_lines(text):
        raw_key, raw_value = _split_key_value(line)
        result[_unescape(raw_key, line)] = _unescape(raw_value, line)
    return result


def load_properties(stream: TextIO) -> dict[str, str]:
    """Parse properties from an open text stream."""
    return parse_properties(stream.read())
