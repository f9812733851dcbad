"""Canonical text serialization of Quire Data values.

``parse(serialize(doc)) == doc`` holds for every document whose docstring
lines contain no line breaks.  Properties are written one per line, so no
separating commas are emitted.
"""

from __future__ import annotations

import math
import re

from .values import (
    IDENTIFIER_RE,
    Array,
    Boolean,
    Date,
    DateTime,
    Docstring,
    Document,
    Float,
    Integer,
    Null,
    Object,
    String,
    Value,
)

_KEYWORDS = frozenset({"null", "true", "false"})
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
_QUOTE_HASHES_RE = re.compile(r'"(#*)')
_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def serialize(obj: Value | Document, indent: str = "  ") -> str:
    """Serialize a value or document to Quire Data text."""
    if isinstance(obj, Document):
        lines = _docstring_lines(obj.docstring, "")
        lines.append(_format(obj.root, indent, 0))
        return "\n".join(lines) + "\n"
    return _format(obj, indent, 0)


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------


def _format(value: Value, indent: str, level: int) -> str:
    if isinstance(value, Null):
        return "null"
    if isinstance(value, Boolean):
        return "true" if value.value else "false"
    if isinstance(value, Integer):
        return str(value.value)
    if isinstance(value, Float):
        return format_float(value.value)
    if isinstance(value, String):
        return format_string(value.value)
    if isinstance(value, Date):
        return value.iso
    if isinstance(value, DateTime):
        return format_datetime(value)
    if isinstance(value, Array):
        if not value.items:
            return "[]"
        inner = indent * (level + 1)
        parts = [f"{inner}{_format(item, indent, level + 1)}," for item in value.items]
        return "[\n" + "\n".join(parts) + "\n" + indent * level + "]"
    if isinstance(value, Object):
        if not value.properties:
            return "{}"
        inner = indent * (level + 1)
        parts: list[str] = []
        for prop in value.properties:
            parts.extend(_docstring_lines(prop.docstring, inner))
            key = format_key(prop.identifier)
            parts.append(f"{inner}{key}: {_format(prop.value, indent, level + 1)}")
        return "{\n" + "\n".join(parts) + "\n" + indent * level + "}"
    raise TypeError(f"cannot serialize {type(value).__name__}")


def _docstring_lines(docstring: Docstring | None, prefix: str) -> list[str]:
    if docstring is None:
        return []
    out = []
    for line in docstring.text.split("\n"):
        out.append(f"{prefix}/// {line}" if line else f"{prefix}///")
    return out


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


def format_key(identifier: str) -> str:
    if IDENTIFIER_RE.fullmatch(identifier) and identifier not in _KEYWORDS:
        return identifier
    return _escaped(identifier)


def format_float(number: float) -> str:
    if not math.isfinite(number):
        raise ValueError(f"cannot serialize non-finite float {number!r}")
    text = repr(number)
    if "." not in text and "e" not in text:
        text += ".0"
    return text


def format_datetime(value: DateTime) -> str:
    moment = value.value
    offset = moment.utcoffset()
    assert offset is not None  # enforced by DateTime
    seconds = int(offset.total_seconds())
    if seconds % 60:
        raise ValueError(f"UTC offset {offset} has sub-minute precision")
    sign = "-" if seconds < 0 else "+"
    hours, minutes = divmod(abs(seconds) // 60, 60)
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if moment.microsecond:
        text += f".{moment.microsecond:06d}"
    return f"{text}{sign}{hours:02d}{minutes:02d}"


def format_string(text: str) -> str:
    """Pick a string style for *text*.

    Text with quotes or backslashes but no control characters is written as
    a ``#"..."#`` literal with enough ``#`` characters to be unambiguous.
    Everything else uses the escaped form.
    """
    if ('"' in text or "\\" in text) and not _CONTROL_RE.search(text):
        longest = max((len(m.group(1)) for m in _QUOTE_HASHES_RE.finditer(text)), default=0)
        hashes = "#" * (longest + 1)
        return f'{hashes}"{text}"{hashes}'
    return _escaped(text)


def _escaped(text: str) -> str:
    out = []
    for ch in text:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif _CONTROL_RE.match(ch):
            out.append(f"\\x{ord(ch):02x}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'
