"""Tokenizer for Quire Data documents.

Turns source text into a flat list of :class:`Token` objects.  Comments are
discarded; docstring lines (``///``) are kept as tokens so the parser can
attach them to values.  Four or more slashes start an ordinary comment.
Each token records whether a line break separated it from the previous
token, which the parser uses for newline-separated properties and same-line
trailing docstrings.
"""

from __future__ import annotations

import bisect
import datetime as dt
import math
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from quire.errors import LexError

from .dedent import dedent_block


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class TokenType(str, Enum):
    LBRACE = "'{'"
    RBRACE = "'}'"
    LBRACKET = "'['"
    RBRACKET = "']'"
    COLON = "':'"
    COMMA = "','"
    IDENTIFIER = "identifier"
    NULL = "null"
    TRUE = "true"
    FALSE = "false"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    DATE = "date"
    DATETIME = "datetime"
    DOCSTRING = "docstring"
    EOF = "end of input"


@dataclass(frozen=True, slots=True)
class Token:
    type: TokenType
    value: Any
    offset: int
    line: int
    column: int
    newline_before: bool = False


_PUNCTUATION = {
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ":": TokenType.COLON,
    ",": TokenType.COMMA,
}

_KEYWORDS = {
    "null": (TokenType.NULL, None),
    "true": (TokenType.TRUE, True),
    "false": (TokenType.FALSE, False),
}

_SIMPLE_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}

_IDENTIFIER_RE = re.compile(r"[A-Za-z][A-Za-z0-9_-]*")
_HEX_RE = re.compile(r"-?0[xX][0-9A-Fa-f]+")
_NUMBER_RE = re.compile(r"-?[0-9]+(\.[0-9]+)?([eE][+-]?[0-9]+)?")
_DATE_PREFIX_RE = re.compile(r"[0-9]{4}-")
_DATETIME_RE = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})"
    r"(?:T([0-9]{2}):([0-9]{2}):([0-9]{2})(?:\.([0-9]{1,6}))?(Z|[+-][0-9]{2}:?[0-9]{2}))?"
)
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


# ---------------------------------------------------------------------------
# Lexer
# ---------------------------------------------------------------------------


class Lexer:
    """Single-use tokenizer over one source text."""

    def __init__(self, text: str, source: str | Path | None = None) -> None:
        self.text = text
        self.source = source
        self.pos = 0
        self._line_starts = [0]
        for i, ch in enumerate(text):
            if ch == "\n":
                self._line_starts.append(i + 1)

    # -- Public API --------------------------------------------------------

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        newline = False
        while True:
            newline = self._skip_trivia() or newline
            if self.pos >= len(self.text):
                tokens.append(self._token(TokenType.EOF, None, self.pos, newline))
                return tokens
            tokens.append(self._next_token(newline))
            newline = False

    # -- Locations ---------------------------------------------------------

    def location(self, offset: int) -> tuple[int, int]:
        """1-based ``(line, column)`` for a character offset."""
        index = bisect.bisect_right(self._line_starts, offset) - 1
        return index + 1, offset - self._line_starts[index] + 1

    def _error(self, message: str, offset: int) -> LexError:
        line, column = self.location(offset)
        return LexError(message, line, column, offset, self.source)

    def _token(self, kind: TokenType, value: Any, offset: int, newline: bool) -> Token:
        line, column = self.location(offset)
        return Token(kind, value, offset, line, column, newline)

    # -- Whitespace and comments -------------------------------------------

    def _skip_trivia(self) -> bool:
        """Skip whitespace and comments; return whether a newline was crossed."""
        text = self.text
        newline = False
        while self.pos < len(text):
            ch = text[self.pos]
            if ch in " \t\r":
                self.pos += 1
            elif ch == "\n":
                newline = True
                self.pos += 1
            elif text.startswith("///", self.pos) and not text.startswith("////", self.pos):
                break
            elif text.startswith("//", self.pos):
                end = text.find("\n", self.pos)
                self.pos = len(text) if end == -1 else end
            elif text.startswith("/*", self.pos):
                # Block comments do not nest: the first "*/" closes.
                end = text.find("*/", self.pos + 2)
                if end == -1:
                    raise self._error("unterminated block comment", self.pos)
                if "\n" in text[self.pos:end]:
                    newline = True
                self.pos = end + 2
            else:
                break
        return newline

    # -- Dispatch ----------------------------------------------------------

    def _next_token(self, newline: bool) -> Token:
        text = self.text
        start = self.pos
        ch = text[start]

        if ch in _PUNCTUATION:
            self.pos += 1
            return self._token(_PUNCTUATION[ch], ch, start, newline)
        if text.startswith("///", start):
            return self._token(TokenType.DOCSTRING, self._read_docstring(), start, newline)
        if ch == '"':
            return self._token(TokenType.STRING, self._read_escaped(), start, newline)
        if ch == "#":
            return self._token(TokenType.STRING, self._read_literal(), start, newline)
        if ch == "d" and text[start + 1:start + 2] in ('"', "#"):
            self.pos += 1
            if text[self.pos] == '"':
                raw = self._read_escaped()
            else:
                raw = self._read_literal()
            return self._token(TokenType.STRING, dedent_block(raw), start, newline)
        if ch.isascii() and ch.isalpha():
            return self._read_word(newline)
        if ch in "0123456789-":
            if _DATE_PREFIX_RE.match(text, start):
                return self._read_date(newline)
            return self._read_number(newline)
        raise self._error(f"unexpected character {ch!r}", start)

    # -- Docstrings --------------------------------------------------------

    def _read_docstring(self) -> str:
        begin = self.pos + 3
        end = self.text.find("\n", begin)
        if end == -1:
            end = len(self.text)
        line = self.text[begin:end].rstrip("\r")
        if line.startswith(" "):
            line = line[1:]
        self.pos = end
        return line

    # -- Strings -----------------------------------------------------------

    def _read_escaped(self) -> str:
        """Read a double-quoted string starting at the opening quote."""
        text = self.text
        start = self.pos
        i = start + 1
        buf: list[str] = []
        while True:
            if i >= len(text):
                raise self._error("unterminated string", start)
            ch = text[i]
            if ch == '"':
                self.pos = i + 1
                return "".join(buf)
            if ch != "\\":
                buf.append(ch)
                i += 1
                continue
            if i + 1 >= len(text):
                raise self._error("unterminated string", start)
            esc = text[i + 1]
            if esc in _SIMPLE_ESCAPES:
                buf.append(_SIMPLE_ESCAPES[esc])
                i += 2
            elif esc == "x":
                digits = text[i + 2:i + 4]
                if len(digits) != 2 or not set(digits) <= _HEX_DIGITS:
                    raise self._error(f"invalid escape sequence '\\x{digits}'", i)
                buf.append(chr(int(digits, 16)))
                i += 4
            elif esc == "u":
                code, i = self._read_unicode_escape(i)
                buf.append(chr(code))
            else:
                raise self._error(f"invalid escape sequence '\\{esc}'", i)

    def _read_unicode_escape(self, i: int) -> tuple[int, int]:
        text = self.text
        digits = text[i + 2:i + 6]
        if len(digits) != 4 or not set(digits) <= _HEX_DIGITS:
            raise self._error(f"invalid escape sequence '\\u{digits}'", i)
        code = int(digits, 16)
        i += 6
        if 0xD800 <= code < 0xDC00 and text.startswith("\\u", i):
            low_digits = text[i + 2:i + 6]
            if len(low_digits) == 4 and set(low_digits) <= _HEX_DIGITS:
                low = int(low_digits, 16)
                if 0xDC00 <= low < 0xE000:
                    code = 0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)
                    i += 6
        return code, i

    def _read_literal(self) -> str:
        """Read a ``#"..."#`` literal string starting at the first ``#``."""
        text = self.text
        start = self.pos
        i = start
        while i < len(text) and text[i] == "#":
            i += 1
        hashes = i - start
        if text[i:i + 1] != '"':
            raise self._error("expected '\"' after '#' delimiter", i)
        content_start = i + 1
        i = content_start
        while True:
            quote = text.find('"', i)
            if quote == -1:
                raise self._error("unterminated literal string", start)
            j = quote + 1
            while j < len(text) and text[j] == "#":
                j += 1
            closing = j - quote - 1
            if closing == hashes:
                self.pos = j
                return text[content_start:quote]
            if closing > hashes:
                raise self._error(
                    f"delimiter count mismatch: string opened with {hashes} '#' "
                    f"but closed with {closing}",
                    quote,
                )
            i = quote + 1

    # -- Words -------------------------------------------------------------

    def _read_word(self, newline: bool) -> Token:
        start = self.pos
        match = _IDENTIFIER_RE.match(self.text, start)
        assert match is not None  # guaranteed by the alpha check in dispatch
        word = match.group(0)
        self.pos = match.end()
        if word in _KEYWORDS:
            kind, value = _KEYWORDS[word]
            return self._token(kind, value, start, newline)
        return self._token(TokenType.IDENTIFIER, word, start, newline)

    # -- Numbers and dates -------------------------------------------------

    def _check_terminated(self, start: int, what: str) -> None:
        nxt = self.text[self.pos:self.pos + 1]
        if nxt and (nxt.isalnum() or nxt in "_-.:+#\""):
            raise self._error(f"invalid {what} {self.text[start:self.pos + 1]!r}", start)

    def _read_number(self, newline: bool) -> Token:
        text = self.text
        start = self.pos
        hex_match = _HEX_RE.match(text, start)
        if hex_match:
            self.pos = hex_match.end()
            self._check_terminated(start, "number")
            return self._token(TokenType.INTEGER, int(hex_match.group(0), 16), start, newline)
        match = _NUMBER_RE.match(text, start)
        if match is None:
            raise self._error(f"unexpected character {text[start]!r}", start)
        self.pos = match.end()
        self._check_terminated(start, "number")
        literal = match.group(0)
        if match.group(1) or match.group(2):
            value = float(literal)
            if not math.isfinite(value):
                raise self._error(f"number {literal!r} is out of range", start)
            return self._token(TokenType.FLOAT, value, start, newline)
        return self._token(TokenType.INTEGER, int(literal), start, newline)

    def _read_date(self, newline: bool) -> Token:
        start = self.pos
        match = _DATETIME_RE.match(self.text, start)
        if match is None:
            end = start
            while end < len(self.text) and not self.text[end].isspace() and self.text[end] not in ",]}":
                end += 1
            raise self._error(f"invalid date {self.text[start:end]!r}", start)
        self.pos = match.end()
        self._check_terminated(start, "date/datetime")
        year, month, day, hour, minute, second, fraction, offset = match.groups()
        try:
            if hour is None:
                value = dt.date(int(year), int(month), int(day))
                return self._token(TokenType.DATE, value, start, newline)
            micro = int(fraction.ljust(6, "0")) if fraction else 0
            value = dt.datetime(
                int(year), int(month), int(day),
                int(hour), int(minute), int(second), micro,
                tzinfo=_parse_offset(offset),
            )
        except ValueError as exc:
            raise self._error(f"invalid date/datetime {match.group(0)!r}: {exc}", start) from exc
        return self._token(TokenType.DATETIME, value, start, newline)


def _parse_offset(offset: str) -> dt.timezone:
    if offset == "Z":
        return dt.timezone.utc
    sign = -1 if offset[0] == "-" else 1
    digits = offset[1:].replace(":", "")
    hours, minutes = int(digits[:2]), int(digits[2:])
    if minutes > 59:
        raise ValueError(f"UTC offset minutes out of range in {offset!r}")
    delta = dt.timedelta(hours=hours, minutes=minutes)
    return dt.timezone(sign * delta)


def tokenize(text: str, source: str | Path | None = None) -> list[Token]:
    """Tokenize *text* into a list of tokens ending with ``EOF``."""
    return Lexer(text, source).tokenize()
