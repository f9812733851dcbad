"""Recursive-descent parser for Quire Data documents.

Grammar::

    document   := docstring* value EOF
    value      := null | boolean | number | string | date | datetime
                | array | object
    object     := '{' (property (sep property)* sep?)? '}'
    property   := docstring* key ':' value trailing-docstring?
    array      := '[' (value (sep value)* sep?)? ']'
    sep        := ',' | newline

A property may carry its docstring either on the lines before its key or on
the same line after its value, never both.
"""

from __future__ import annotations

from pathlib import Path

from quire.errors import ParseError

from .lexer import Token, TokenType, tokenize
from .values import (
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
    Property,
    String,
    Value,
)

_KEY_TOKENS = frozenset({
    TokenType.IDENTIFIER,
    TokenType.STRING,
    TokenType.NULL,
    TokenType.TRUE,
    TokenType.FALSE,
})

_SCALARS = {
    TokenType.TRUE: Boolean,
    TokenType.FALSE: Boolean,
    TokenType.INTEGER: Integer,
    TokenType.FLOAT: Float,
    TokenType.STRING: String,
    TokenType.DATE: Date,
    TokenType.DATETIME: DateTime,
}

# Deepest allowed nesting of arrays and objects.
MAX_DEPTH = 256

_KEYWORD_TEXT = {
    TokenType.NULL: "null",
    TokenType.TRUE: "true",
    TokenType.FALSE: "false",
}


class Parser:
    """Builds a :class:`Document` from a token list."""

    def __init__(self, tokens: list[Token], source: str | Path | None = None) -> None:
        self.tokens = tokens
        self.source = source
        self.index = 0
        self.depth = 0

    # -- Token helpers -----------------------------------------------------

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        if token.type is not TokenType.EOF:
            self.index += 1
        return token

    def _error(self, message: str, token: Token | None = None) -> ParseError:
        token = token or self.current
        return ParseError(message, token.line, token.column, token.offset, self.source)

    def _unexpected(self, expected: str) -> ParseError:
        token = self.current
        if token.type is TokenType.EOF:
            return self._error(f"unexpected end of input, expected {expected}")
        return self._error(f"unexpected {token.type.value}, expected {expected}")

    def _expect(self, kind: TokenType) -> Token:
        if self.current.type is not kind:
            raise self._unexpected(kind.value)
        return self._advance()

    def _docstring_lines(self) -> tuple[str, ...]:
        lines: list[str] = []
        while self.current.type is TokenType.DOCSTRING:
            lines.append(self._advance().value)
        return tuple(lines)

    # -- Grammar -----------------------------------------------------------

    def parse_document(self) -> Document:
        lines = self._docstring_lines()
        root = self.parse_value()
        if self.current.type is TokenType.DOCSTRING:
            raise self._error("misplaced docstring after the root value")
        if self.current.type is not TokenType.EOF:
            raise self._unexpected("end of input")
        docstring = Docstring(lines) if lines else None
        path = Path(self.source) if self.source is not None else None
        return Document(root, docstring, path)

    def parse_value(self) -> Value:
        token = self.current
        kind = token.type
        if kind in (TokenType.LBRACE, TokenType.LBRACKET):
            if self.depth >= MAX_DEPTH:
                raise self._error(f"nesting deeper than {MAX_DEPTH} levels")
            self.depth += 1
            try:
                return self._parse_object() if kind is TokenType.LBRACE else self._parse_array()
            finally:
                self.depth -= 1
        if kind is TokenType.DOCSTRING:
            raise self._error("misplaced docstring: docstrings may only precede a property or the root value")
        if kind is TokenType.NULL:
            self._advance()
            return Null()
        scalar = _SCALARS.get(kind)
        if scalar is None:
            raise self._unexpected("a value")
        self._advance()
        return scalar(token.value)

    def _parse_object(self) -> Object:
        self._expect(TokenType.LBRACE)
        properties: list[Property] = []
        seen: set[str] = set()
        while True:
            leading = self._docstring_lines()
            if self.current.type is TokenType.RBRACE:
                if leading:
                    raise self._error("misplaced docstring: no property follows it")
                self._advance()
                return Object(tuple(properties))

            key_token = self.current
            if key_token.type not in _KEY_TOKENS:
                raise self._unexpected("a property identifier")
            self._advance()
            identifier = _KEYWORD_TEXT.get(key_token.type, key_token.value)
            if identifier in seen:
                raise self._error(f"duplicate property identifier {identifier!r}", key_token)
            seen.add(identifier)

            self._expect(TokenType.COLON)
            value = self.parse_value()

            docstring = Docstring(leading) if leading else None
            trailing = self.current
            if trailing.type is TokenType.DOCSTRING and not trailing.newline_before:
                if docstring is not None:
                    raise self._error(
                        f"property {identifier!r} has two docstrings "
                        "(one before it and one after its value)",
                        trailing,
                    )
                docstring = Docstring((self._advance().value,))
            properties.append(Property(identifier, value, docstring))

            if self.current.type is TokenType.COMMA:
                self._advance()
            elif self.current.type is TokenType.RBRACE:
                continue
            elif not self.current.newline_before:
                raise self._unexpected("',' or a newline between properties")

    def _parse_array(self) -> Array:
        self._expect(TokenType.LBRACKET)
        items: list[Value] = []
        while True:
            if self.current.type is TokenType.RBRACKET:
                self._advance()
                return Array(tuple(items))
            items.append(self.parse_value())
            if self.current.type is TokenType.COMMA:
                self._advance()
            elif self.current.type is TokenType.RBRACKET:
                continue
            elif self.current.type is TokenType.DOCSTRING:
                raise self._error("misplaced docstring: array elements cannot carry docstrings")
            elif not self.current.newline_before:
                raise self._unexpected("',' or a newline between array elements")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse(text: str, source: str | Path | None = None) -> Document:
    """Parse Quire Data *text* into a :class:`Document`.

    Raises:
        LexError: For malformed tokens.
        ParseError: For structural errors.
    """
    return Parser(tokenize(text, source), source).parse_document()


def parse_value(text: str) -> Value:
    """Parse *text* and return only the root value."""
    return parse(text).root


def parse_file(path: str | Path) -> Document:
    """Read and parse a Quire Data file (UTF-8)."""
    path = Path(path)
    return parse(path.read_text(encoding="utf-8"), path)
