"""Quire Data -- a JSON superset with dates, docstrings and block strings.

Public API
----------
.. autofunction:: parse
.. autofunction:: parse_file
.. autofunction:: serialize
.. autofunction:: dedent
"""

from .dedent import dedent, dedent_block, trim_block_markers
from .lexer import Lexer, Token, TokenType, tokenize
from .parser import Parser, parse, parse_file, parse_value
from .serializer import serialize
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
    from_python,
    to_python,
)

__all__ = [
    # Parsing
    "parse",
    "parse_file",
    "parse_value",
    "Parser",
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    # Serialization
    "serialize",
    # Dedent
    "dedent",
    "dedent_block",
    "trim_block_markers",
    # Values
    "Value",
    "Null",
    "Boolean",
    "Integer",
    "Float",
    "String",
    "Date",
    "DateTime",
    "Array",
    "Object",
    "Property",
    "Docstring",
    "Document",
    "from_python",
    "to_python",
]
