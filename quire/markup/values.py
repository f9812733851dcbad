"""Value model for Quire Data documents.

A parsed document is a tree of immutable :data:`Value` nodes.  Objects keep
their properties in source order and guarantee unique identifiers.
Docstrings live on :class:`Property` and :class:`Document` nodes as optional
fields; at most one docstring attaches to any value.
"""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Union

IDENTIFIER_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")


# ---------------------------------------------------------------------------
# Docstrings
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Docstring:
    """Ordered lines of a ``///`` docstring, without the ``///`` prefix."""

    lines: tuple[str, ...]

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


# ---------------------------------------------------------------------------
# Scalar values
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Null:
    def to_python(self) -> None:
        return None


@dataclass(frozen=True, slots=True)
class Boolean:
    value: bool

    def to_python(self) -> bool:
        return self.value


@dataclass(frozen=True, slots=True)
class Integer:
    value: int

    def to_python(self) -> int:
        return self.value


@dataclass(frozen=True, slots=True)
class Float:
    value: float

    def to_python(self) -> float:
        return self.value


@dataclass(frozen=True, slots=True)
class String:
    value: str

    def to_python(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Date:
    value: dt.date

    def to_python(self) -> dt.date:
        return self.value

    @property
    def iso(self) -> str:
        return self.value.isoformat()


@dataclass(frozen=True, slots=True)
class DateTime:
    """A timezone-aware date and time."""

    value: dt.datetime

    def __post_init__(self) -> None:
        if self.value.utcoffset() is None:
            raise ValueError("DateTime values must carry a UTC offset")

    def to_python(self) -> dt.datetime:
        return self.value

    @property
    def iso(self) -> str:
        return self.value.isoformat()


# ---------------------------------------------------------------------------
# Composite values
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Array:
    items: tuple["Value", ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator["Value"]:
        return iter(self.items)

    def __getitem__(self, index: int) -> "Value":
        return self.items[index]

    def to_python(self) -> list[Any]:
        return [item.to_python() for item in self.items]


@dataclass(frozen=True, slots=True)
class Property:
    """A single ``identifier: value`` pair inside an :class:`Object`."""

    identifier: str
    value: "Value"
    docstring: Docstring | None = None


@dataclass(frozen=True, slots=True)
class Object:
    """An ordered sequence of uniquely-named properties."""

    properties: tuple[Property, ...] = ()

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for prop in self.properties:
            if prop.identifier in seen:
                raise ValueError(f"duplicate property identifier {prop.identifier!r}")
            seen.add(prop.identifier)

    # -- Mapping-style access ----------------------------------------------

    def __len__(self) -> int:
        return len(self.properties)

    def __contains__(self, identifier: object) -> bool:
        return any(p.identifier == identifier for p in self.properties)

    def __getitem__(self, identifier: str) -> "Value":
        prop = self.lookup(identifier)
        if prop is None:
            raise KeyError(identifier)
        return prop.value

    def lookup(self, identifier: str) -> Property | None:
        for prop in self.properties:
            if prop.identifier == identifier:
                return prop
        return None

    def get(self, identifier: str, default: "Value | None" = None) -> "Value | None":
        prop = self.lookup(identifier)
        return prop.value if prop is not None else default

    def keys(self) -> list[str]:
        return [p.identifier for p in self.properties]

    def with_property(self, identifier: str, value: "Value") -> "Object":
        """Return a copy with *identifier* appended (or replaced in place)."""
        props = list(self.properties)
        for i, prop in enumerate(props):
            if prop.identifier == identifier:
                props[i] = Property(identifier, value, prop.docstring)
                return Object(tuple(props))
        props.append(Property(identifier, value))
        return Object(tuple(props))

    def to_python(self) -> dict[str, Any]:
        return {p.identifier: p.value.to_python() for p in self.properties}


Value = Union[Null, Boolean, Integer, Float, String, Date, DateTime, Array, Object]


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Document:
    """One parsed source file: a root value plus an optional docstring."""

    root: Value
    docstring: Docstring | None = None
    path: Path | None = field(default=None, compare=False)

    @property
    def id(self) -> str | None:
        """The source file stem, used as the default item identifier."""
        return self.path.stem if self.path is not None else None


# ---------------------------------------------------------------------------
# Python conversion
# ---------------------------------------------------------------------------


def to_python(value: Value) -> Any:
    """Convert a :data:`Value` tree into plain Python data."""
    return value.to_python()


def from_python(obj: Any) -> Value:
    """Convert plain Python data into a :data:`Value` tree.

    Raises:
        TypeError: For unsupported types, naive datetimes, or non-string keys.
    """
    if obj is None:
        return Null()
    # bool is a subclass of int, so it has to be checked first.
    if isinstance(obj, bool):
        return Boolean(obj)
    if isinstance(obj, int):
        return Integer(obj)
    if isinstance(obj, float):
        return Float(obj)
    if isinstance(obj, str):
        return String(obj)
    if isinstance(obj, dt.datetime):
        if obj.utcoffset() is None:
            raise TypeError(f"naive datetime {obj.isoformat()!r} has no UTC offset")
        return DateTime(obj)
    if isinstance(obj, dt.date):
        return Date(obj)
    if isinstance(obj, (list, tuple)):
        return Array(tuple(from_python(item) for item in obj))
    if isinstance(obj, dict):
        props = []
        for key, item in obj.items():
            if not isinstance(key, str):
                raise TypeError(f"object keys must be strings, got {key!r}")
            props.append(Property(key, from_python(item)))
        return Object(tuple(props))
    raise TypeError(f"cannot convert {type(obj).__name__} to a Quire value")
