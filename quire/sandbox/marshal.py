"""Conversion of Quire values to and from the JSON text that crosses the
sandbox boundary.

Dates and datetimes have no JSON form, so they travel as single-key tagged
objects (``{"$date": {...}}`` / ``{"$datetime": {...}}``) which the script
prelude revives into ``QuireDate`` / ``QuireDateTime`` instances.
"""

from __future__ import annotations

import datetime as dt
import json
from typing import Any, Iterable

from quire.markup import (
    Array,
    Boolean,
    Date,
    DateTime,
    Float,
    Integer,
    Null,
    Object,
    String,
    Value,
    from_python,
)

DATE_TAG = "$date"
DATETIME_TAG = "$datetime"


def to_json_data(value: Value) -> Any:
    """Convert *value* to JSON-compatible Python data with tagged dates."""
    if isinstance(value, Null):
        return None
    if isinstance(value, (Boolean, Integer, Float, String)):
        return value.value
    if isinstance(value, Date):
        d = value.value
        return {DATE_TAG: {"iso": d.isoformat(), "year": d.year, "month": d.month, "day": d.day}}
    if isinstance(value, DateTime):
        moment = value.value
        offset = moment.utcoffset()
        assert offset is not None
        return {
            DATETIME_TAG: {
                "iso": moment.isoformat(),
                "year": moment.year,
                "month": moment.month,
                "day": moment.day,
                "hour": moment.hour,
                "minute": moment.minute,
                "second": moment.second,
                "microsecond": moment.microsecond,
                "offset": int(offset.total_seconds() // 60),
            }
        }
    if isinstance(value, Array):
        return [to_json_data(item) for item in value.items]
    if isinstance(value, Object):
        return {prop.identifier: to_json_data(prop.value) for prop in value.properties}
    raise TypeError(f"cannot marshal {type(value).__name__}")


def encode(values: Iterable[Value | list[Value]]) -> str:
    """Encode call arguments as a JSON array."""
    args = []
    for value in values:
        if isinstance(value, list):
            args.append([to_json_data(v) for v in value])
        else:
            args.append(to_json_data(value))
    return json.dumps(args, ensure_ascii=False, allow_nan=False)


def decode(text: str) -> Value:
    """Decode JSON text produced by the sandbox into a :data:`Value`.

    Raises:
        ValueError: If the text is not valid JSON or a tagged date is malformed.
    """
    return from_python(json.loads(text, object_pairs_hook=_revive))


def _revive(pairs: list[tuple[str, Any]]) -> Any:
    if len(pairs) == 1 and isinstance(pairs[0][1], dict):
        tag, fields = pairs[0]
        if tag == DATE_TAG:
            return dt.date.fromisoformat(_iso(fields))
        if tag == DATETIME_TAG:
            moment = dt.datetime.fromisoformat(_iso(fields))
            if moment.utcoffset() is None:
                raise ValueError(f"datetime {fields['iso']!r} has no UTC offset")
            return moment
    return dict(pairs)


def _iso(fields: dict[str, Any]) -> str:
    iso = fields.get("iso")
    if not isinstance(iso, str):
        raise ValueError("tagged date is missing its 'iso' field")
    return iso
