"""Source selection and loading.

Source files are turned into :class:`~quire.markup.Document` values by
extension:

* ``.qd``               -- Quire Data, via :func:`quire.markup.parse`
* ``.json``             -- JSON (a Quire Data subset, parsed with ``json``)
* ``.yaml`` / ``.yml``  -- YAML via PyYAML's safe loader
* ``.md`` / ``.markdown`` -- Markdown with optional YAML front matter; the
  body is stored under a ``content`` property

Loading runs in worker threads, bounded by a semaphore, and the results come
back in the order the paths were given.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import json
import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

from quire.errors import ParseError, QuireError, SourceError
from quire.markup import Document, Object, Property, String, from_python, parse
from quire.markup.parser import MAX_DEPTH

SUPPORTED_EXTENSIONS = frozenset({".qd", ".json", ".yaml", ".yml", ".md", ".markdown"})

_FRONT_MATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE
)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def select_sources(root: Path, patterns: Iterable[str]) -> list[Path]:
    """Resolve glob *patterns* against *root*.

    Matches from every pattern are merged, de-duplicated and sorted by path
    so that the result does not depend on file-system iteration order.

    Args:
        root: Project directory the patterns are relative to.
        patterns: Glob patterns; ``**`` matches across directories.

    Returns:
        Sorted absolute paths of matching files.  Directories are skipped.

    Raises:
        ValueError: If a pattern is empty, absolute, or climbs out of *root*.
    """
    found: set[Path] = set()
    for pattern in patterns:
        candidate = Path(pattern)
        if not pattern or candidate.is_absolute() or ".." in candidate.parts:
            raise ValueError(f"selection pattern {pattern!r} must be relative to the project root")
        for path in root.glob(pattern):
            if path.is_file():
                found.add(path)
    return sorted(found)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_document(path: Path) -> Document:
    """Load a single source file into a :class:`Document`.

    Args:
        path: The source file.  Its extension picks the format.

    Returns:
        The document, with ``path`` recorded so that its ``id`` is the file
        stem.

    Raises:
        SourceError: If the file cannot be read or has an unsupported type.
        ParseError: If the content is malformed, holds a NaN or infinite
            number, or nests deeper than the Quire Data limit.
    """
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise SourceError(path, f"unsupported data file extension {suffix or '(none)'!r}")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceError(path, f"cannot read file: {exc}") from exc

    try:
        return _load_text(suffix, text, path)
    except RecursionError as exc:
        raise ParseError("document is nested too deeply", source=path) from exc


def _load_text(suffix: str, text: str, path: Path) -> Document:
    if suffix == ".qd":
        return parse(text, path)
    if suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ParseError(exc.msg, exc.lineno, exc.colno, exc.pos, path) from exc
        return Document(_to_value(data, path), path=path)
    if suffix in (".yaml", ".yml"):
        return Document(_to_value(_load_yaml(text, path), path), path=path)
    return Document(_load_markdown(text, path), path=path)


def _load_yaml(text: str, path: Path, line_offset: int = 0) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = mark.line + 1 + line_offset if mark is not None else 0
        column = mark.column + 1 if mark is not None else 0
        problem = getattr(exc, "problem", None) or str(exc)
        raise ParseError(f"invalid YAML: {problem}", line, column, source=path) from exc


def _load_markdown(text: str, path: Path) -> Object:
    match = _FRONT_MATTER_RE.match(text)
    if match is None:
        return Object((Property("content", String(text)),))
    front = _load_yaml(match.group(1), path, line_offset=1)
    if front is None:
        front = {}
    if not isinstance(front, dict):
        raise ParseError("front matter must be a mapping", 2, 1, source=path)
    meta = _to_value(front, path)
    assert isinstance(meta, Object)
    return meta.with_property("content", String(text[match.end():]))


def _to_value(data: Any, path: Path):
    _check_data(data, path)
    try:
        return from_python(_assume_utc(data))
    except TypeError as exc:
        raise ParseError(str(exc), source=path) from exc


def _check_data(data: Any, path: Path, depth: int = 0) -> None:
    """Reject NaN, infinities and nesting that Quire Data cannot express."""
    if isinstance(data, float) and not math.isfinite(data):
        raise ParseError(f"non-finite number {data!r} is not supported", source=path)
    if isinstance(data, (dict, list)):
        if depth >= MAX_DEPTH:
            raise ParseError(f"nesting deeper than {MAX_DEPTH} levels", source=path)
        items = data.values() if isinstance(data, dict) else data
        for item in items:
            _check_data(item, path, depth + 1)


def _assume_utc(data: Any) -> Any:
    """Give naive datetimes (as produced by YAML) a UTC offset."""
    if isinstance(data, dt.datetime) and data.tzinfo is None:
        return data.replace(tzinfo=dt.timezone.utc)
    if isinstance(data, dict):
        return {key: _assume_utc(item) for key, item in data.items()}
    if isinstance(data, list):
        return [_assume_utc(item) for item in data]
    return data


# ---------------------------------------------------------------------------
# Parallel loading
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoadResult:
    """Outcome of loading one source: either a document or an error."""

    path: Path
    document: Optional[Document] = None
    error: Optional[QuireError] = None


async def load_documents(paths: list[Path], max_workers: int = 4) -> list[LoadResult]:
    """Load *paths* concurrently in worker threads.

    Args:
        paths: Source files to load.
        max_workers: Upper bound on files read at the same time.

    Returns:
        One :class:`LoadResult` per path, in the order of *paths*.  A file
        that fails to load yields a result carrying the error instead of
        raising, so one bad source never hides the others.
    """
    semaphore = asyncio.Semaphore(max_workers)

    async def _load(path: Path) -> LoadResult:
        async with semaphore:
            try:
                document = await asyncio.to_thread(load_document, path)
            except QuireError as exc:
                return LoadResult(path, error=exc)
            return LoadResult(path, document=document)

    return list(await asyncio.gather(*(_load(p) for p in paths)))
