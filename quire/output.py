"""Output path resolution and file writing.

Every output path is claimed before anything is written, so a collision
between two items in one build is reported against the later item and
never overwrites the earlier one.  Writes run in worker threads bounded by
a semaphore; a file whose bytes already match is left untouched.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from quire.errors import OutputPathError, QuireError, SourceError


@dataclass(frozen=True)
class OutputItem:
    """A rendered output waiting to be written."""

    view: str
    path: str
    text: str
    source: str = ""


@dataclass(frozen=True)
class WriteOutcome:
    item: OutputItem
    target: Path
    written: bool = False
    error: Optional[QuireError] = None


def resolve_output_path(view: str, rendered: str, root: Path) -> Path:
    """Turn a rendered output path into an absolute path inside *root*.

    Args:
        view: Name of the view that produced the path, for error reports.
        rendered: The output pattern after placeholder substitution.
        root: Project directory every output must stay under.

    Returns:
        The resolved absolute target path.

    Raises:
        OutputPathError: If the path is empty, absolute, or escapes *root*.
    """
    if not rendered.strip():
        raise OutputPathError(view, rendered, "output path is empty")
    if rendered.startswith(("/", "\\")) or Path(rendered).is_absolute():
        raise OutputPathError(view, rendered, "output path must be relative to the project root")
    root = root.resolve()
    target = (root / rendered).resolve()
    if target == root or not target.is_relative_to(root):
        raise OutputPathError(view, rendered, "output path escapes the project root")
    return target


class OutputWriter:
    """Claims output paths for a build and writes them out."""

    def __init__(self, root: Path, max_workers: int = 4) -> None:
        self.root = root.resolve()
        self.max_workers = max_workers
        self._claimed: dict[Path, OutputItem] = {}

    def claim(self, item: OutputItem) -> Path:
        """Reserve the target of *item* for this build.

        Raises:
            OutputPathError: If the path is invalid or already claimed.
        """
        target = resolve_output_path(item.view, item.path, self.root)
        previous = self._claimed.get(target)
        if previous is not None:
            owner = previous.source or previous.path
            raise OutputPathError(
                item.view, item.path, f"collides with output of view {previous.view!r} ({owner})"
            )
        self._claimed[target] = item
        return target

    def release(self, target: Path) -> None:
        """Give up a claim, e.g. when the owning view is aborted."""
        self._claimed.pop(target, None)

    async def write_all(self, items: list[tuple[Path, OutputItem]]) -> list[WriteOutcome]:
        """Write claimed items concurrently.

        Files whose content already matches are left untouched.

        Args:
            items: ``(target, item)`` pairs, each target as returned by
                :meth:`claim`.

        Returns:
            One :class:`WriteOutcome` per item, in the order given.
        """
        semaphore = asyncio.Semaphore(self.max_workers)

        async def _write(target: Path, item: OutputItem) -> WriteOutcome:
            async with semaphore:
                try:
                    written = await asyncio.to_thread(_write_file, target, item.text)
                except OSError as exc:
                    return WriteOutcome(item, target, error=SourceError(target, f"cannot write output: {exc}"))
                return WriteOutcome(item, target, written=written)

        return list(await asyncio.gather(*(_write(t, i) for t, i in items)))


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _write_file(path: Path, content: str) -> bool:
    """Synchronous helper: create parent dirs and write content if changed."""
    data = content.encode("utf-8")
    if path.is_file() and path.read_bytes() == data:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return True
