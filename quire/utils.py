"""Shared utility functions for Quire.

Provides the Rich console and its output helpers, string/name helpers,
file-system helpers and duration formatting.
"""

from __future__ import annotations

import re
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()

_verbose = False


# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def slugify(name: str) -> str:
    """Convert an arbitrary title to a URL/filename-safe slug.

    * Lowercases the input.
    * Replaces runs of characters other than ``a-z`` and ``0-9`` with a
      single hyphen.
    * Strips leading/trailing hyphens.

    Examples::

        slugify("Hello, World!") -> "hello-world"
        slugify("  2FA (TOTP)  ") -> "2fa-totp"
    """
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower())
    return slug.strip("-")


# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


def relative_label(path: Path, root: Path) -> str:
    """Render *path* relative to *root* when possible, for messages."""
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(0.0421) -> "42ms"
        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
    """
    if seconds < 0:
        return "0ms"
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"

    minutes = int(seconds // 60)
    secs = seconds % 60
    if minutes > 0:
        return f"{minutes}m {int(secs)}s"
    return f"{secs:.1f}s"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def set_verbose(enabled: bool) -> None:
    """Toggle :func:`print_debug` output."""
    global _verbose
    _verbose = enabled


def print_summary_table(rows: list[tuple[str, ...]], columns: list[str], title: str = "Summary") -> None:
    """Print a table with the given column headings."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    for i, column in enumerate(columns):
        table.add_column(column, style="dim" if i == 0 else None, no_wrap=i == 0)
    for row in rows:
        table.add_row(*(escape(str(cell)) for cell in row))
    console.print(table)


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{escape(message)}[/bold red]", highlight=False)


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{escape(message)}[/bold yellow]", highlight=False)


def print_info(message: str) -> None:
    console.print(escape(message), highlight=False)


def print_debug(message: str) -> None:
    """Print a dim message, only in verbose mode."""
    if _verbose:
        console.print(f"[dim]{escape(message)}[/dim]", highlight=False)
