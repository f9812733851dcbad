"""Indentation removal for dedented block strings.

A dedented string such as::

    body: d"
        First line
          indented
        Last line
        "

is first trimmed of the newline after the opening quote and of the
newline-plus-indentation before the closing quote, then has the common
leading whitespace of its non-blank lines removed.
"""

from __future__ import annotations

import re

_TRAILING_MARKER_RE = re.compile(r"\r?\n[ \t]*\Z")


def trim_block_markers(raw: str) -> str:
    """Strip the line breaks adjacent to the opening and closing markers.

    Removes a single leading ``\\n`` (or ``\\r\\n``) immediately after the
    opening marker and a single trailing newline followed by spaces/tabs
    immediately before the closing marker.
    """
    if raw.startswith("\r\n"):
        raw = raw[2:]
    elif raw.startswith("\n"):
        raw = raw[1:]
    return _TRAILING_MARKER_RE.sub("", raw, count=1)


def _indent_width(line: str) -> int:
    return len(line) - len(line.lstrip(" \t"))


def common_indent(lines: list[str]) -> int:
    """Minimum leading-whitespace count over the non-blank *lines*.

    Returns ``0`` when every line is blank.
    """
    widths = [_indent_width(line) for line in lines if line.strip()]
    return min(widths) if widths else 0


def dedent(text: str) -> str:
    """Remove the common leading whitespace from every line of *text*.

    Whitespace-only lines lose at most the common indent and empty lines are
    left untouched.  Applying ``dedent`` twice gives the same result as
    applying it once.
    """
    lines = text.split("\n")
    width = common_indent(lines)
    if width == 0:
        return text
    out: list[str] = []
    for line in lines:
        if line.strip():
            out.append(line[width:])
        else:
            out.append(line[min(width, _indent_width(line)):])
    return "\n".join(out)


def dedent_block(raw: str) -> str:
    """Trim the block markers from *raw* and dedent the remainder."""
    return dedent(trim_block_markers(raw))
