"""Host functions made callable from view scripts.

Intrinsics are pure: they take strings or numbers and return strings or
numbers.  Nothing that touches the file system, network or processes is
ever registered.
"""

from __future__ import annotations

from typing import Any, Callable, Iterator

import markdown

from quire.markup.values import IDENTIFIER_RE
from quire.utils import slugify

MARKDOWN_EXTENSIONS = ["fenced_code", "tables"]


def markdown_to_html(text: Any = None) -> str:
    """Render Markdown *text* to an HTML fragment.

    ``None`` (a script passing ``undefined`` or ``null``) renders as an empty
    string; other non-string values are converted with ``str``.
    """
    if text is None:
        return ""
    return markdown.markdown(str(text), extensions=MARKDOWN_EXTENSIONS)


class IntrinsicRegistry:
    """Named host functions installed into every script context."""

    def __init__(self) -> None:
        self._functions: dict[str, Callable[..., Any]] = {}

    @classmethod
    def default(cls) -> "IntrinsicRegistry":
        registry = cls()
        registry.register("markdownToHtml", markdown_to_html)
        registry.register("slugify", lambda text: slugify(str(text)))
        return registry

    def register(self, name: str, fn: Callable[..., Any]) -> None:
        """Register *fn* under the global script name *name*.

        Raises:
            ValueError: If *name* is not a valid identifier or is taken.
        """
        if not IDENTIFIER_RE.fullmatch(name) or "-" in name:
            raise ValueError(f"invalid intrinsic name {name!r}")
        if name in self._functions:
            raise ValueError(f"intrinsic {name!r} is already registered")
        self._functions[name] = fn

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def install(self, context: Any) -> None:
        """Expose every registered function on a ``quickjs.Context``."""
        for name, fn in self._functions.items():
            context.add_callable(name, fn)
