"""Exception hierarchy for Quire.

Every error raised by the build derives from :class:`QuireError` so that
the pipeline can record it against the offending document, view, or item
instead of aborting the whole run.
"""

from __future__ import annotations

from pathlib import Path


class QuireError(Exception):
    """Base class for all Quire errors."""

    kind = "error"


# ---------------------------------------------------------------------------
# Document errors
# ---------------------------------------------------------------------------


class ParseError(QuireError):
    """Structural error in a Quire Data document.

    Carries the source location of the problem.  ``line`` and ``column`` are
    1-based; ``offset`` is the 0-based character offset into the source text.
    """

    kind = "parse"

    def __init__(
        self,
        message: str,
        line: int = 0,
        column: int = 0,
        offset: int = 0,
        source: str | Path | None = None,
    ) -> None:
        self.message = message
        self.line = line
        self.column = column
        self.offset = offset
        self.source = str(source) if source is not None else None
        super().__init__(self._format())

    def _format(self) -> str:
        where = self.source or "<string>"
        if self.line:
            where = f"{where}:{self.line}:{self.column}"
        return f"{where}: {self.message}"


class LexError(ParseError):
    """Malformed token: bad escape, delimiter mismatch, unterminated string."""

    kind = "lex"


class DedentError(QuireError):
    """Dedent failure.

    Content without common indentation is treated as zero-indent, so this is
    not raised for well-formed strings.
    """

    kind = "dedent"


class SourceError(QuireError):
    """A source file could not be read or has an unsupported type."""

    kind = "io"

    def __init__(self, path: str | Path, message: str) -> None:
        self.path = str(path)
        self.message = message
        super().__init__(f"{path}: {message}")


# ---------------------------------------------------------------------------
# View / sandbox errors
# ---------------------------------------------------------------------------


class ViewError(QuireError):
    """A view script is malformed (missing hook, bad select result, ...)."""

    kind = "view"

    def __init__(self, view: str, message: str) -> None:
        self.view = view
        self.message = message
        super().__init__(f"view {view!r}: {message}")


class SandboxError(QuireError):
    """A script failed inside the sandbox.

    Raised for syntax errors while loading the view (``hook="<script>"``),
    errors thrown by a hook, and hooks returning values of the wrong shape.
    """

    kind = "sandbox"

    def __init__(self, view: str, hook: str, message: str) -> None:
        self.view = view
        self.hook = hook
        self.message = message
        super().__init__(f"view {view!r}, hook {hook}(): {message}")


class SandboxTimeoutError(SandboxError):
    """A hook exceeded its execution budget."""

    kind = "timeout"


# ---------------------------------------------------------------------------
# Output errors
# ---------------------------------------------------------------------------


class OutputPathError(QuireError):
    """An output path could not be resolved or collides with another."""

    kind = "output-path"

    def __init__(self, view: str, path: str, message: str) -> None:
        self.view = view
        self.path = path
        self.message = message
        super().__init__(f"view {view!r}, output {path!r}: {message}")


class RenderError(QuireError):
    """The template renderer failed for a template reference."""

    kind = "render"

    def __init__(self, template: str, message: str) -> None:
        self.template = template
        self.message = message
        super().__init__(f"template {template!r}: {message}")


class PipelineError(QuireError):
    """Raised when a view is aborted under the abort-on-error policy."""

    kind = "pipeline"

    def __init__(self, view: str, message: str) -> None:
        self.view = view
        super().__init__(f"view {view!r}: {message}")
