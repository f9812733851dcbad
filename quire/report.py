"""Build report models.

Pydantic v2 models recording what a build produced: written and unchanged
outputs, skipped items, and failures at every level (source, view, item).
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from quire.errors import (
    OutputPathError,
    ParseError,
    QuireError,
    RenderError,
    SandboxError,
    SourceError,
)


# ---------------------------------------------------------------------------
# Individual failure
# ---------------------------------------------------------------------------

class Failure(BaseModel):
    """One recorded error with enough context to locate it."""

    kind: str = Field(..., description="Error kind, e.g. 'parse', 'sandbox', 'timeout'")
    view: Optional[str] = Field(default=None, description="View the failure belongs to")
    hook: Optional[str] = Field(default=None, description="Script hook that failed")
    template: Optional[str] = Field(default=None, description="Template reference that failed")
    source: Optional[str] = Field(default=None, description="Source file or output path involved")
    line: Optional[int] = Field(default=None, ge=1)
    column: Optional[int] = Field(default=None, ge=1)
    message: str = Field(..., description="Human-readable error message")

    @classmethod
    def from_error(cls, error: QuireError, view: Optional[str] = None, source: Optional[str] = None) -> "Failure":
        """Build a failure record from any :class:`QuireError`."""
        fields: dict = {"kind": error.kind, "view": view, "source": source, "message": str(error)}
        if isinstance(error, ParseError):
            fields["source"] = source or error.source
            fields["line"] = error.line or None
            fields["column"] = error.column or None
        elif isinstance(error, SandboxError):
            fields["hook"] = error.hook
        elif isinstance(error, RenderError):
            fields["template"] = error.template
        elif isinstance(error, OutputPathError):
            fields["source"] = source or error.path
        elif isinstance(error, SourceError):
            fields["source"] = source or error.path
        if fields["view"] is None:
            fields["view"] = getattr(error, "view", None)
        return cls(**fields)

    @property
    def location(self) -> str:
        where = self.source or ""
        if where and self.line:
            where = f"{where}:{self.line}:{self.column or 1}"
        return where


# ---------------------------------------------------------------------------
# Per-view results
# ---------------------------------------------------------------------------

class ViewReport(BaseModel):
    """Outcome of running one view."""

    name: str = Field(..., description="View name")
    mode: Optional[str] = Field(default=None, description="'each' or 'collection'")
    documents: int = Field(default=0, ge=0, description="Documents selected and loaded")
    written: list[str] = Field(default_factory=list, description="Output paths written")
    unchanged: list[str] = Field(default_factory=list, description="Output paths already up to date")
    skipped: int = Field(default=0, ge=0, description="Items dropped by process() or by the error policy")
    failures: list[Failure] = Field(default_factory=list)
    aborted: bool = Field(default=False)
    duration_seconds: float = Field(default=0.0, ge=0.0)

    @computed_field  # type: ignore[misc]
    @property
    def outputs(self) -> int:
        """Number of outputs produced, written or unchanged."""
        return len(self.written) + len(self.unchanged)

    @computed_field  # type: ignore[misc]
    @property
    def succeeded(self) -> bool:
        """True when the view ran to completion without failures."""
        return not self.aborted and not self.failures


# ---------------------------------------------------------------------------
# Whole build
# ---------------------------------------------------------------------------

class BuildReport(BaseModel):
    """Aggregated outcome of a build."""

    project_dir: str = Field(default="")
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration_seconds: float = Field(default=0.0, ge=0.0)
    views: list[ViewReport] = Field(default_factory=list)
    failures: list[Failure] = Field(default_factory=list, description="Failures not tied to one view")

    @computed_field  # type: ignore[misc]
    @property
    def total_outputs(self) -> int:
        return sum(view.outputs for view in self.views)

    @computed_field  # type: ignore[misc]
    @property
    def all_failures(self) -> list[Failure]:
        """Build-level failures followed by every view's failures, in order."""
        collected = list(self.failures)
        for view in self.views:
            collected.extend(view.failures)
        return collected

    @computed_field  # type: ignore[misc]
    @property
    def succeeded(self) -> bool:
        return not self.all_failures and not any(view.aborted for view in self.views)

    def view(self, name: str) -> Optional[ViewReport]:
        for view in self.views:
            if view.name == name:
                return view
        return None

    def save(self, path: Path) -> Path:
        """Write the report as JSON and return its path."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return path
