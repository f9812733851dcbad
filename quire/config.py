"""Quire configuration.

Centralised, typed configuration for a build.  All settings use Pydantic v2
models so they can be validated at construction time and serialised to/from
JSON, YAML or environment variables without boiler-plate.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field


class SandboxConfig(BaseModel):
    """Resource budgets applied to every view's script context."""

    time_limit: float = Field(
        default=5.0, gt=0, description="CPU seconds allowed per hook invocation"
    )
    memory_limit: int = Field(
        default=64 * 1024 * 1024, ge=1024 * 1024, description="Heap limit in bytes per view"
    )
    max_stack_size: int = Field(
        default=1024 * 1024, ge=64 * 1024, description="JavaScript stack limit in bytes"
    )


class Config(BaseModel):
    """Global Quire configuration.

    Instances are typically created once by the CLI entry point (or by
    tests) and handed to :class:`~quire.pipeline.Pipeline`.
    """

    project_dir: Path = Field(default=Path("."))
    views: list[str] = Field(
        default_factory=lambda: ["views/*.js"],
        description="Glob patterns (relative to project_dir) locating view scripts, in build order",
    )
    on_error: Literal["skip", "abort"] = Field(
        default="skip",
        description="What to do when a selected source fails to load: skip it or abort the view",
    )
    max_workers: int = Field(default=4, ge=1, description="Parallel parse/write workers")
    report_path: Optional[Path] = Field(
        default=None, description="Where to write the JSON build report, if anywhere"
    )
    site: dict[str, Any] = Field(
        default_factory=dict,
        description="Site-wide settings exposed to views as `config` and to templates as `site`",
    )
    verbose: bool = Field(default=False)
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    @property
    def root(self) -> Path:
        """The resolved project directory."""
        return self.project_dir.resolve()

    def resolve(self, relative: str | Path) -> Path:
        """Resolve *relative* against the project directory."""
        return (self.root / relative).resolve()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: str | Path) -> "Config":
        """Load a configuration file.

        ``.json``, ``.yaml`` and ``.yml`` files are supported.  A relative
        ``project_dir`` inside the file is taken relative to the file's own
        directory.

        Raises:
            ValueError: If the file extension is not supported.
        """
        path = Path(path)
        raw = path.read_text(encoding="utf-8")
        suffix = path.suffix.lower()
        if suffix == ".json":
            data = json.loads(raw)
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(raw) or {}
        else:
            raise ValueError(f"unsupported configuration file format {suffix!r}")
        config = cls.model_validate(data)
        if not config.project_dir.is_absolute():
            config.project_dir = path.parent / config.project_dir
        return config

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            QUIRE_PROJECT_DIR, QUIRE_VIEWS (comma-separated), QUIRE_ON_ERROR,
            QUIRE_MAX_WORKERS, QUIRE_REPORT_PATH, QUIRE_VERBOSE,
            QUIRE_TIME_LIMIT, QUIRE_MEMORY_LIMIT.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("QUIRE_PROJECT_DIR"):
            kwargs["project_dir"] = Path(os.environ["QUIRE_PROJECT_DIR"])
        if os.environ.get("QUIRE_VIEWS"):
            kwargs["views"] = [v.strip() for v in os.environ["QUIRE_VIEWS"].split(",") if v.strip()]
        if os.environ.get("QUIRE_ON_ERROR"):
            kwargs["on_error"] = os.environ["QUIRE_ON_ERROR"]
        if os.environ.get("QUIRE_MAX_WORKERS"):
            kwargs["max_workers"] = int(os.environ["QUIRE_MAX_WORKERS"])
        if os.environ.get("QUIRE_REPORT_PATH"):
            kwargs["report_path"] = Path(os.environ["QUIRE_REPORT_PATH"])
        if os.environ.get("QUIRE_VERBOSE"):
            kwargs["verbose"] = os.environ["QUIRE_VERBOSE"].lower() in ("1", "true", "yes")

        sandbox_kwargs: dict[str, Any] = {}
        if os.environ.get("QUIRE_TIME_LIMIT"):
            sandbox_kwargs["time_limit"] = float(os.environ["QUIRE_TIME_LIMIT"])
        if os.environ.get("QUIRE_MEMORY_LIMIT"):
            sandbox_kwargs["memory_limit"] = int(os.environ["QUIRE_MEMORY_LIMIT"])

        return cls(sandbox=SandboxConfig(**sandbox_kwargs), **kwargs)
