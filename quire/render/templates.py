"""Jinja2 rendering of output items and output path patterns.

Provides the TemplateRenderer class which loads Jinja2 templates from the
project directory and renders them with an output item's fields.  Output
path patterns are rendered in a separate, strict environment where a
missing placeholder is an error rather than an empty string.
"""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any, Optional

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    TemplateNotFound,
    UndefinedError,
    select_autoescape,
)
from markupsafe import Markup

from quire.errors import OutputPathError, RenderError
from quire.sandbox.intrinsics import markdown_to_html
from quire.utils import slugify


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders item templates and output path patterns.

    Templates are looked up relative to *template_dir* (normally the project
    root).  ``.html`` and ``.xml`` templates are autoescaped.  The ``site``
    global holds the site-wide settings from the configuration.
    """

    def __init__(
        self,
        template_dir: str | Path,
        site: Optional[dict[str, Any]] = None,
    ) -> None:
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html", "xml"], default_for_string=False),
            keep_trailing_newline=True,
        )
        self.path_env = Environment(
            undefined=StrictUndefined, autoescape=False, finalize=_reject_null
        )
        for env in (self.env, self.path_env):
            env.filters["format_date"] = _format_date_filter
            env.filters["pad"] = _pad_filter
            env.filters["slugify"] = _slugify_filter
            env.globals["site"] = dict(site or {})
        self.env.filters["markdown"] = _markdown_filter

    # -- Item templates ----------------------------------------------------

    def render(self, template_ref: str, context: dict[str, Any]) -> str:
        """Render the template *template_ref* with *context*.

        Raises:
            RenderError: If the template is missing or fails to render.
        """
        try:
            template = self.env.get_template(template_ref)
            return template.render(**context)
        except TemplateNotFound as exc:
            raise RenderError(template_ref, f"template not found: {exc.name}") from exc
        except TemplateError as exc:
            raise RenderError(template_ref, exc.message or type(exc).__name__) from exc
        except (TypeError, ValueError, AttributeError) as exc:
            raise RenderError(template_ref, str(exc)) from exc

    # -- Output paths ------------------------------------------------------

    def render_path(self, pattern: str, fields: dict[str, Any], view: str = "") -> str:
        """Render an output path pattern with the item's top-level *fields*.

        Args:
            pattern: Jinja2 expression text such as ``"public/{{ id }}.html"``.
            fields: The processed item's properties.
            view: View name used in error reports.

        Returns:
            The rendered, not yet validated, relative path.

        Raises:
            OutputPathError: If the pattern references a missing or null
                field, or is not a valid template.
        """
        try:
            return self.path_env.from_string(pattern).render(**fields)
        except UndefinedError as exc:
            raise OutputPathError(view, pattern, exc.message or "undefined placeholder") from exc
        except TemplateError as exc:
            raise OutputPathError(view, pattern, f"invalid pattern: {exc.message}") from exc
        except (TypeError, ValueError, AttributeError) as exc:
            raise OutputPathError(view, pattern, str(exc)) from exc


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------


def _reject_null(value: Any) -> Any:
    """Path placeholders may not render null values as the text ``None``."""
    if value is None:
        raise ValueError("placeholder evaluates to null")
    return value


def _format_date_filter(value: Any, fmt: str = "%Y-%m-%d") -> str:
    """Format a date, datetime or ISO date string with ``strftime``."""
    if isinstance(value, str):
        try:
            value = dt.datetime.fromisoformat(value)
        except ValueError:
            value = dt.date.fromisoformat(value)
    return value.strftime(fmt)


def _pad_filter(value: Any, fill: str = "0", width: int = 2) -> str:
    """Left-pad ``value`` to *width* characters: ``1 | pad`` gives ``"01"``."""
    return str(value).rjust(width, fill)


def _slugify_filter(value: Any) -> str:
    return slugify(str(value))


def _markdown_filter(value: Any) -> Markup:
    return Markup(markdown_to_html(str(value)))
