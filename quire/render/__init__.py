"""Template rendering for Quire outputs."""

from .templates import TemplateRenderer

__all__ = ["TemplateRenderer"]
