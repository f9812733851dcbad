"""Quire -- structured documents, sandboxed script views, Jinja2 templates."""

__version__ = "0.1.0"
