"""View scripts: discovery, registration and hook invocation."""

from .loader import discover_views, load_view
from .models import HOOKS, ProcessMode, View

__all__ = ["HOOKS", "ProcessMode", "View", "discover_views", "load_view"]
