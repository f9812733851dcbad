"""Sandboxed execution of view scripts."""

from .intrinsics import IntrinsicRegistry, markdown_to_html
from .runtime import SCRIPT_HOOK, ScriptSandbox

__all__ = ["IntrinsicRegistry", "ScriptSandbox", "SCRIPT_HOOK", "markdown_to_html"]
