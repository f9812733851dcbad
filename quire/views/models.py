"""View model and hook invocation.

A view is one script file defining four global functions:

* ``select()``        -- glob pattern(s) choosing the source files
* ``process(...)``    -- turns source items into output items
* ``template(item)``  -- template reference for an output item
* ``outputPattern(item)`` -- output path pattern for an output item
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from quire.errors import SandboxError, ViewError
from quire.markup import Array, Integer, Null, Object, String, Value
from quire.sandbox import ScriptSandbox

HOOKS = ("select", "process", "template", "outputPattern")


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ProcessMode(str, Enum):
    """How ``process`` consumes the selected items."""
    EACH = "each"
    COLLECTION = "collection"

    @classmethod
    def from_arity(cls, arity: int) -> "ProcessMode":
        """``process(item, index)`` runs per item; ``process(items)`` runs once."""
        return cls.EACH if arity >= 2 else cls.COLLECTION


# ---------------------------------------------------------------------------
# View
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class View:
    """A registered view.  Owns its sandbox; holds no documents."""

    name: str
    path: Path
    sandbox: ScriptSandbox
    mode: ProcessMode

    # -- Hooks ---------------------------------------------------------------

    def select(self) -> list[str]:
        """Return the view's selection patterns.

        Raises:
            ViewError: If ``select()`` returns anything other than a string or
                an array of strings.
        """
        result = self.sandbox.call("select")
        if isinstance(result, String):
            return [result.value]
        if isinstance(result, Array) and all(isinstance(item, String) for item in result):
            return [item.value for item in result]
        raise ViewError(self.name, "select() must return a string or an array of strings")

    def process_each(self, item: Value, index: int) -> Optional[Object]:
        """Run ``process(item, index)``; ``None`` means the item is skipped."""
        result = self.sandbox.call("process", item, Integer(index))
        if isinstance(result, Null):
            return None
        if isinstance(result, Object):
            return result
        raise SandboxError(
            self.name, "process", f"expected an object or null, got {_describe(result)}"
        )

    def process_collection(self, items: list[Value]) -> list[Object]:
        """Run ``process(items)`` once over the ordered item list."""
        result = self.sandbox.call("process", items)
        if isinstance(result, Null):
            return []
        if isinstance(result, Array):
            outputs = []
            for position, entry in enumerate(result):
                if not isinstance(entry, Object):
                    raise SandboxError(
                        self.name,
                        "process",
                        f"element {position} of the result is {_describe(entry)}, expected an object",
                    )
                outputs.append(entry)
            return outputs
        raise SandboxError(
            self.name, "process", f"expected an array of objects, got {_describe(result)}"
        )

    def template(self, item: Object) -> str:
        return self._string_hook("template", item)

    def output_pattern(self, item: Object) -> str:
        return self._string_hook("outputPattern", item)

    def _string_hook(self, hook: str, item: Object) -> str:
        result = self.sandbox.call(hook, item)
        if not isinstance(result, String):
            raise SandboxError(self.name, hook, f"expected a string, got {_describe(result)}")
        return result.value


def _describe(value: Value) -> str:
    return type(value).__name__.lower()
