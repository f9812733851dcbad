"""QuickJS-backed script sandbox.

Each view gets its own :class:`ScriptSandbox` wrapping a fresh
``quickjs.Context``.  Values cross the boundary only as JSON text; the
prelude below revives tagged dates on the way in and re-tags them on the
way out.  The context exposes no file-system, network or process access,
and the only host functions are the registered intrinsics.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import quickjs

from quire.config import SandboxConfig
from quire.errors import SandboxError, SandboxTimeoutError
from quire.markup import Value
from quire.sandbox import marshal
from quire.sandbox.intrinsics import IntrinsicRegistry
from quire.utils import print_debug

SCRIPT_HOOK = "<script>"

PRELUDE = r"""
class QuireDate {
  constructor(fields) { Object.assign(this, fields); Object.freeze(this); }
  toString() { return this.iso; }
  valueOf() { return this.iso; }
  toJSON() { return { "$date": Object.assign({}, this) }; }
}

class QuireDateTime {
  constructor(fields) { Object.assign(this, fields); Object.freeze(this); }
  toString() { return this.iso; }
  valueOf() { return this.iso; }
  toJSON() { return { "$datetime": Object.assign({}, this) }; }
}

function __quire_revive(key, value) {
  if (value !== null && typeof value === "object" && !Array.isArray(value)) {
    const keys = Object.keys(value);
    if (keys.length === 1 && keys[0] === "$date") return new QuireDate(value["$date"]);
    if (keys.length === 1 && keys[0] === "$datetime") return new QuireDateTime(value["$datetime"]);
  }
  return value;
}

function __quire_freeze(value) {
  if (value !== null && typeof value === "object" && !Object.isFrozen(value)) {
    Object.values(value).forEach(__quire_freeze);
    Object.freeze(value);
  }
  return value;
}

function __quire_define(name, json) {
  Object.defineProperty(globalThis, name, {
    value: __quire_freeze(JSON.parse(json, __quire_revive)),
    writable: false,
    enumerable: true,
    configurable: true,
  });
}

function __quire_invoke(fn, argsJson) {
  const args = JSON.parse(argsJson, __quire_revive);
  const result = fn.apply(undefined, args);
  return JSON.stringify(result === undefined ? null : result);
}
"""


class ScriptSandbox:
    """An isolated script context for one view.

    Args:
        view: View name, used in error reports.
        source: The view's script text.
        limits: Time, memory and stack budgets.
        site: Data exposed read-only to the script as the ``config`` global.
        intrinsics: Host functions to install; defaults to
            :meth:`IntrinsicRegistry.default`.

    Raises:
        SandboxError: If the script fails to evaluate (``hook="<script>"``).
        SandboxTimeoutError: If evaluating the script exceeds the time budget.
    """

    def __init__(
        self,
        view: str,
        source: str,
        *,
        limits: Optional[SandboxConfig] = None,
        site: Optional[dict[str, Any]] = None,
        intrinsics: Optional[IntrinsicRegistry] = None,
    ) -> None:
        self.view = view
        limits = limits or SandboxConfig()
        self._context = quickjs.Context()
        self._context.set_memory_limit(limits.memory_limit)
        self._context.set_max_stack_size(limits.max_stack_size)
        (intrinsics or IntrinsicRegistry.default()).install(self._context)
        self._context.eval(PRELUDE)
        self._invoke = self._context.get("__quire_invoke")
        self._context.get("__quire_define")("config", json.dumps(site or {}, default=str))
        self._context.set_time_limit(limits.time_limit)
        self._functions: dict[str, Any] = {}
        self._guard(SCRIPT_HOOK, self._context.eval, source)

    # -- Introspection ------------------------------------------------------

    def has_function(self, name: str) -> bool:
        """Whether the script defines a global function called *name*."""
        return self._guard(SCRIPT_HOOK, self._context.eval, f"typeof {name} === 'function'") is True

    def arity(self, name: str) -> int:
        """Number of declared parameters of the global function *name*."""
        return int(self._guard(name, self._context.eval, f"{name}.length"))

    # -- Invocation -----------------------------------------------------------

    def call(self, hook: str, *args: Value | list[Value]) -> Value:
        """Call the global function *hook* with marshaled *args*.

        Raises:
            SandboxError: If an argument cannot be marshaled (e.g. a NaN
                float), or the hook throws or returns something that has no
                Quire representation.
            SandboxTimeoutError: If the call exceeds the time budget.
        """
        try:
            payload = marshal.encode(args)
        except (TypeError, ValueError, RecursionError) as exc:
            raise SandboxError(self.view, hook, f"cannot pass arguments to the script: {exc}") from exc
        result = self._guard(hook, self._invoke, self._function(hook), payload)
        if result is None:
            result = "null"
        try:
            return marshal.decode(result)
        except (TypeError, ValueError, RecursionError) as exc:
            raise SandboxError(self.view, hook, f"returned an unsupported value: {exc}") from exc

    # -- Internals ------------------------------------------------------------

    def _function(self, name: str) -> Any:
        fn = self._functions.get(name)
        if fn is None:
            fn = self._guard(name, self._context.eval, name)
            self._functions[name] = fn
        return fn

    def _guard(self, hook: str, fn: Any, *args: Any) -> Any:
        try:
            return fn(*args)
        except quickjs.JSException as exc:
            text = str(exc).strip()
            message, _, stack = text.partition("\n")
            if stack:
                print_debug(f"[{self.view}] {hook} stack:\n{stack}")
            if "interrupted" in message:
                raise SandboxTimeoutError(self.view, hook, "execution time limit exceeded") from exc
            raise SandboxError(self.view, hook, message or "script error") from exc
