"""Discovery and registration of view scripts."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from quire.config import Config
from quire.errors import SourceError, ViewError
from quire.sandbox import IntrinsicRegistry, ScriptSandbox
from quire.utils import print_debug, print_warning, relative_label
from quire.views.models import HOOKS, ProcessMode, View


def discover_views(config: Config) -> list[Path]:
    """Find view scripts in declaration order.

    Patterns in ``config.views`` are taken in order; matches within one
    pattern are sorted by path.  A later script whose name (file stem)
    repeats an earlier one is skipped with a warning.

    Returns:
        Absolute paths of the view scripts; each stem is the view name.

    Raises:
        ValueError: If a pattern is absolute or climbs out of the project.
    """
    root = config.root
    found: list[Path] = []
    names: dict[str, Path] = {}
    for pattern in config.views:
        candidate = Path(pattern)
        if candidate.is_absolute() or ".." in candidate.parts:
            raise ValueError(f"view pattern {pattern!r} must be relative to the project root")
        for path in sorted(p for p in root.glob(pattern) if p.is_file()):
            if path in found:
                continue
            previous = names.get(path.stem)
            if previous is not None:
                print_warning(
                    f"Skipping view {relative_label(path, root)}: name {path.stem!r} "
                    f"is already defined by {relative_label(previous, root)}"
                )
                continue
            names[path.stem] = path
            found.append(path)
    return found


def load_view(
    path: Path,
    config: Config,
    intrinsics: Optional[IntrinsicRegistry] = None,
) -> View:
    """Evaluate a view script and register it.

    The process mode is fixed here, from the declared parameter count of
    ``process``.

    Raises:
        SourceError: If the script cannot be read.
        SandboxError: If the script fails to evaluate.
        ViewError: If a hook function is missing.
    """
    name = path.stem
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceError(path, f"cannot read view script: {exc}") from exc

    sandbox = ScriptSandbox(
        name,
        source,
        limits=config.sandbox,
        site=config.site,
        intrinsics=intrinsics,
    )
    missing = [hook for hook in HOOKS if not sandbox.has_function(hook)]
    if missing:
        raise ViewError(name, f"missing hook function(s): {', '.join(missing)}")

    mode = ProcessMode.from_arity(sandbox.arity("process"))
    print_debug(f"Registered view {name!r} ({mode.value}) from {relative_label(path, config.root)}")
    return View(name=name, path=path, sandbox=sandbox, mode=mode)
