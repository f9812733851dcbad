"""Quire build pipeline.

Runs every view in declaration order.  For each view:

1. SELECT   -- ``select()`` names glob patterns; matches are sorted by path.
2. LOAD     -- matched sources are parsed in parallel, then put back in order.
3. PROCESS  -- ``process`` runs per item (EACH) or once (COLLECTION).
4. RENDER   -- ``template``/``outputPattern`` name the template and path;
               Jinja2 renders both.
5. WRITE    -- claimed outputs are written in parallel, unchanged files are
               left alone.

Usage::

    quire build
    quire build posts index -p ./site --on-error abort
    quire check data/*.qd
    quire fmt data/settings.qd
"""

from __future__ import annotations

import asyncio
import sys
import time
from pathlib import Path
from typing import Iterable, Optional

from rich.panel import Panel

from quire.config import Config
from quire.errors import (
    OutputPathError,
    PipelineError,
    QuireError,
    RenderError,
    SandboxError,
    ViewError,
)
from quire.markup import Document, Object, String, Value, serialize
from quire.output import OutputItem, OutputWriter
from quire.render import TemplateRenderer
from quire.report import BuildReport, Failure, ViewReport
from quire.sandbox import IntrinsicRegistry
from quire.sources import load_document, load_documents, select_sources
from quire.utils import (
    console,
    format_duration,
    print_debug,
    print_error,
    print_info,
    print_success,
    print_summary_table,
    print_warning,
    relative_label,
    set_verbose,
)
from quire.views import ProcessMode, View, discover_views, load_view

CONFIG_NAMES = ("quire.yaml", "quire.yml", "quire.json")


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class Pipeline:
    """Quire build orchestrator.

    Owns the ordered list of registered views for one build; there is no
    global view registry.

    Attributes:
        config: Build configuration.
        renderer: Template renderer rooted at the project directory.
        intrinsics: Host functions installed into every view's sandbox.
        views: Views registered during the last :meth:`run`, in order.
    """

    def __init__(
        self,
        config: Config,
        *,
        renderer: Optional[TemplateRenderer] = None,
        intrinsics: Optional[IntrinsicRegistry] = None,
    ) -> None:
        self.config = config
        self.renderer = renderer or TemplateRenderer(config.root, site=config.site)
        self.intrinsics = intrinsics or IntrinsicRegistry.default()
        self.views: list[View] = []

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def run(self, view_names: Optional[Iterable[str]] = None) -> BuildReport:
        """Build every view, or only those named in *view_names*.

        Failures are recorded in the returned report rather than raised.

        Args:
            view_names: Views to build, by name.  ``None`` builds all of them
                in declaration order.

        Returns:
            The :class:`BuildReport`, also saved to ``report_path`` when one
            is configured.
        """
        started = time.monotonic()
        root = self.config.root
        report = BuildReport(project_dir=str(root))
        self.views = []

        console.print(
            Panel(
                f"[bold bright_cyan]Quire build[/bold bright_cyan]\n"
                f"Project  : {root}\n"
                f"On error : {self.config.on_error}\n"
                f"Workers  : {self.config.max_workers}",
                title="[bold]Build Start[/bold]",
                border_style="bright_cyan",
            )
        )

        try:
            paths = discover_views(self.config)
        except ValueError as exc:
            report.failures.append(Failure(kind="view", message=str(exc)))
            paths = []

        if view_names is not None:
            wanted = list(view_names)
            known = {path.stem for path in paths}
            for name in wanted:
                if name not in known:
                    report.failures.append(
                        Failure(kind="view", view=name, message=f"view {name!r} is not defined")
                    )
            paths = [path for path in paths if path.stem in wanted]

        if not paths:
            print_warning("No views to build.")

        writer = OutputWriter(root, self.config.max_workers)
        for path in paths:
            report.views.append(await self._run_view(path, writer))

        report.duration_seconds = time.monotonic() - started
        self._print_final_summary(report)

        if self.config.report_path is not None:
            saved = report.save(self.config.resolve(self.config.report_path))
            print_debug(f"Build report written to {saved}")
        return report

    # ------------------------------------------------------------------
    # Per-view execution
    # ------------------------------------------------------------------

    async def _run_view(self, path: Path, writer: OutputWriter) -> ViewReport:
        view_report = ViewReport(name=path.stem)
        started = time.monotonic()
        print_info(f"View {path.stem} ({relative_label(path, self.config.root)})")
        try:
            view = load_view(path, self.config, self.intrinsics)
            self.views.append(view)
            view_report.mode = view.mode.value
            await self._execute(view, writer, view_report)
        except PipelineError:
            view_report.aborted = True
        except QuireError as exc:
            view_report.failures.append(Failure.from_error(exc, view=path.stem))
            view_report.aborted = True
        view_report.duration_seconds = time.monotonic() - started

        if view_report.aborted:
            print_error(f"View {view_report.name} aborted")
        elif view_report.failures:
            print_warning(
                f"View {view_report.name}: {view_report.outputs} output(s), "
                f"{len(view_report.failures)} failure(s)"
            )
        else:
            print_success(
                f"View {view_report.name}: {view_report.outputs} output(s) "
                f"in {format_duration(view_report.duration_seconds)}"
            )
        return view_report

    async def _execute(self, view: View, writer: OutputWriter, report: ViewReport) -> None:
        root = self.config.root

        # 1. SELECT
        try:
            sources = select_sources(root, view.select())
        except ValueError as exc:
            raise ViewError(view.name, str(exc)) from exc
        print_debug(f"[{view.name}] selected {len(sources)} source(s)")

        # 2. LOAD
        items: list[tuple[Value, str]] = []
        for result in await load_documents(sources, self.config.max_workers):
            label = relative_label(result.path, root)
            if result.error is not None:
                report.failures.append(Failure.from_error(result.error, view=view.name, source=label))
                if self.config.on_error == "abort":
                    raise PipelineError(view.name, f"failed to load {label}")
                print_warning(f"Skipping {label}: {result.error}")
                continue
            assert result.document is not None
            items.append((_item_for(result.document), label))
        report.documents = len(items)

        # 3. PROCESS
        outputs: list[tuple[Object, str]] = []
        if view.mode is ProcessMode.EACH:
            for index, (item, label) in enumerate(items):
                try:
                    processed = view.process_each(item, index)
                except SandboxError as exc:
                    report.failures.append(Failure.from_error(exc, view=view.name, source=label))
                    continue
                if processed is None:
                    report.skipped += 1
                else:
                    outputs.append((processed, label))
        else:
            try:
                processed_all = view.process_collection([item for item, _ in items])
            except SandboxError as exc:
                raise self._abort(view, report, exc) from exc
            outputs = [(item, f"{view.name}[{i}]") for i, item in enumerate(processed_all)]

        # 4. RENDER
        pending: list[tuple[Path, OutputItem]] = []
        for item, label in outputs:
            try:
                output = self._render(view, item, label)
            except (SandboxError, RenderError) as exc:
                if view.mode is ProcessMode.COLLECTION:
                    for target, _ in pending:
                        writer.release(target)
                    raise self._abort(view, report, exc, source=label) from exc
                report.failures.append(Failure.from_error(exc, view=view.name, source=label))
                continue
            except OutputPathError as exc:
                report.failures.append(Failure.from_error(exc, view=view.name))
                continue
            try:
                pending.append((writer.claim(output), output))
            except OutputPathError as exc:
                report.failures.append(Failure.from_error(exc, view=view.name))

        # 5. WRITE
        for outcome in await writer.write_all(pending):
            if outcome.error is not None:
                report.failures.append(Failure.from_error(outcome.error, view=view.name))
            elif outcome.written:
                report.written.append(outcome.item.path)
            else:
                report.unchanged.append(outcome.item.path)

    def _render(self, view: View, item: Object, label: str) -> OutputItem:
        template_ref = view.template(item)
        pattern = view.output_pattern(item)
        fields = item.to_python()
        path = self.renderer.render_path(pattern, fields, view=view.name)
        text = self.renderer.render(template_ref, {"view": view.name, **fields, "item": fields})
        return OutputItem(view=view.name, path=path, text=text, source=label)

    def _abort(
        self,
        view: View,
        report: ViewReport,
        error: QuireError,
        source: Optional[str] = None,
    ) -> PipelineError:
        """Record *error* and build the exception that aborts *view*."""
        report.failures.append(Failure.from_error(error, view=view.name, source=source))
        return PipelineError(view.name, str(error))

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _print_final_summary(self, report: BuildReport) -> None:
        """Print the per-view table, every failure, and the closing panel."""
        rows = [
            (
                view.name,
                view.mode or "-",
                str(view.documents),
                str(view.outputs),
                str(view.skipped),
                str(len(view.failures)),
                format_duration(view.duration_seconds),
            )
            for view in report.views
        ]
        if rows:
            console.print()
            print_summary_table(
                rows,
                ["View", "Mode", "Sources", "Outputs", "Skipped", "Failures", "Time"],
                title="Build Summary",
            )

        for failure in report.all_failures:
            where = f" ({failure.location})" if failure.location else ""
            print_error(f"[{failure.kind}]{where} {failure.message}")

        if report.succeeded:
            border_style = "bold green"
            status_text = "[bold green]BUILD SUCCEEDED[/bold green]"
        else:
            border_style = "bold red"
            status_text = "[bold red]BUILD FAILED[/bold red]"

        console.print()
        console.print(
            Panel(
                "\n".join([
                    status_text,
                    "",
                    f"Duration : {format_duration(report.duration_seconds)}",
                    f"Views    : {len(report.views)}",
                    f"Outputs  : {report.total_outputs}",
                    f"Failures : {len(report.all_failures)}",
                ]),
                title="[bold]Build Complete[/bold]",
                border_style=border_style,
            )
        )


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def _item_for(document: Document) -> Value:
    """The process input for *document*: its root, with an ``id`` for objects."""
    root = document.root
    if isinstance(root, Object) and "id" not in root and document.id is not None:
        return root.with_property("id", String(document.id))
    return root


def load_config(
    project: Optional[str] = None,
    config_path: Optional[str] = None,
) -> Config:
    """Resolve the build configuration.

    An explicit *config_path* wins.  Otherwise ``quire.yaml``, ``quire.yml``
    or ``quire.json`` in the project directory is used when present, and
    ``QUIRE_*`` environment variables are the fallback.
    """
    if config_path:
        return Config.load(config_path)
    project_dir = Path(project) if project else Config.from_env().project_dir
    for name in CONFIG_NAMES:
        candidate = project_dir / name
        if candidate.is_file():
            return Config.load(candidate)
    config = Config.from_env()
    config.project_dir = project_dir
    return config


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _cmd_build(args) -> int:
    try:
        config = load_config(args.project, args.config)
    except (OSError, ValueError) as exc:
        print_error(f"Error: cannot load configuration: {exc}")
        return 1
    if args.project and args.config:
        config.project_dir = Path(args.project)
    if args.on_error:
        config.on_error = args.on_error
    if args.jobs:
        config.max_workers = args.jobs
    if args.report:
        config.report_path = Path(args.report).resolve()
    if args.verbose:
        config.verbose = True
    set_verbose(config.verbose)

    if not config.root.is_dir():
        print_error(f"Error: project directory not found: {config.root}")
        return 1

    report = asyncio.run(Pipeline(config).run(args.views or None))
    return 0 if report.succeeded else 1


def _cmd_check(args) -> int:
    failed = 0
    for name in args.files:
        try:
            load_document(Path(name))
        except QuireError as exc:
            print_error(str(exc))
            failed += 1
        else:
            print_success(f"{name}: ok")
    return 1 if failed else 0


def _cmd_fmt(args) -> int:
    try:
        text = serialize(load_document(Path(args.file)))
    except QuireError as exc:
        print_error(str(exc))
        return 1
    except ValueError as exc:
        print_error(f"{args.file}: {exc}")
        return 1
    sys.stdout.write(text)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point for ``quire`` and ``python -m quire``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="quire",
        description="Quire -- structured documents, script views, Jinja2 templates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  quire build\n"
            "  quire build posts -p ./site --on-error abort\n"
            "  quire check data/*.qd\n"
            "  quire fmt data/settings.qd\n"
        ),
    )
    subcommands = parser.add_subparsers(dest="command", required=True)

    build = subcommands.add_parser("build", help="Run views and write their outputs")
    build.add_argument("views", nargs="*", help="Only build these views (default: all)")
    build.add_argument("--project", "-p", default=None, help="Project directory (default: .)")
    build.add_argument("--config", "-c", default=None, help="Configuration file (.json, .yaml, .yml)")
    build.add_argument(
        "--on-error",
        choices=["skip", "abort"],
        default=None,
        help="Skip sources that fail to load, or abort their view",
    )
    build.add_argument("--jobs", "-j", type=int, default=None, help="Parallel parse/write workers")
    build.add_argument("--report", default=None, help="Write a JSON build report to this path")
    build.add_argument("--verbose", "-v", action="store_true", help="Show debug output")
    build.set_defaults(handler=_cmd_build)

    check = subcommands.add_parser("check", help="Parse source files and report errors")
    check.add_argument("files", nargs="+", help="Files to check")
    check.set_defaults(handler=_cmd_check)

    fmt = subcommands.add_parser("fmt", help="Print the canonical Quire Data form of a file")
    fmt.add_argument("file", help="File to format")
    fmt.set_defaults(handler=_cmd_fmt)

    args = parser.parse_args(argv)
    if getattr(args, "jobs", None) is not None and args.jobs < 1:
        parser.error("--jobs must be at least 1")
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
