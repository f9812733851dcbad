"""Unit tests for the build orchestrator (quire.pipeline).

Tests cover:
- The blog scenario: a collection index and per-post pages
- Item-level failures (timeouts, render errors, bad output paths)
- Output collisions across views
- The on_error policy for sources that fail to load
- Collection-mode aborts
- View filtering, unknown views, report files, unchanged outputs
- load_config resolution
- The CLI entry point (build, check, fmt)
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from quire.config import Config, SandboxConfig
from quire.markup import parse
from quire.pipeline import Pipeline, load_config, main

from conftest import write

ITEMS_VIEW = """
    function select() { return "items/*.qd"; }
    function process(item, index) {
      if (item.slow) { while (true) {} }
      return { id: item.id, index };
    }
    function template() { return "t.txt"; }
    function outputPattern() { return "out/{{ id }}.txt"; }
"""


def items_project(root: Path, **items: str) -> None:
    write(root, "views/items.js", ITEMS_VIEW)
    write(root, "t.txt", "{{ view }}:{{ id }}:{{ index }}")
    for name, text in items.items():
        write(root, f"items/{name}.qd", text)


# ---------------------------------------------------------------------------
# Blog scenario
# ---------------------------------------------------------------------------


class TestBlogBuild:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_index_lists_published_posts(self, blog_config: Config, blog_project: Path):
        report = await Pipeline(blog_config).run()
        assert report.succeeded, report.all_failures
        index = (blog_project / "public" / "index.html").read_text(encoding="utf-8")
        assert "First post (2022-01-01)" in index
        assert "Draft post" not in index

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_post_pages(self, blog_config: Config, blog_project: Path):
        report = await Pipeline(blog_config).run()
        page = blog_project / "public" / "2022" / "01" / "first" / "index.html"
        html = page.read_text(encoding="utf-8")
        assert "<h1>First post</h1>" in html
        assert "<strong>world</strong>" in html
        assert not (blog_project / "public" / "2022" / "02").exists()

        post = report.view("post")
        assert post.mode == "each"
        assert post.documents == 2
        assert post.skipped == 1
        assert post.written == ["public/2022/01/first/index.html"]
        assert report.view("index").mode == "collection"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_views_run_in_order(self, blog_config: Config):
        pipeline = Pipeline(blog_config)
        report = await pipeline.run()
        assert [v.name for v in report.views] == ["index", "post"]
        assert [v.name for v in pipeline.views] == ["index", "post"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_second_build_leaves_outputs_unchanged(self, blog_config: Config):
        await Pipeline(blog_config).run()
        report = await Pipeline(blog_config).run()
        assert report.view("index").written == []
        assert report.view("index").unchanged == ["public/index.html"]
        assert report.total_outputs == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_site_settings_reach_scripts_and_templates(self, tmp_project_dir: Path):
        write(
            tmp_project_dir,
            "views/home.js",
            """
            function select() { return []; }
            function process(items) { return [{ heading: config.title }]; }
            function template() { return "home.txt"; }
            function outputPattern() { return "home.txt.out"; }
            """,
        )
        write(tmp_project_dir, "home.txt", "{{ heading }}|{{ site.title }}")
        config = Config(project_dir=tmp_project_dir, site={"title": "Quire"})
        report = await Pipeline(config).run()
        assert report.succeeded, report.all_failures
        assert (tmp_project_dir / "home.txt.out").read_text(encoding="utf-8") == "Quire|Quire"


# ---------------------------------------------------------------------------
# Item-level failures
# ---------------------------------------------------------------------------


class TestItemFailures:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_fails_one_item_only(self, tmp_project_dir: Path):
        items_project(
            tmp_project_dir,
            a="{ slow: false }",
            b="{ slow: true }",
            c="{ slow: false }",
        )
        config = Config(project_dir=tmp_project_dir, sandbox=SandboxConfig(time_limit=0.2))
        report = await Pipeline(config).run()

        view = report.view("items")
        assert not view.aborted
        assert [f.kind for f in view.failures] == ["timeout"]
        assert view.failures[0].hook == "process"
        assert view.failures[0].source == "items/b.qd"
        assert (tmp_project_dir / "out" / "a.txt").read_text(encoding="utf-8") == "items:a:0"
        assert (tmp_project_dir / "out" / "c.txt").read_text(encoding="utf-8") == "items:c:2"
        assert not (tmp_project_dir / "out" / "b.txt").exists()
        assert report.succeeded is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_thrown_error_is_item_level(self, tmp_project_dir: Path, project_config: Config):
        write(
            tmp_project_dir,
            "views/items.js",
            ITEMS_VIEW.replace("if (item.slow) { while (true) {} }", 'if (item.bad) throw new Error("no good");'),
        )
        write(tmp_project_dir, "t.txt", "{{ id }}")
        write(tmp_project_dir, "items/a.qd", "{ bad: true }")
        write(tmp_project_dir, "items/b.qd", "{ bad: false }")
        report = await Pipeline(project_config).run()
        view = report.view("items")
        assert [f.kind for f in view.failures] == ["sandbox"]
        assert "no good" in view.failures[0].message
        assert view.written == ["out/b.txt"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_escaping_output_path(self, tmp_project_dir: Path, project_config: Config):
        items_project(tmp_project_dir, a="{ slow: false }")
        write(tmp_project_dir, "items/b.qd", '{ id: "../../escape", slow: false }')
        report = await Pipeline(project_config).run()
        view = report.view("items")
        assert [f.kind for f in view.failures] == ["output-path"]
        assert view.written == ["out/a.txt"]
        assert not (tmp_project_dir.parent / "escape.txt").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_template_in_each_mode(self, tmp_project_dir: Path, project_config: Config):
        items_project(tmp_project_dir, a="{ slow: false }")
        (tmp_project_dir / "t.txt").unlink()
        report = await Pipeline(project_config).run()
        view = report.view("items")
        assert not view.aborted
        assert view.failures[0].kind == "render"
        assert view.failures[0].template == "t.txt"


# ---------------------------------------------------------------------------
# Collisions
# ---------------------------------------------------------------------------


class TestCollisions:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_later_view_loses(self, tmp_project_dir: Path, project_config: Config):
        for name in ("first", "second"):
            write(
                tmp_project_dir,
                f"views/{name}.js",
                f"""
                function select() {{ return []; }}
                function process(items) {{ return [{{ who: "{name}" }}]; }}
                function template() {{ return "t.txt"; }}
                function outputPattern() {{ return "out/same.txt"; }}
                """,
            )
        write(tmp_project_dir, "t.txt", "{{ who }}")
        report = await Pipeline(project_config).run()
        assert report.view("first").written == ["out/same.txt"]
        second = report.view("second")
        assert [f.kind for f in second.failures] == ["output-path"]
        assert "first" in second.failures[0].message
        assert (tmp_project_dir / "out" / "same.txt").read_text(encoding="utf-8") == "first"


# ---------------------------------------------------------------------------
# Source errors and the on_error policy
# ---------------------------------------------------------------------------


class TestOnErrorPolicy:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_skip(self, tmp_project_dir: Path):
        items_project(tmp_project_dir, a="{ slow: false }", b="{ slow: }")
        config = Config(project_dir=tmp_project_dir, on_error="skip")
        report = await Pipeline(config).run()
        view = report.view("items")
        assert not view.aborted
        assert view.documents == 1
        assert view.failures[0].kind == "parse"
        assert view.failures[0].source == "items/b.qd"
        assert view.failures[0].line == 1
        assert view.written == ["out/a.txt"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_abort(self, tmp_project_dir: Path):
        items_project(tmp_project_dir, a="{ slow: false }", b="{ slow: }")
        config = Config(project_dir=tmp_project_dir, on_error="abort")
        report = await Pipeline(config).run()
        view = report.view("items")
        assert view.aborted
        assert view.outputs == 0
        assert view.failures[0].kind == "parse"
        assert not (tmp_project_dir / "out").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_finite_yaml_number_is_a_source_failure(self, tmp_project_dir: Path):
        write(tmp_project_dir, "views/items.js", ITEMS_VIEW.replace("items/*.qd", "items/*.yaml"))
        write(tmp_project_dir, "t.txt", "{{ id }}")
        write(tmp_project_dir, "items/a.yaml", "slow: false\n")
        write(tmp_project_dir, "items/b.yaml", "slow: false\nscore: .nan\n")
        config = Config(project_dir=tmp_project_dir, on_error="skip")
        report = await Pipeline(config).run()
        view = report.view("items")
        assert not view.aborted
        assert [f.kind for f in view.failures] == ["parse"]
        assert view.failures[0].source == "items/b.yaml"
        assert view.written == ["out/a.txt"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_deeply_nested_source_is_a_source_failure(self, tmp_project_dir: Path):
        items_project(tmp_project_dir, a="[" * 5000 + "]" * 5000, b="{ slow: false }")
        config = Config(project_dir=tmp_project_dir, on_error="skip")
        report = await Pipeline(config).run()
        view = report.view("items")
        assert [f.kind for f in view.failures] == ["parse"]
        assert view.failures[0].source == "items/a.qd"
        assert "nesting deeper" in view.failures[0].message
        assert view.written == ["out/b.txt"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_abort_only_stops_that_view(self, blog_project: Path):
        items_project(blog_project, a="{ slow: }")
        config = Config(project_dir=blog_project, on_error="abort")
        report = await Pipeline(config).run()
        assert report.view("items").aborted
        assert report.view("index").succeeded
        assert report.view("post").succeeded


# ---------------------------------------------------------------------------
# Collection-mode aborts
# ---------------------------------------------------------------------------


COLLECTION_VIEW = """
    function select() { return "items/*.qd"; }
    function process(items) { %s }
    function template(item) { return item.template; }
    function outputPattern(item) { return "out/{{ name }}.txt"; }
"""


class TestCollectionAbort:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_process_error_aborts_view(self, tmp_project_dir: Path, project_config: Config):
        write(tmp_project_dir, "views/all.js", COLLECTION_VIEW % 'throw new Error("boom");')
        write(tmp_project_dir, "items/a.qd", "{}")
        report = await Pipeline(project_config).run()
        view = report.view("all")
        assert view.aborted
        assert view.failures[0].kind == "sandbox"
        assert view.failures[0].hook == "process"
        assert view.outputs == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_render_error_releases_claims(self, tmp_project_dir: Path, project_config: Config):
        body = 'return [{ name: "a", template: "t.txt" }, { name: "b", template: "missing.txt" }];'
        write(tmp_project_dir, "views/all.js", COLLECTION_VIEW % body)
        write(tmp_project_dir, "views/later.js", COLLECTION_VIEW % 'return [{ name: "a", template: "t.txt" }];')
        write(tmp_project_dir, "t.txt", "{{ name }}")
        report = await Pipeline(project_config).run()
        first = report.view("all")
        assert first.aborted
        assert first.failures[0].kind == "render"
        assert first.failures[0].source == "all[1]"
        assert report.view("later").written == ["out/a.txt"]


# ---------------------------------------------------------------------------
# View selection and reports
# ---------------------------------------------------------------------------


class TestViewSelection:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_only_named_views_run(self, blog_config: Config, blog_project: Path):
        report = await Pipeline(blog_config).run(["post"])
        assert [v.name for v in report.views] == ["post"]
        assert not (blog_project / "public" / "index.html").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_view(self, blog_config: Config):
        report = await Pipeline(blog_config).run(["nope"])
        assert report.views == []
        assert report.failures[0].view == "nope"
        assert "not defined" in report.failures[0].message
        assert report.succeeded is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_views_is_an_empty_success(self, project_config: Config):
        report = await Pipeline(project_config).run()
        assert report.views == []
        assert report.succeeded

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_view_missing_hooks_is_aborted(self, tmp_project_dir: Path, project_config: Config):
        write(tmp_project_dir, "views/broken.js", "function select() { return []; }")
        report = await Pipeline(project_config).run()
        view = report.view("broken")
        assert view.aborted
        assert view.failures[0].kind == "view"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_report_file(self, blog_project: Path):
        config = Config(project_dir=blog_project, report_path=Path("build/report.json"))
        await Pipeline(config).run()
        data = json.loads((blog_project / "build" / "report.json").read_text(encoding="utf-8"))
        assert data["succeeded"] is True
        assert [v["name"] for v in data["views"]] == ["index", "post"]


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


class TestLoadConfig:
    @pytest.mark.unit
    def test_project_file_is_discovered(self, tmp_project_dir: Path):
        write(tmp_project_dir, "quire.yaml", "on_error: abort\n")
        config = load_config(str(tmp_project_dir))
        assert config.on_error == "abort"
        assert config.root == tmp_project_dir.resolve()

    @pytest.mark.unit
    def test_explicit_file_wins(self, tmp_project_dir: Path, tmp_path: Path):
        write(tmp_project_dir, "quire.yaml", "on_error: abort\n")
        explicit = write(tmp_path, "other.json", '{"max_workers": 2}')
        config = load_config(str(tmp_project_dir), str(explicit))
        assert config.max_workers == 2
        assert config.on_error == "skip"

    @pytest.mark.unit
    def test_defaults_without_file(self, tmp_project_dir: Path, monkeypatch):
        monkeypatch.delenv("QUIRE_ON_ERROR", raising=False)
        config = load_config(str(tmp_project_dir))
        assert config.project_dir == tmp_project_dir
        assert config.on_error == "skip"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


class TestMain:
    @pytest.mark.unit
    def test_build_success(self, blog_project: Path):
        assert main(["build", "-p", str(blog_project)]) == 0
        assert (blog_project / "public" / "index.html").is_file()

    @pytest.mark.unit
    def test_build_failure_exit_code(self, tmp_project_dir: Path):
        items_project(tmp_project_dir, a="{ slow: }")
        assert main(["build", "-p", str(tmp_project_dir), "--on-error", "abort"]) == 1

    @pytest.mark.unit
    def test_build_missing_project(self, tmp_path: Path):
        assert main(["build", "-p", str(tmp_path / "missing")]) == 1

    @pytest.mark.unit
    def test_build_report_option(self, blog_project: Path, tmp_path: Path):
        target = tmp_path / "report.json"
        assert main(["build", "-p", str(blog_project), "--report", str(target), "-j", "2"]) == 0
        assert json.loads(target.read_text(encoding="utf-8"))["total_outputs"] == 2

    @pytest.mark.unit
    def test_jobs_must_be_positive(self, blog_project: Path):
        with pytest.raises(SystemExit):
            main(["build", "-p", str(blog_project), "--jobs", "0"])

    @pytest.mark.unit
    def test_check(self, tmp_path: Path):
        good = write(tmp_path, "good.qd", "{ a: 1 }")
        bad = write(tmp_path, "bad.qd", "{ a: }")
        assert main(["check", str(good)]) == 0
        assert main(["check", str(good), str(bad)]) == 1

    @pytest.mark.unit
    def test_fmt(self, tmp_path: Path, capsys):
        source = write(tmp_path, "data.json", '{"title": "Hi", "tags": ["a", "b"], "n": 2}')
        assert main(["fmt", str(source)]) == 0
        out = capsys.readouterr().out
        assert parse(out).root.to_python() == {"title": "Hi", "tags": ["a", "b"], "n": 2}

    @pytest.mark.unit
    def test_fmt_parse_error(self, tmp_path: Path):
        source = write(tmp_path, "bad.qd", "[1, 2")
        assert main(["fmt", str(source)]) == 1
