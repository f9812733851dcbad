"""End-to-end build tests for Quire.

These tests drive the ``quire`` CLI against a small but complete site:
Quire Data settings, Markdown posts with front matter, a JSON author list,
a collection view, a per-item view and Jinja2 templates with filters.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from quire.pipeline import main

from conftest import FIRST_POST, SECOND_POST, write


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_site(root: Path) -> Path:
    write(
        root,
        "quire.yaml",
        """
        views:
          - views/*.js
        report_path: build/report.json
        site:
          title: Field Notes
        """,
    )
    write(root, "posts/first.md", FIRST_POST)
    write(root, "posts/second.md", SECOND_POST)
    write(
        root,
        "data/authors.json",
        '{"authors": [{"name": "Ada Lovelace"}, {"name": "Grace Hopper"}]}',
    )
    write(
        root,
        "data/settings.qd",
        '''
        /// Site-wide settings.
        {
          tagline: "Notes from the field",
          launched: 2021-06-01,
          footer: d"
            Built with Quire.
            "
        }
        ''',
    )
    write(
        root,
        "views/authors.js",
        """
        function select() { return "data/authors.json"; }
        function process(docs) {
          return docs[0].authors.map((a) => ({ name: a.name, slug: slugify(a.name) }));
        }
        function template() { return "templates/author.txt"; }
        function outputPattern() { return "public/authors/{{ slug }}.txt"; }
        """,
    )
    write(
        root,
        "views/home.js",
        """
        function select() { return ["data/settings.qd", "posts/*.md"]; }
        function process(docs) {
          const settings = docs.find((d) => d.id === "settings");
          const posts = docs.filter((d) => d.id !== "settings" && d.published);
          return [{ settings, count: posts.length, launched: settings.launched }];
        }
        function template() { return "templates/home.html"; }
        function outputPattern() { return "public/index.html"; }
        """,
    )
    write(root, "templates/author.txt", "{{ site.title }}: {{ name }}\n")
    write(
        root,
        "templates/home.html",
        """
        <title>{{ site.title }}</title>
        <p>{{ settings.tagline }} since {{ launched | format_date("%B %Y") }}</p>
        <p>{{ count }} post(s)</p>
        <footer>{{ settings.footer }}</footer>
        """,
    )
    return root


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestBuildEndToEnd:
    @pytest.mark.integration
    def test_full_build(self, tmp_project_dir: Path):
        root = _make_site(tmp_project_dir)
        assert main(["build", "-p", str(root)]) == 0

        home = (root / "public" / "index.html").read_text(encoding="utf-8")
        assert "<title>Field Notes</title>" in home
        assert "Notes from the field since June 2021" in home
        assert "1 post(s)" in home
        assert "<footer>Built with Quire.</footer>" in home

        assert (root / "public" / "authors" / "ada-lovelace.txt").read_text(encoding="utf-8") == (
            "Field Notes: Ada Lovelace\n"
        )
        assert (root / "public" / "authors" / "grace-hopper.txt").is_file()

        report = json.loads((root / "build" / "report.json").read_text(encoding="utf-8"))
        assert report["succeeded"] is True
        assert report["total_outputs"] == 3

    @pytest.mark.integration
    def test_rebuild_reports_unchanged_outputs(self, tmp_project_dir: Path):
        root = _make_site(tmp_project_dir)
        assert main(["build", "-p", str(root)]) == 0
        before = (root / "public" / "index.html").stat().st_mtime_ns

        assert main(["build", "-p", str(root)]) == 0
        report = json.loads((root / "build" / "report.json").read_text(encoding="utf-8"))
        home = next(v for v in report["views"] if v["name"] == "home")
        assert home["written"] == []
        assert home["unchanged"] == ["public/index.html"]
        assert (root / "public" / "index.html").stat().st_mtime_ns == before

    @pytest.mark.integration
    def test_single_view_build(self, tmp_project_dir: Path):
        root = _make_site(tmp_project_dir)
        assert main(["build", "authors", "-p", str(root)]) == 0
        assert (root / "public" / "authors").is_dir()
        assert not (root / "public" / "index.html").exists()
