"""Shared pytest fixtures for the Quire test suite.

Provides reusable fixtures for:
- Temporary project directories with views, templates and sources
- A ready-made blog project (two posts, an index view and a post view)
- Config objects pointing at those projects
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from quire.config import Config, SandboxConfig
from quire.utils import set_verbose


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def write(root: Path, relative: str, content: str) -> Path:
    """Write dedented *content* to ``root / relative``, creating parents."""
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
    return path


INDEX_VIEW = """
    function select() { return "posts/*.md"; }

    function process(posts) {
      const published = posts.filter((post) => post.published);
      published.sort((a, b) => (a.date < b.date ? 1 : a.date > b.date ? -1 : 0));
      return [{ posts: published }];
    }

    function template() { return "templates/index.html"; }
    function outputPattern() { return "public/index.html"; }
"""

POST_VIEW = """
    function select() { return ["posts/*.md"]; }

    function process(post, index) {
      if (!post.published) return null;
      return {
        id: post.id,
        title: post.title,
        year: String(post.date.year),
        month: String(post.date.month).padStart(2, "0"),
        html: markdownToHtml(post.content),
        position: index,
      };
    }

    function template(item) { return "templates/post.html"; }
    function outputPattern(item) { return "public/{{ year }}/{{ month }}/{{ id }}/index.html"; }
"""

INDEX_TEMPLATE = """
    <ul>
    {% for post in posts %}<li>{{ post.title }} ({{ post.date | format_date("%Y-%m-%d") }})</li>
    {% endfor %}</ul>
"""

POST_TEMPLATE = """
    <h1>{{ title }}</h1>
    {{ html | safe }}
"""

FIRST_POST = """
    ---
    title: First post
    date: 2022-01-01
    published: true
    ---
    Hello **world**.
"""

SECOND_POST = """
    ---
    title: Draft post
    date: 2022-02-01
    published: false
    ---
    Not yet.
"""


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _quiet():
    """Reset verbose mode between tests."""
    set_verbose(False)
    yield
    set_verbose(False)


@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Empty project directory (auto-cleanup)."""
    project_dir = tmp_path / "site"
    project_dir.mkdir()
    yield project_dir


@pytest.fixture
def blog_project(tmp_project_dir: Path) -> Path:
    """A small blog: two Markdown posts, an index view and a per-post view."""
    write(tmp_project_dir, "views/index.js", INDEX_VIEW)
    write(tmp_project_dir, "views/post.js", POST_VIEW)
    write(tmp_project_dir, "templates/index.html", INDEX_TEMPLATE)
    write(tmp_project_dir, "templates/post.html", POST_TEMPLATE)
    write(tmp_project_dir, "posts/first.md", FIRST_POST)
    write(tmp_project_dir, "posts/second.md", SECOND_POST)
    return tmp_project_dir


@pytest.fixture
def project_config(tmp_project_dir: Path) -> Config:
    """Config for ``tmp_project_dir`` with a short script time budget."""
    return Config(
        project_dir=tmp_project_dir,
        sandbox=SandboxConfig(time_limit=0.5),
    )


@pytest.fixture
def blog_config(blog_project: Path) -> Config:
    return Config(project_dir=blog_project, site={"title": "My Blog"})
