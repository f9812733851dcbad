"""Unit tests for block-string dedenting (quire.markup.dedent)."""

from __future__ import annotations

import pytest

from quire.markup import dedent, dedent_block, parse_value, trim_block_markers
from quire.markup.dedent import common_indent


class TestTrimBlockMarkers:
    @pytest.mark.unit
    def test_strips_leading_newline(self):
        assert trim_block_markers("\nabc") == "abc"

    @pytest.mark.unit
    def test_strips_leading_crlf(self):
        assert trim_block_markers("\r\nabc") == "abc"

    @pytest.mark.unit
    def test_strips_trailing_newline_and_indent(self):
        assert trim_block_markers("abc\n    ") == "abc"

    @pytest.mark.unit
    def test_strips_only_one_leading_newline(self):
        assert trim_block_markers("\n\nabc") == "\nabc"

    @pytest.mark.unit
    def test_leaves_inline_text_alone(self):
        assert trim_block_markers("  abc  ") == "  abc  "


class TestDedent:
    @pytest.mark.unit
    def test_four_space_indent_with_blank_line(self):
        text = "    one\n\n    two\n      three"
        assert dedent(text) == "one\n\ntwo\n  three"

    @pytest.mark.unit
    def test_whitespace_only_lines_lose_at_most_the_indent(self):
        assert dedent("    a\n  \n        \n    b") == "a\n\n    \nb"

    @pytest.mark.unit
    def test_tabs_count_as_one_character(self):
        assert dedent("\tone\n\t\ttwo") == "one\n\ttwo"

    @pytest.mark.unit
    def test_no_common_indent_is_unchanged(self):
        assert dedent("one\n  two") == "one\n  two"

    @pytest.mark.unit
    def test_all_blank(self):
        assert dedent("\n   \n") == "\n   \n"

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "text",
        [
            "    a\n      b\n    c",
            "  x\n\n  y\n   ",
            "\t\ta\n\t\t\tb",
            "plain",
            "",
            "   \n      lonely\n",
        ],
    )
    def test_idempotent(self, text):
        once = dedent(text)
        assert dedent(once) == once

    @pytest.mark.unit
    def test_common_indent_ignores_blank_lines(self):
        assert common_indent(["    a", "", "  ", "      b"]) == 4


class TestDedentBlock:
    @pytest.mark.unit
    def test_block(self):
        raw = "\n    Dear reader,\n\n      indented\n    bye\n    "
        assert dedent_block(raw) == "Dear reader,\n\n  indented\nbye"

    @pytest.mark.unit
    def test_four_spaces_stripped_and_blank_lines_kept(self):
        value = parse_value('d"\n    alpha\n\n    beta\n    "')
        assert value.value == "alpha\n\nbeta"

    @pytest.mark.unit
    def test_indent_comes_from_the_string_itself(self):
        value = parse_value('{\n        body: d"\n          hi\n            there\n          "\n}')
        assert value["body"].value == "hi\n  there"
