"""Tests for the global row layout"""

import pytest

from diffnotes.domain.layout import (
    SEPARATOR_RULE,
    RowKind,
    count_rows,
    format_inline_line,
    format_line_number,
    iter_rows,
    row_at,
    window,
)
from diffnotes.domain.models.diff import HunkLine, LineType
from diffnotes.infrastructure.diff_parser import parse_diff

LAYOUT_DIFF = (
    "diff --git a/a.py b/a.py\n"
    "--- a/a.py\n"
    "+++ b/a.py\n"
    "@@ -10,2 +10,2 @@\n"
    " x = 1\n"
    "-y = 2\n"
    "+y = 3\n"
    "@@ -30,1 +30,1 @@\n"
    "-p\n"
    "+q\n"
    "diff --git a/b.py b/b.py\n"
    "--- a/b.py\n"
    "+++ b/b.py\n"
    "@@ -1,1 +1,1 @@\n"
    "-m\n"
    "+n\n"
)


@pytest.fixture
def files():
    return parse_diff(LAYOUT_DIFF)


class TestIterRows:
    """Tests for iter_rows"""

    def test_row_kinds_in_display_order(self, files):
        """Test separator, header, expand and blank rows around the hunks"""
        kinds = [row.kind for row in iter_rows(files)]

        assert kinds == [
            # a.py
            RowKind.FILE_HEADER,
            RowKind.FILE_HEADER,
            RowKind.FILE_HEADER,
            RowKind.EXPAND_ABOVE,
            RowKind.HUNK_HEADER,
            RowKind.LINE,
            RowKind.LINE,
            RowKind.LINE,
            RowKind.EXPAND_BELOW,
            RowKind.BLANK,
            RowKind.EXPAND_ABOVE,
            RowKind.HUNK_HEADER,
            RowKind.LINE,
            RowKind.LINE,
            RowKind.BLANK,
            # b.py
            RowKind.SEPARATOR,
            RowKind.SEPARATOR,
            RowKind.SEPARATOR,
            RowKind.FILE_HEADER,
            RowKind.FILE_HEADER,
            RowKind.FILE_HEADER,
            RowKind.HUNK_HEADER,
            RowKind.LINE,
            RowKind.LINE,
            RowKind.BLANK,
        ]

    def test_indices_are_consecutive(self, files):
        """Test that row indices count up from zero"""
        rows = list(iter_rows(files))
        assert [row.index for row in rows] == list(range(len(rows)))

    def test_file_header_text(self, files):
        """Test the ---/+++ header rows and the separator rule"""
        rows = list(iter_rows(files))

        assert rows[0].text == "--- a.py"
        assert rows[1].text == "+++ a.py"
        assert rows[16].text == SEPARATOR_RULE
        assert rows[18].text == "--- b.py"

    def test_separator_rows_belong_to_following_file(self, files):
        """Test that separators carry the file they introduce"""
        separators = [row for row in iter_rows(files) if row.kind is RowKind.SEPARATOR]
        assert {row.file.path for row in separators} == {"b.py"}

    def test_expand_row_text(self, files):
        """Test the expand button labels"""
        rows = list(iter_rows(files, expand_increment=5))

        assert rows[3].text == "  ↑ Expand 5 more lines ↑  "
        assert rows[8].text == "  ↓ Expand 5 more lines ↓  "

    def test_expand_above_limited_by_available_lines(self):
        """Test that the label never offers more lines than exist above"""
        files = parse_diff("--- a/f\n+++ b/f\n@@ -3,1 +3,1 @@\n-a\n+b\n")
        rows = list(iter_rows(files, expand_increment=8))

        assert rows[3].kind is RowKind.EXPAND_ABOVE
        assert rows[3].text == "  ↑ Expand 2 more lines ↑  "

    def test_search_text(self, files):
        """Test which rows are searchable"""
        rows = list(iter_rows(files))

        assert rows[0].search_text == "a.py"
        assert rows[4].search_text == "@@ -10,2 +10,2 @@"
        assert rows[6].search_text == "y = 2"
        assert rows[3].search_text == ""
        assert rows[16].search_text == ""


class TestCounting:
    """Tests for count_rows, row_at and window"""

    def test_count_rows(self, files):
        """Test the total matches the walk"""
        assert count_rows(files) == 25

    def test_count_rows_empty(self):
        """Test that no files means no rows"""
        assert count_rows([]) == 0

    def test_row_at(self, files):
        """Test random access by global index"""
        assert row_at(files, 22).line.content == "m"
        assert row_at(files, 25) is None
        assert row_at(files, -1) is None

    def test_window(self, files):
        """Test a viewport window"""
        rows = window(files, 4, 3)
        assert [row.index for row in rows] == [4, 5, 6]

    def test_window_past_end(self, files):
        """Test that a window is cut at the last row"""
        assert len(window(files, 23, 10)) == 2


class TestLineFormatting:
    """Tests for inline line rendering"""

    def test_format_line_number(self):
        """Test fixed-width gutter"""
        assert format_line_number(42) == "  42 "
        assert format_line_number(None) == "     "

    def test_added_line_uses_new_number(self):
        """Test added lines show the new-side number"""
        line = HunkLine(LineType.ADDED, None, 7, "x")
        assert format_inline_line(line) == "   7 +x"

    def test_removed_line_uses_old_number(self):
        """Test removed lines show the old-side number"""
        line = HunkLine(LineType.REMOVED, 5, None, "x")
        assert format_inline_line(line) == "   5 -x"

    def test_context_line(self):
        """Test context lines show a number and a space prefix"""
        line = HunkLine(LineType.CONTEXT, 3, 4, "x")
        assert format_inline_line(line) == "   3  x"
