"""Side-by-side alignment of a file diff

Left column shows the old side, right column the new side. A run of removed
lines is paired row by row with the run of added lines that immediately
follows it; the shorter run is padded with blank rows so both columns always
advance by the same number of rows.
"""

from dataclasses import dataclass
from enum import Enum
from itertools import islice
from typing import Iterator, List, Optional, Sequence, Tuple

from diffnotes.domain.layout import format_line_number
from diffnotes.domain.models.diff import FileDiff, Hunk, HunkLine, LineType


class ColumnKind(str, Enum):
    HUNK_HEADER = "hunk_header"
    LINE = "line"
    PADDING = "padding"
    BLANK = "blank"


@dataclass(frozen=True)
class ColumnLine:
    """One rendered cell of a column, always exactly the column width"""

    text: str
    kind: ColumnKind
    line_type: Optional[LineType] = None


@dataclass(frozen=True)
class AlignedRow:
    """One row of the side-by-side view before rendering"""

    kind: ColumnKind  # HUNK_HEADER, LINE or BLANK
    hunk: Hunk
    left: Optional[HunkLine] = None
    right: Optional[HunkLine] = None


def align_hunk(hunk: Hunk) -> List[Tuple[Optional[HunkLine], Optional[HunkLine]]]:
    """Pair the lines of a hunk into (left, right) rows"""
    pairs: List[Tuple[Optional[HunkLine], Optional[HunkLine]]] = []
    lines = hunk.lines
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.line_type is LineType.CONTEXT:
            pairs.append((line, line))
            i += 1
        elif line.line_type is LineType.REMOVED:
            removed_start = i
            while i < len(lines) and lines[i].line_type is LineType.REMOVED:
                i += 1
            added_start = i
            while i < len(lines) and lines[i].line_type is LineType.ADDED:
                i += 1
            removed = lines[removed_start:added_start]
            added = lines[added_start:i]
            for j in range(max(len(removed), len(added))):
                pairs.append(
                    (
                        removed[j] if j < len(removed) else None,
                        added[j] if j < len(added) else None,
                    )
                )
        else:
            # Added run with no removed run before it
            pairs.append((None, line))
            i += 1
    return pairs


def iter_aligned_rows(file: FileDiff) -> Iterator[AlignedRow]:
    """Rows of the side-by-side view: per hunk a header, the paired lines, a blank"""
    for hunk in file.hunks:
        yield AlignedRow(ColumnKind.HUNK_HEADER, hunk)
        for left, right in align_hunk(hunk):
            yield AlignedRow(ColumnKind.LINE, hunk, left, right)
        yield AlignedRow(ColumnKind.BLANK, hunk)


def count_aligned_rows(file: FileDiff) -> int:
    return sum(len(align_hunk(hunk)) + 2 for hunk in file.hunks)


def aligned_row_index(file: FileDiff, hunk_index: int, line: Optional[HunkLine] = None) -> int:
    """Side-by-side row showing a line of a hunk (the hunk header if line is None)"""
    offset = 0
    for index, hunk in enumerate(file.hunks):
        pairs = align_hunk(hunk)
        if index == hunk_index:
            if line is None:
                return offset
            for position, (left, right) in enumerate(pairs):
                if left is line or right is line:
                    return offset + 1 + position
            return offset
        offset += len(pairs) + 2
    return offset


def apply_horizontal_scroll(text: str, offset: int, max_width: int) -> str:
    """Scroll text left by offset characters and clip it to max_width

    "<" replaces the first visible character when text is scrolled past its
    start, ">" replaces the last one when text continues past the edge.
    """
    if not text or max_width <= 0:
        return ""

    start = min(max(offset, 0), len(text))
    has_left = start > 0
    available = max_width - 1 if has_left else max_width

    end = min(start + available, len(text))
    has_right = end < len(text)
    if has_right:
        end = max(end - 1, start)

    return f"{'<' if has_left else ''}{text[start:end]}{'>' if has_right else ''}"


def fit_width(text: str, width: int) -> str:
    """Pad or truncate text to exactly width characters"""
    if len(text) > width:
        return text[:width]
    return text + " " * (width - len(text))


def format_column_line(line: HunkLine, is_left: bool, width: int, horizontal_offset: int) -> ColumnLine:
    """Gutter plus horizontally scrolled "<prefix><content>" for one side"""
    gutter = format_line_number(line.old_line_num if is_left else line.new_line_num)
    content = f"{line.line_type.prefix}{line.content}"
    scrolled = apply_horizontal_scroll(content, horizontal_offset, max(width - len(gutter), 0))
    return ColumnLine(fit_width(gutter + scrolled, width), ColumnKind.LINE, line.line_type)


def _padding(width: int, kind: ColumnKind = ColumnKind.PADDING) -> ColumnLine:
    return ColumnLine(" " * width, kind)


def render_side_by_side(
    file: Optional[FileDiff],
    skip: int,
    limit: int,
    width: int,
    horizontal_offset: int = 0,
) -> Tuple[List[ColumnLine], List[ColumnLine]]:
    """Render rows [skip, skip + limit) of a file as two aligned columns

    Only the requested window is materialized; the walk stops as soon as the
    window is complete.

    Args:
        file: File to render (None renders nothing)
        skip: First row to emit
        limit: Maximum number of rows to emit
        width: Width of each column
        horizontal_offset: Characters scrolled off to the left

    Returns:
        (left, right) column lines of equal length
    """
    left: List[ColumnLine] = []
    right: List[ColumnLine] = []
    if file is None or limit <= 0:
        return left, right

    for row in islice(iter_aligned_rows(file), max(skip, 0), max(skip, 0) + limit):
        if row.kind is ColumnKind.HUNK_HEADER:
            header = fit_width(apply_horizontal_scroll(row.hunk.header, horizontal_offset, width), width)
            left.append(ColumnLine(header, ColumnKind.HUNK_HEADER))
            right.append(ColumnLine(header, ColumnKind.HUNK_HEADER))
        elif row.kind is ColumnKind.BLANK:
            left.append(_padding(width, ColumnKind.BLANK))
            right.append(_padding(width, ColumnKind.BLANK))
        else:
            left.append(
                format_column_line(row.left, True, width, horizontal_offset)
                if row.left is not None
                else _padding(width)
            )
            right.append(
                format_column_line(row.right, False, width, horizontal_offset)
                if row.right is not None
                else _padding(width)
            )

    return left, right


def join_columns(left: Sequence[ColumnLine], right: Sequence[ColumnLine], divider: str = " │ ") -> List[str]:
    """Combine two columns into printable lines"""
    return [f"{lhs.text}{divider}{rhs.text}" for lhs, rhs in zip(left, right)]
