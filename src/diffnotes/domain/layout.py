"""Global row layout of a rendered diff

Scroll position, cursor, search matches and comment targets all address the
diff by a single integer row. Every consumer walks the rows through
``iter_rows`` so the numbering cannot drift between them.
"""

from dataclasses import dataclass
from enum import Enum
from itertools import islice
from typing import Iterator, List, Optional, Sequence

from diffnotes.domain.models.diff import FileDiff, Hunk, HunkLine, LineType

SEPARATOR_RULE = "─" * 60
DEFAULT_EXPAND_INCREMENT = 8


class RowKind(str, Enum):
    """What a content row shows"""

    SEPARATOR = "separator"
    FILE_HEADER = "file_header"
    EXPAND_ABOVE = "expand_above"
    HUNK_HEADER = "hunk_header"
    LINE = "line"
    EXPAND_BELOW = "expand_below"
    BLANK = "blank"


@dataclass(frozen=True)
class DiffRow:
    """One content row of the diff view"""

    index: int
    kind: RowKind
    file_index: int
    file: FileDiff
    text: str  # Rendered text (inline mode)
    search_text: str = ""  # Searchable part of the row; "" if not searchable
    hunk_index: Optional[int] = None
    hunk: Optional[Hunk] = None
    line: Optional[HunkLine] = None


def format_line_number(num: Optional[int]) -> str:
    """Fixed-width line-number gutter ("  42 ")"""
    return f"{num:4} " if num is not None else "     "


def format_inline_line(line: HunkLine) -> str:
    """Inline rendering of a hunk line: gutter, prefix, content"""
    if line.line_type is LineType.ADDED:
        num = line.new_line_num
    elif line.line_type is LineType.REMOVED:
        num = line.old_line_num
    else:
        num = line.old_line_num if line.old_line_num is not None else line.new_line_num
    return f"{format_line_number(num)}{line.line_type.prefix}{line.content}"


def expand_above_text(hunk: Hunk, increment: int) -> str:
    lines_to_show = min(hunk.available_lines_above(), increment)
    return f"  ↑ Expand {lines_to_show} more lines ↑  "


def expand_below_text(increment: int) -> str:
    return f"  ↓ Expand {increment} more lines ↓  "


def iter_rows(
    files: Sequence[FileDiff], expand_increment: int = DEFAULT_EXPAND_INCREMENT
) -> Iterator[DiffRow]:
    """Walk every content row of the diff in display order

    Layout per file:
        separator   blank, rule, blank (every file but the first)
        header      "--- old", "+++ new", blank
        per hunk    [expand above], header, lines..., [expand below], blank
    """
    index = 0
    for file_index, file in enumerate(files):
        if file_index > 0:
            for text in ("", SEPARATOR_RULE, ""):
                yield DiffRow(index, RowKind.SEPARATOR, file_index, file, text)
                index += 1

        yield DiffRow(
            index, RowKind.FILE_HEADER, file_index, file, f"--- {file.old_path}", file.old_path
        )
        index += 1
        yield DiffRow(
            index, RowKind.FILE_HEADER, file_index, file, f"+++ {file.new_path}", file.new_path
        )
        index += 1
        yield DiffRow(index, RowKind.FILE_HEADER, file_index, file, "")
        index += 1

        for hunk_index, hunk in enumerate(file.hunks):
            common = dict(file_index=file_index, file=file, hunk_index=hunk_index, hunk=hunk)

            if hunk.available_lines_above() > 0:
                yield DiffRow(
                    index=index,
                    kind=RowKind.EXPAND_ABOVE,
                    text=expand_above_text(hunk, expand_increment),
                    **common,
                )
                index += 1

            yield DiffRow(
                index=index,
                kind=RowKind.HUNK_HEADER,
                text=hunk.header,
                search_text=hunk.header,
                **common,
            )
            index += 1

            for line in hunk.lines:
                yield DiffRow(
                    index=index,
                    kind=RowKind.LINE,
                    text=format_inline_line(line),
                    search_text=line.content,
                    line=line,
                    **common,
                )
                index += 1

            if file.new_file_lines is not None and hunk.can_expand_below(file.new_file_lines):
                yield DiffRow(
                    index=index,
                    kind=RowKind.EXPAND_BELOW,
                    text=expand_below_text(expand_increment),
                    **common,
                )
                index += 1

            yield DiffRow(index=index, kind=RowKind.BLANK, text="", **common)
            index += 1


def count_rows(files: Sequence[FileDiff]) -> int:
    """Total number of content rows"""
    return sum(1 for _ in iter_rows(files))


def row_at(files: Sequence[FileDiff], index: int) -> Optional[DiffRow]:
    """Row at a global index, or None past the end"""
    if index < 0:
        return None
    return next(islice(iter_rows(files), index, None), None)


def file_start_row(files: Sequence[FileDiff], file_index: int) -> Optional[int]:
    """Global index of the first header row of a file"""
    for row in iter_rows(files):
        if row.file_index == file_index and row.kind is RowKind.FILE_HEADER:
            return row.index
    return None


def window(
    files: Sequence[FileDiff],
    skip: int,
    limit: int,
    expand_increment: int = DEFAULT_EXPAND_INCREMENT,
) -> List[DiffRow]:
    """Rows [skip, skip + limit) for rendering a viewport"""
    return list(islice(iter_rows(files, expand_increment), skip, skip + limit))
