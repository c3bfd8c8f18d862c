"""Map a cursor row onto the thing a new comment would be attached to"""

from dataclasses import dataclass
from typing import Optional, Sequence

from diffnotes.domain.layout import RowKind, iter_rows
from diffnotes.domain.models.comment import (
    CommentLevel,
    CommentLocation,
    FileLocation,
    HunkLocation,
    LineLocation,
    LineSide,
)
from diffnotes.domain.models.diff import FileDiff


@dataclass(frozen=True)
class CommentTarget:
    """Resolved comment context at a cursor row

    file_path is None when the cursor is past all content or there is no diff.
    """

    level: CommentLevel
    file_path: Optional[str] = None
    line_number: Optional[int] = None
    side: Optional[LineSide] = None
    hunk_header: Optional[str] = None

    @property
    def location(self) -> CommentLocation:
        if self.level is CommentLevel.LINE and self.line_number is not None and self.side is not None:
            return LineLocation(number=self.line_number, side=self.side)
        if self.level is CommentLevel.HUNK and self.hunk_header:
            return HunkLocation(header=self.hunk_header)
        return FileLocation()


NO_TARGET = CommentTarget(level=CommentLevel.FILE)


def resolve_comment_target(files: Sequence[FileDiff], cursor_row: int) -> CommentTarget:
    """Resolve the comment level and identity at cursor_row

    Rules:
    - file separator / file header rows -> FILE level for that file
    - expand buttons, hunk header, blank row after a hunk -> HUNK level
    - hunk lines -> LINE level; added lines use the new number, removed lines
      the old one, context lines the new number if present else the old one
    - past all content or no files -> FILE level without a file
    """
    if not files or cursor_row < 0:
        return NO_TARGET

    for row in iter_rows(files):
        if row.index < cursor_row:
            continue

        file_path = row.file.path
        if row.kind in (RowKind.SEPARATOR, RowKind.FILE_HEADER):
            return CommentTarget(CommentLevel.FILE, file_path)

        header = row.hunk.header if row.hunk is not None else None
        if row.kind is RowKind.LINE and row.line is not None:
            number = row.line.display_line_num
            if number is not None:
                return CommentTarget(
                    CommentLevel.LINE,
                    file_path,
                    line_number=number,
                    side=LineSide.from_line_type(row.line.line_type),
                    hunk_header=header,
                )
        return CommentTarget(CommentLevel.HUNK, file_path, hunk_header=header)

    return NO_TARGET
