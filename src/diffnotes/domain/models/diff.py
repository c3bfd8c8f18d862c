"""Diff models - files, hunks and lines of a unified diff"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class LineType(str, Enum):
    """Kind of a line inside a hunk"""

    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"

    @property
    def prefix(self) -> str:
        """Unified diff prefix character for this line type"""
        if self is LineType.ADDED:
            return "+"
        if self is LineType.REMOVED:
            return "-"
        return " "


@dataclass
class HunkLine:
    """A single line of a hunk with its old/new file line numbers"""

    line_type: LineType
    old_line_num: Optional[int]  # None for added lines
    new_line_num: Optional[int]  # None for removed lines
    content: str  # Line text without the +/-/space prefix

    @property
    def display_line_num(self) -> Optional[int]:
        """Line number a reviewer refers to when commenting on this line"""
        if self.line_type is LineType.ADDED:
            return self.new_line_num
        if self.line_type is LineType.REMOVED:
            return self.old_line_num
        return self.new_line_num if self.new_line_num is not None else self.old_line_num


@dataclass
class Hunk:
    """Represents a hunk (block of changes) in a file"""

    old_start: int  # Starting line number in old file
    old_lines: int  # Number of lines in old file
    new_start: int  # Starting line number in new file
    new_lines: int  # Number of lines in new file
    header: str  # Verbatim "@@ ... @@" marker, used as hunk identity
    lines: List[HunkLine] = field(default_factory=list)

    def available_lines_above(self) -> int:
        """Number of context lines an "expand above" could reveal

        This is an upper bound: the diff engine may produce fewer lines.
        """
        return max(min(self.old_start - 1, self.new_start - 1), 0)

    def can_expand_below(self, file_lines: int) -> bool:
        """Check if the hunk ends before the (estimated) end of the new file"""
        return self.new_start + self.new_lines < file_lines

    @property
    def old_side_count(self) -> int:
        """Count of context + removed lines actually present"""
        return sum(1 for line in self.lines if line.line_type is not LineType.ADDED)

    @property
    def new_side_count(self) -> int:
        """Count of context + added lines actually present"""
        return sum(1 for line in self.lines if line.line_type is not LineType.REMOVED)


@dataclass
class FileDiff:
    """Represents the changes of a single file"""

    old_path: str = ""
    new_path: str = ""
    hunks: List[Hunk] = field(default_factory=list)
    new_file_lines: Optional[int] = None  # Estimate from the last hunk, not authoritative

    @property
    def path(self) -> str:
        """Path used to key comments (new side, old side for deletions)"""
        if self.new_path and self.new_path != "/dev/null":
            return self.new_path
        return self.old_path

    @property
    def total_lines_changed(self) -> int:
        """Number of added and removed lines across all hunks"""
        return sum(
            1
            for hunk in self.hunks
            for line in hunk.lines
            if line.line_type is not LineType.CONTEXT
        )
