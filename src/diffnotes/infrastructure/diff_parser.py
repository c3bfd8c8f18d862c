"""Unified diff parser"""

import logging
import re
from typing import List, Optional, Tuple

from diffnotes.domain.models.diff import FileDiff, Hunk, HunkLine, LineType

logger = logging.getLogger(__name__)

HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))?\s*@@")

_LINE_TYPES = {
    "+": LineType.ADDED,
    "-": LineType.REMOVED,
    " ": LineType.CONTEXT,
}


def _normalize_path(raw: str, prefix: str) -> str:
    """Strip the "a/" / "b/" prefix, quoting and any trailing timestamp"""
    path = raw.split("\t", 1)[0].strip()
    if len(path) >= 2 and path.startswith('"') and path.endswith('"'):
        path = path[1:-1]
    if path.startswith(prefix):
        path = path[len(prefix):]
    return path


def _paths_from_git_header(line: str) -> Tuple[str, str]:
    """Extract paths from "diff --git a/old b/new" (fallback when ---/+++ are absent)"""
    rest = line[len("diff --git "):].strip()
    split_at = rest.find(" b/")
    if not rest.startswith("a/") or split_at < 0:
        return "", ""
    return rest[2:split_at], rest[split_at + 3:]


def parse_hunk_header(line: str) -> Optional[Hunk]:
    """Parse "@@ -old_start,old_lines +new_start,new_lines @@"

    A missing ",lines" component defaults to 1.

    Returns:
        Empty Hunk, or None if the header cannot be parsed
    """
    match = HUNK_HEADER_RE.match(line)
    if not match:
        return None
    return Hunk(
        old_start=int(match.group(1)),
        old_lines=int(match.group(2)) if match.group(2) is not None else 1,
        new_start=int(match.group(3)),
        new_lines=int(match.group(4)) if match.group(4) is not None else 1,
        header=line,
    )


class _DiffScanner:
    """Single left-to-right scan with file/hunk accumulators"""

    def __init__(self):
        self.files: List[FileDiff] = []
        self.current_file: Optional[FileDiff] = None
        self.current_hunk: Optional[Hunk] = None
        self.old_line_num = 0
        self.new_line_num = 0
        self.old_remaining = 0
        self.new_remaining = 0

    def _hunk_open(self) -> bool:
        """A hunk is open while its header counts are not yet consumed"""
        return self.current_hunk is not None and (self.old_remaining > 0 or self.new_remaining > 0)

    def flush_hunk(self) -> None:
        if self.current_hunk is not None and self.current_file is not None:
            self.current_file.hunks.append(self.current_hunk)
        self.current_hunk = None

    def flush_file(self) -> None:
        self.flush_hunk()
        if self.current_file is None:
            return
        if self.current_file.hunks:
            last = self.current_file.hunks[-1]
            self.current_file.new_file_lines = last.new_start + last.new_lines
        self.files.append(self.current_file)
        self.current_file = None

    def start_file(self, old_path: str = "", new_path: str = "") -> None:
        self.flush_file()
        self.current_file = FileDiff(old_path=old_path, new_path=new_path)

    def feed(self, line: str) -> None:
        if line.startswith("diff --git"):
            self.start_file(*_paths_from_git_header(line))
        elif line.startswith("--- ") and not self._hunk_open():
            # Plain unified diffs have no "diff --git" line
            if self.current_file is None or self.current_file.hunks or self.current_hunk:
                self.start_file()
            self.current_file.old_path = _normalize_path(line[4:], "a/")
        elif line.startswith("+++ ") and not self._hunk_open() and self.current_file is not None:
            self.current_file.new_path = _normalize_path(line[4:], "b/")
        elif line.startswith("@@"):
            self.flush_hunk()
            hunk = parse_hunk_header(line)
            if hunk is None:
                logger.debug(f"Dropping unparseable hunk header: {line!r}")
                return
            if self.current_file is None:
                self.current_file = FileDiff()
            self.current_hunk = hunk
            self.old_line_num = hunk.old_start
            self.new_line_num = hunk.new_start
            self.old_remaining = hunk.old_lines
            self.new_remaining = hunk.new_lines
        elif self.current_hunk is not None and line:
            line_type = _LINE_TYPES.get(line[0])
            if line_type is None:
                # "\ No newline at end of file" and other markers
                return
            self.current_hunk.lines.append(self._number(line_type, line[1:]))

    def _number(self, line_type: LineType, content: str) -> HunkLine:
        old_num: Optional[int] = None
        new_num: Optional[int] = None
        if line_type is not LineType.ADDED:
            old_num = self.old_line_num
            self.old_line_num += 1
            self.old_remaining -= 1
        if line_type is not LineType.REMOVED:
            new_num = self.new_line_num
            self.new_line_num += 1
            self.new_remaining -= 1
        return HunkLine(line_type=line_type, old_line_num=old_num, new_line_num=new_num, content=content)


def parse_diff(diff_text: str) -> List[FileDiff]:
    """Parse unified diff text into FileDiff objects

    Supports git style output:
    diff --git a/file.py b/file.py
    --- a/file.py
    +++ b/file.py
    @@ -start,count +start,count @@
    -old line
    +new line

    Malformed input never raises: unparseable units are left out.

    Args:
        diff_text: Diff content as string

    Returns:
        FileDiff list in source order
    """
    scanner = _DiffScanner()
    for line in diff_text.split("\n"):
        scanner.feed(line.rstrip("\r"))
    scanner.flush_file()

    logger.debug(f"Parsed {len(scanner.files)} files from diff")
    return scanner.files

