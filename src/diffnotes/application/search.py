"""Case-insensitive search over the rows of the loaded diff"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from diffnotes.domain.layout import iter_rows
from diffnotes.domain.models.diff import FileDiff

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchMatch:
    """One occurrence of the query

    line_index is the global content row; char_start/char_end delimit the
    match within the row's searchable text (file path, hunk header or line
    content).
    """

    line_index: int
    char_start: int
    char_end: int


def find_all(haystack: str, needle: str) -> List[int]:
    """Start offsets of every occurrence of needle, overlapping ones included"""
    positions = []
    if not needle:
        return positions
    start = haystack.find(needle)
    while start != -1:
        positions.append(start)
        start = haystack.find(needle, start + 1)
    return positions


class SearchIndex:
    """Match list of the current query plus the selected match"""

    def __init__(self):
        self.query = ""
        self.matches: List[SearchMatch] = []
        self.current: Optional[int] = None

    @property
    def active(self) -> bool:
        return bool(self.query)

    def clear(self) -> None:
        self.query = ""
        self.matches = []
        self.current = None

    def execute(self, files: Sequence[FileDiff], query: str) -> List[SearchMatch]:
        """Search every row for query and select the first match

        An empty query clears the search state without scanning.
        """
        if not query:
            self.clear()
            return self.matches

        needle = query.lower()
        matches = []
        for row in iter_rows(files):
            if not row.search_text:
                continue
            for start in find_all(row.search_text.lower(), needle):
                matches.append(SearchMatch(row.index, start, start + len(needle)))

        self.query = query
        self.matches = matches
        self.current = 0 if matches else None
        logger.debug(f"Search {query!r}: {len(matches)} match(es)")
        return matches

    @property
    def current_match(self) -> Optional[SearchMatch]:
        if self.current is None:
            return None
        return self.matches[self.current]

    def next_match(self) -> Optional[SearchMatch]:
        """Advance to the next match, wrapping from the last to the first"""
        if not self.matches:
            return None
        self.current = 0 if self.current is None else (self.current + 1) % len(self.matches)
        return self.matches[self.current]

    def previous_match(self) -> Optional[SearchMatch]:
        """Step back to the previous match, wrapping from the first to the last"""
        if not self.matches:
            return None
        if self.current is None or self.current == 0:
            self.current = len(self.matches) - 1
        else:
            self.current -= 1
        return self.matches[self.current]

    def matches_for_row(self, line_index: int) -> List[SearchMatch]:
        return [m for m in self.matches if m.line_index == line_index]

    def by_row(self) -> Dict[int, List[SearchMatch]]:
        """Matches grouped by row, for highlighting a rendered window"""
        grouped: Dict[int, List[SearchMatch]] = {}
        for match in self.matches:
            grouped.setdefault(match.line_index, []).append(match)
        return grouped

    def status(self) -> str:
        """Position indicator such as [2/5] query"""
        if not self.query:
            return ""
        if not self.matches:
            return f"No matches for {self.query!r}"
        return f"[{(self.current or 0) + 1}/{len(self.matches)}] {self.query}"
