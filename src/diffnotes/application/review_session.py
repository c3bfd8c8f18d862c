"""Review session - application core owning the current diff and view state

The session is the only place where repository calls happen during review:
loading a diff is an explicit transition (commit switch, context change), and
every view query afterwards works on the already parsed files.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

from diffnotes.application.comment_resolver import CommentTarget, resolve_comment_target
from diffnotes.application.comment_store import CommentStore, StorageError
from diffnotes.application.expansion import ContextController
from diffnotes.application.search import SearchIndex, SearchMatch
from diffnotes.application.side_by_side import (
    ColumnLine,
    aligned_row_index,
    count_aligned_rows,
    render_side_by_side,
)
from diffnotes.domain.config.display import DisplayConfig
from diffnotes.domain.layout import DiffRow, RowKind, count_rows, file_start_row, row_at, window
from diffnotes.domain.models.comment import Comment
from diffnotes.domain.models.commit import CommitInfo
from diffnotes.domain.models.diff import FileDiff
from diffnotes.infrastructure.diff_parser import parse_diff
from diffnotes.infrastructure.git.client import DiffDecodeError, GitError

logger = logging.getLogger(__name__)


class DiffSource(Protocol):
    """Repository operation the session loads diffs through"""

    def generate_diff(self, commit: str, context_lines: int) -> str: ...


@dataclass
class ViewState:
    """Scroll, cursor and selection of the review view

    scroll and cursor are global content rows (see diffnotes.domain.layout).
    file_scroll is the first side-by-side row shown for selected_file; it
    follows the cursor whenever the cursor jumps.
    """

    scroll: int = 0
    file_scroll: int = 0
    cursor: int = 0
    horizontal_scroll: int = 0
    selected_commit: int = 0
    selected_file: int = 0
    context_lines: int = 8
    visible_height: int = 20


class ReviewSession:
    """Reviews a list of commits with comments kept in a CommentStore"""

    def __init__(
        self,
        repository: DiffSource,
        commits: Sequence[CommitInfo],
        store: CommentStore,
        display_config: Optional[DisplayConfig] = None,
        visible_height: int = 20,
    ):
        """Initialize review session

        Args:
            repository: Diff generator
            commits: Commits under review, newest first
            store: Comment store of the reviewed branch (already loaded)
            display_config: Context and scrolling configuration
            visible_height: Number of content rows the viewport shows
        """
        self.repository = repository
        self.commits = list(commits)
        self.store = store
        self.display_config = display_config or DisplayConfig()
        self.context = ContextController(
            self.display_config.context_lines,
            self.display_config.context_expand_increment,
        )
        self.state = ViewState(
            context_lines=self.context.current,
            visible_height=max(visible_height, 1),
        )
        self.files: List[FileDiff] = []
        self.search_index = SearchIndex()
        self.status_message: Optional[str] = None
        self._total_rows = 0

    # ------------------------------------------------------------------
    # Diff loading
    # ------------------------------------------------------------------

    @property
    def selected_commit(self) -> Optional[CommitInfo]:
        if 0 <= self.state.selected_commit < len(self.commits):
            return self.commits[self.state.selected_commit]
        return None

    @property
    def selected_file(self) -> Optional[FileDiff]:
        if 0 <= self.state.selected_file < len(self.files):
            return self.files[self.state.selected_file]
        return None

    @property
    def total_rows(self) -> int:
        return self._total_rows

    def load_diff(self) -> List[FileDiff]:
        """Generate, decode and parse the diff of the selected commit

        Every stage reports its failure and falls back to an empty diff, so
        one broken commit never stops the review of the others.
        """
        commit = self.selected_commit
        files: List[FileDiff] = []
        if commit is not None:
            try:
                text = self.repository.generate_diff(commit.id, self.state.context_lines)
            except DiffDecodeError as e:
                logger.error(f"Failed to convert diff of {commit.short_id} to text: {e}")
            except GitError as e:
                logger.error(f"Failed to generate diff for {commit.short_id}: {e}")
            else:
                files = parse_diff(text)

        self.files = files
        self.state.selected_file = 0
        self.state.file_scroll = 0
        self._total_rows = count_rows(files)
        # Match coordinates refer to the old row layout
        if self.search_index.active:
            self.search_index.execute(self.files, self.search_index.query)
        return files

    def start(self) -> List[FileDiff]:
        """Load the first commit at the default context"""
        self.state.selected_commit = 0
        self._reset_position()
        self.reset_context()
        return self.files

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _reset_position(self) -> None:
        self.state.scroll = 0
        self.state.cursor = 0
        self.state.file_scroll = 0
        self.state.horizontal_scroll = 0

    def select_commit(self, index: int) -> bool:
        """Switch to another commit; context returns to the configured default"""
        if not 0 <= index < len(self.commits):
            return False
        self.state.selected_commit = index
        self._reset_position()
        self.reset_context()
        return True

    def next_commit(self) -> bool:
        if self.state.selected_commit + 1 >= len(self.commits):
            return False
        return self.select_commit(self.state.selected_commit + 1)

    def previous_commit(self) -> bool:
        if self.state.selected_commit <= 0:
            return False
        return self.select_commit(self.state.selected_commit - 1)

    def select_file(self, index: int) -> bool:
        """Show a file; the cursor moves to its header so comments target it"""
        if not 0 <= index < len(self.files):
            return False
        self.state.selected_file = index
        self.state.file_scroll = 0
        self.state.horizontal_scroll = 0
        start = file_start_row(self.files, index)
        if start is not None:
            self.state.cursor = start
            self.state.scroll = min(start, self.max_scroll)
        return True

    def _follow_cursor(self, centre: bool) -> None:
        """Select the file under the cursor and bring its side-by-side row into view"""
        row = row_at(self.files, self.state.cursor)
        if row is None:
            return
        self.state.selected_file = row.file_index
        if row.hunk_index is None:
            aligned = 0
        else:
            line = row.line if row.kind is RowKind.LINE else None
            aligned = aligned_row_index(row.file, row.hunk_index, line)

        height = self.state.visible_height
        if centre:
            self.state.file_scroll = max(aligned - height // 2, 0)
        elif aligned < self.state.file_scroll:
            self.state.file_scroll = aligned
        elif aligned >= self.state.file_scroll + height:
            self.state.file_scroll = aligned - height + 1

    def next_file(self) -> bool:
        return self.select_file(self.state.selected_file + 1)

    def previous_file(self) -> bool:
        if self.state.selected_file <= 0:
            return False
        return self.select_file(self.state.selected_file - 1)

    @property
    def max_scroll(self) -> int:
        return max(self._total_rows - self.state.visible_height, 0)

    def scroll(self, amount: int) -> None:
        """Scroll vertically; the cursor moves along and stays within the content"""
        if amount < 0:
            self.state.scroll = max(self.state.scroll + amount, 0)
            self.state.cursor = max(self.state.cursor + amount, 0)
        else:
            self.state.scroll = min(self.state.scroll + amount, self.max_scroll)
            self.state.cursor = min(self.state.cursor + amount, max(self._total_rows - 1, 0))

    def scroll_page(self, direction: int) -> None:
        height = self.state.visible_height
        self.scroll(-height if direction < 0 else height)

    def scroll_horizontal(self, direction: int) -> None:
        """Scroll columns by the configured amount; never left of the start"""
        amount = self.display_config.horizontal_scroll_amount
        if direction < 0:
            self.state.horizontal_scroll = max(self.state.horizontal_scroll - amount, 0)
        else:
            self.state.horizontal_scroll += amount

    def move_cursor(self, delta: int) -> None:
        """Move the cursor and scroll just enough to keep it visible"""
        last = max(self._total_rows - 1, 0)
        self.state.cursor = min(max(self.state.cursor + delta, 0), last)
        if self.state.cursor < self.state.scroll:
            self.state.scroll = self.state.cursor
        elif self.state.cursor >= self.state.scroll + self.state.visible_height:
            self.state.scroll = min(self.state.cursor - self.state.visible_height + 1, self.max_scroll)
        self._follow_cursor(centre=False)

    # ------------------------------------------------------------------
    # Context expansion
    # ------------------------------------------------------------------

    def expand_context(self) -> int:
        """Widen context for the whole diff and reload it"""
        self.state.context_lines = self.context.expand()
        self.load_diff()
        self.state.scroll = 0
        self.state.cursor = 0
        self.status_message = f"Context: {self.state.context_lines} lines"
        return self.state.context_lines

    def reset_context(self) -> int:
        """Return to the default context and reload the diff"""
        self.state.context_lines = self.context.reset()
        self.load_diff()
        self.state.scroll = 0
        self.state.cursor = 0
        return self.state.context_lines

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def comment_target(self) -> CommentTarget:
        return resolve_comment_target(self.files, self.state.cursor)

    def _target_file(self, target: CommentTarget) -> Optional[str]:
        if target.file_path is not None:
            return target.file_path
        selected = self.selected_file
        return selected.path if selected is not None else None

    def add_comment(self, text: str) -> Optional[Comment]:
        """Attach a comment at the cursor position

        Returns:
            The stored comment, or None if nothing was stored (the reason is
            left in status_message)
        """
        if not text.strip():
            self.status_message = "Comment cannot be empty"
            return None

        commit = self.selected_commit
        if commit is None:
            self.status_message = "No commit selected"
            return None

        target = self.comment_target()
        file_path = self._target_file(target)
        if file_path is None:
            self.status_message = "No file selected"
            return None

        comment = Comment(file_path=file_path, location=target.location, text=text)
        try:
            self.store.add(commit.id, comment)
        except StorageError as e:
            logger.error(f"Failed to save comment: {e}")
            self.status_message = f"Failed to save comment: {e}"
            return None

        self.status_message = "Comment saved"
        return comment

    def comments_here(self) -> List[Comment]:
        """Comments relevant to the cursor position"""
        commit = self.selected_commit
        if commit is None:
            return []
        if self.store.get(commit.id) is None:
            self.status_message = "No comments for this commit"
            return []

        target = self.comment_target()
        if target.file_path is None:
            selected = self.selected_file
            if selected is None:
                return []
            target = CommentTarget(target.level, selected.path)

        comments = self.store.view(commit.id, target)
        if not comments:
            self.status_message = "No comments at this location"
        return comments

    def delete_comment(self, display_index: int, file_path: Optional[str] = None) -> bool:
        """Delete a comment by its position among the file's comments

        Args:
            display_index: Index within the comments of file_path
            file_path: File the index refers to (default: file under the cursor)
        """
        commit = self.selected_commit
        if commit is None:
            return False
        path = file_path or self._target_file(self.comment_target())
        if path is None:
            return False

        try:
            deleted = self.store.delete(commit.id, path, display_index)
        except StorageError as e:
            logger.error(f"Failed to delete comment: {e}")
            self.status_message = f"Failed to delete comment: {e}"
            return False

        if deleted:
            self.status_message = "Comment deleted"
        return deleted

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query: str) -> List[SearchMatch]:
        """Search the loaded diff and jump to the first match"""
        matches = self.search_index.execute(self.files, query)
        if not query:
            self.status_message = None
            return matches
        if matches:
            self._scroll_to_match(matches[0])
            self.status_message = f"Found {len(matches)} match(es)"
        else:
            self.status_message = f"No matches found for {query!r}"
        return matches

    def _scroll_to_match(self, match: SearchMatch) -> None:
        """Put the cursor on the match and centre it in the viewport"""
        self.state.cursor = match.line_index
        target = max(match.line_index - self.state.visible_height // 2, 0)
        self.state.scroll = min(target, self.max_scroll)
        self._follow_cursor(centre=True)

    def _step_match(self, forward: bool) -> Optional[SearchMatch]:
        if not self.search_index.matches:
            self.status_message = "No active search"
            return None
        match = self.search_index.next_match() if forward else self.search_index.previous_match()
        self._scroll_to_match(match)
        self.status_message = f"Match {self.search_index.current + 1}/{len(self.search_index.matches)}"
        return match

    def next_match(self) -> Optional[SearchMatch]:
        return self._step_match(True)

    def previous_match(self) -> Optional[SearchMatch]:
        return self._step_match(False)

    def clear_search(self) -> None:
        self.search_index.clear()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def inline_rows(self, height: Optional[int] = None) -> List[DiffRow]:
        """Visible window of the inline view"""
        limit = self.state.visible_height if height is None else height
        return window(
            self.files,
            self.state.scroll,
            limit,
            self.display_config.context_expand_increment,
        )

    def side_by_side(
        self, width: Optional[int] = None, height: Optional[int] = None
    ) -> Tuple[List[ColumnLine], List[ColumnLine]]:
        """Visible window of the selected file as (left, right) columns

        The side-by-side view shows one file at a time and scrolls by
        file_scroll, clamped to that file's own row count.
        """
        file = self.selected_file
        if file is None:
            return [], []
        limit = self.state.visible_height if height is None else height
        skip = min(self.state.file_scroll, max(count_aligned_rows(file) - 1, 0))
        return render_side_by_side(
            file,
            skip,
            limit,
            width or self.display_config.column_width,
            self.state.horizontal_scroll,
        )
