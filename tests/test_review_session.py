"""Tests for the review session"""

from unittest.mock import MagicMock

import pytest

from diffnotes.application.comment_store import CommentStore
from diffnotes.application.review_session import ReviewSession
from diffnotes.domain.config.display import DisplayConfig
from diffnotes.domain.layout import RowKind, iter_rows
from diffnotes.domain.models.comment import CommentLevel, HunkLocation, LineLocation, LineSide
from diffnotes.domain.models.commit import CommitInfo
from diffnotes.infrastructure.git.client import DiffDecodeError, GitError

from test_comment_store import FakeNotes


def make_diff(context_lines: int) -> str:
    """A single-hunk diff whose hunk grows with the context width"""
    start = max(20 - context_lines, 1)
    before = [f" before{i}" for i in range(start, 20)]
    after = [f" after{i}" for i in range(21, 21 + context_lines)]
    body = before + ["-old line", "+new line", "+extra line"] + after
    old_lines = len(before) + 1 + len(after)
    new_lines = len(before) + 2 + len(after)
    header = f"@@ -{start},{old_lines} +{start},{new_lines} @@"
    second = (
        "diff --git a/docs.md b/docs.md\n"
        "--- a/docs.md\n"
        "+++ b/docs.md\n"
        "@@ -1 +1 @@\n"
        "-Old title\n"
        "+New title\n"
    )
    return (
        "diff --git a/app.py b/app.py\n--- a/app.py\n+++ b/app.py\n"
        + header
        + "\n"
        + "\n".join(body)
        + "\n"
        + second
    )


def make_commit(n: int) -> CommitInfo:
    return CommitInfo(
        id=f"{n}" * 40,
        short_id=f"{n}" * 7,
        message=f"Commit {n}",
        author_name="Dev",
        timestamp=1_700_000_000,
    )


@pytest.fixture
def repository():
    repo = MagicMock()
    repo.generate_diff.side_effect = lambda commit, context_lines: make_diff(context_lines)
    return repo


@pytest.fixture
def store():
    return CommentStore(FakeNotes(), "main")


@pytest.fixture
def session(repository, store):
    display = DisplayConfig(context_lines=2, context_expand_increment=3)
    session = ReviewSession(repository, [make_commit(1), make_commit(2)], store, display, visible_height=5)
    session.start()
    return session


def hunk_bounds(session):
    return [
        (h.old_start, h.old_lines, h.new_start, h.new_lines, len(h.lines))
        for f in session.files
        for h in f.hunks
    ]


class TestLoading:
    """Tests for the diff loading pipeline"""

    def test_start_loads_first_commit(self, session, repository):
        """Test the first commit is loaded at the default context"""
        repository.generate_diff.assert_called_with("1" * 40, 2)
        assert [f.path for f in session.files] == ["app.py", "docs.md"]
        assert session.total_rows > 0

    def test_generation_failure_gives_empty_diff(self, repository, store):
        """Test a failing diff generation does not abort the session"""
        repository.generate_diff.side_effect = GitError("bad object")
        session = ReviewSession(repository, [make_commit(1)], store)

        assert session.start() == []
        assert session.total_rows == 0
        assert session.side_by_side(40) == ([], [])

    def test_decode_failure_gives_empty_diff(self, repository, store):
        """Test undecodable output does not abort the session"""
        repository.generate_diff.side_effect = DiffDecodeError("invalid utf-8")
        session = ReviewSession(repository, [make_commit(1)], store)

        assert session.start() == []

    def test_broken_commit_does_not_block_others(self, repository, session):
        """Test switching away from a broken commit"""
        repository.generate_diff.side_effect = [GitError("boom"), make_diff(2)]

        session.next_commit()
        assert session.files == []
        session.previous_commit()
        assert len(session.files) == 2

    def test_no_commits(self, repository, store):
        """Test a session without commits"""
        session = ReviewSession(repository, [], store)
        assert session.start() == []
        repository.generate_diff.assert_not_called()


class TestContext:
    """Tests for context expansion"""

    def test_expand_reloads_with_wider_context(self, session, repository):
        """Test expansion requests a wider diff and resets the position"""
        session.scroll(3)
        assert session.expand_context() == 5

        repository.generate_diff.assert_called_with("1" * 40, 5)
        assert session.state.scroll == 0
        assert session.state.cursor == 0
        assert session.files[0].hunks[0].old_lines == 11

    def test_reset_restores_fresh_hunks(self, session):
        """Test reset after expansions gives the same hunks as a fresh load"""
        fresh = hunk_bounds(session)
        for _ in range(3):
            session.expand_context()
        assert hunk_bounds(session) != fresh

        session.reset_context()
        assert hunk_bounds(session) == fresh
        assert session.state.context_lines == 2

    def test_commit_switch_resets_context(self, session, repository):
        """Test switching commits returns to the default context"""
        session.expand_context()
        session.state.horizontal_scroll = 8

        assert session.next_commit()

        repository.generate_diff.assert_called_with("2" * 40, 2)
        assert session.state.context_lines == 2
        assert session.state.horizontal_scroll == 0
        assert session.state.scroll == 0

    def test_commit_bounds(self, session):
        """Test navigation stops at the ends of the list"""
        assert not session.previous_commit()
        assert session.next_commit()
        assert not session.next_commit()
        assert not session.select_commit(5)


class TestScrolling:
    """Tests for scrolling"""

    def test_scroll_bounded(self, session):
        """Test scrolling never passes the last page"""
        session.scroll(1000)
        assert session.state.scroll == session.total_rows - 5
        assert session.state.cursor == session.total_rows - 1

        session.scroll(-1000)
        assert session.state.scroll == 0
        assert session.state.cursor == 0

    def test_scroll_page(self, session):
        """Test page scrolling by the viewport height"""
        session.scroll_page(1)
        assert session.state.scroll == 5
        session.scroll_page(-1)
        assert session.state.scroll == 0

    def test_horizontal_scroll_never_negative(self, session):
        """Test horizontal scrolling by the configured amount"""
        session.scroll_horizontal(1)
        assert session.state.horizontal_scroll == 4
        session.scroll_horizontal(-1)
        session.scroll_horizontal(-1)
        assert session.state.horizontal_scroll == 0

    def test_move_cursor_keeps_it_visible(self, session):
        """Test the viewport follows the cursor"""
        session.move_cursor(7)
        assert session.state.cursor == 7
        assert session.state.scroll == 3
        session.move_cursor(-7)
        assert session.state.scroll == 0

    def test_file_navigation(self, session):
        """Test selecting files"""
        assert session.next_file()
        assert session.selected_file.path == "docs.md"
        assert not session.next_file()
        assert session.previous_file()
        assert not session.previous_file()


class TestComments:
    """Tests for the comment workflow"""

    def _cursor_to(self, session, kind, content=None):
        for row in iter_rows(session.files):
            if row.kind is kind and (content is None or (row.line and row.line.content == content)):
                session.state.cursor = row.index
                return
        raise AssertionError(f"no {kind} row")

    def test_add_line_comment(self, session, store):
        """Test a comment on an added line"""
        self._cursor_to(session, RowKind.LINE, "new line")
        comment = session.add_comment("Why?")

        assert comment.location == LineLocation(number=20, side=LineSide.NEW)
        assert comment.file_path == "app.py"
        assert store.get("1" * 40).comments == [comment]
        assert session.status_message == "Comment saved"

    def test_add_hunk_comment(self, session):
        """Test a comment on a hunk header"""
        self._cursor_to(session, RowKind.HUNK_HEADER)
        comment = session.add_comment("Hunk note")

        assert isinstance(comment.location, HunkLocation)
        assert comment.level is CommentLevel.HUNK

    def test_add_file_comment(self, session):
        """Test a comment on a file header"""
        session.state.cursor = 0
        comment = session.add_comment("File note")
        assert comment.level is CommentLevel.FILE
        assert comment.file_path == "app.py"

    def test_empty_comment_rejected(self, session, store):
        """Test blank text is reported, not stored"""
        assert session.add_comment("   ") is None
        assert session.status_message == "Comment cannot be empty"
        assert store.get("1" * 40) is None

    def test_storage_failure_reported(self, session, store):
        """Test storage errors become a status message"""
        store.repository.fail_writes = True
        assert session.add_comment("x") is None
        assert session.status_message.startswith("Failed to save comment")

    def test_comments_here(self, session):
        """Test viewing comments at the cursor"""
        self._cursor_to(session, RowKind.LINE, "new line")
        session.add_comment("line comment")
        session.state.cursor = 0
        session.add_comment("file comment")

        self._cursor_to(session, RowKind.LINE, "new line")
        assert [c.text for c in session.comments_here()] == ["line comment", "file comment"]

        self._cursor_to(session, RowKind.LINE, "extra line")
        assert [c.text for c in session.comments_here()] == ["file comment"]

    def test_comments_here_without_comments(self, session):
        """Test the status message when the commit has no comments"""
        assert session.comments_here() == []
        assert session.status_message == "No comments for this commit"

    def test_delete_comment(self, session, store):
        """Test deleting by per-file display index"""
        session.state.cursor = 0
        session.add_comment("first")
        session.add_comment("second")

        assert session.delete_comment(0)
        assert [c.text for c in store.get("1" * 40).comments] == ["second"]
        assert not session.delete_comment(3)


class TestSearch:
    """Tests for search navigation"""

    def test_search_centres_match(self, session):
        """Test the current match is centred in the viewport"""
        matches = session.search("new title")

        assert len(matches) == 1
        row = matches[0].line_index
        assert session.state.cursor == row
        assert session.state.scroll == min(row - 2, session.max_scroll)

    def test_search_wraps(self, session):
        """Test next/previous wrap around"""
        matches = session.search("line")
        assert len(matches) == 3

        session.next_match()
        session.next_match()
        assert session.next_match() == matches[0]
        assert session.previous_match() == matches[-1]
        assert session.state.cursor == matches[-1].line_index

    def test_no_matches(self, session):
        """Test the status message without matches"""
        assert session.search("zzz") == []
        assert session.status_message == "No matches found for 'zzz'"
        assert session.next_match() is None

    def test_clear_search(self, session):
        """Test clearing the search"""
        session.search("line")
        session.clear_search()
        assert session.search_index.matches == []


class TestViews:
    """Tests for the rendered windows"""

    def test_inline_rows_window(self, session):
        """Test the inline window starts at the scroll position"""
        session.scroll(2)
        rows = session.inline_rows()
        assert [row.index for row in rows] == [2, 3, 4, 5, 6]

    def test_side_by_side_selected_file(self, session):
        """Test the side-by-side view shows the selected file"""
        session.select_file(1)
        left, right = session.side_by_side(30)

        assert len(left) == len(right) == 3
        assert left[1].text.rstrip() == "   1 -Old title"
        assert right[1].text.rstrip() == "   1 +New title"


class TestFileSelection:
    """Tests for keeping the selected file and the cursor on the same file"""

    def test_comment_after_next_file_targets_shown_file(self, session):
        """Test a comment added after switching files lands on that file"""
        assert session.next_file()

        comment = session.add_comment("about docs")

        assert comment.file_path == "docs.md"
        assert comment.level is CommentLevel.FILE

    def test_select_file_moves_cursor_to_header(self, session):
        """Test the cursor lands on the first header row of the file"""
        session.select_file(1)
        row = next(r for r in iter_rows(session.files) if r.index == session.state.cursor)

        assert row.kind is RowKind.FILE_HEADER
        assert row.file.path == "docs.md"
        assert session.state.file_scroll == 0

        session.select_file(0)
        assert session.state.cursor == 0

    def test_search_selects_file_of_match(self, session):
        """Test a match in another file is shown in the side-by-side view"""
        session.search("new title")

        assert session.selected_file.path == "docs.md"
        left, right = session.side_by_side(40, 5)
        assert any("New title" in cell.text for cell in right)
        assert any("Old title" in cell.text for cell in left)

    def test_search_centres_match_in_file(self, session):
        """Test the side-by-side window is centred on the matched line"""
        session.select_file(1)
        session.search("after22")

        assert session.selected_file.path == "app.py"
        assert session.state.file_scroll == 4
        _, right = session.side_by_side(40, 5)
        assert any("after22" in cell.text for cell in right)

    def test_cursor_movement_follows_file(self, session):
        """Test moving the cursor into the next file selects it"""
        docs_header = next(
            r.index for r in iter_rows(session.files) if r.kind is RowKind.FILE_HEADER and r.file_index == 1
        )
        session.move_cursor(docs_header)

        assert session.state.selected_file == 1
        assert session.state.file_scroll == 0
