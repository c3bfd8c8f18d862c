"""Comment store - in-memory comment index persisted as git notes

One CommitComments collection per (commit, branch). The whole collection is
re-serialized on every change, so a failed write leaves the previously stored
note untouched, and the in-memory index is only updated after the repository
accepted the change.
"""

import json
import logging
from typing import Dict, List, Optional, Protocol

from pydantic import ValidationError

from diffnotes.application.comment_resolver import CommentTarget
from diffnotes.domain.branch import InvalidBranchNameError, notes_ref
from diffnotes.domain.config.notes import NotesConfig
from diffnotes.domain.models.comment import Comment, CommentLevel, CommitComments
from diffnotes.infrastructure.git.client import GitError

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Comments could not be read or written."""

    pass


class NotesRepository(Protocol):
    """Repository operations the store relies on"""

    def read_note(self, namespace: str, commit: str) -> Optional[str]: ...

    def write_note(self, namespace: str, commit: str, text: str) -> None: ...

    def delete_note(self, namespace: str, commit: str) -> bool: ...

    def list_noted_commits(self, namespace: str) -> List[str]: ...

    def delete_namespace(self, namespace: str) -> int: ...


class CommentStore:
    """Comments of one branch, keyed by commit id"""

    def __init__(
        self,
        repository: NotesRepository,
        branch: str,
        notes_config: Optional[NotesConfig] = None,
    ):
        """Initialize comment store

        Args:
            repository: Notes storage
            branch: Branch whose namespace holds the comments
            notes_config: Notes ref prefix configuration
        """
        self.repository = repository
        self.branch = branch
        self.notes_config = notes_config or NotesConfig()
        self._by_commit: Dict[str, CommitComments] = {}

    @property
    def namespace(self) -> str:
        """Notes ref of the branch

        Raises:
            StorageError: If the branch name cannot be used as a ref component
        """
        try:
            return notes_ref(self.notes_config.ref_prefix, self.branch)
        except InvalidBranchNameError as e:
            raise StorageError(f"Cannot store comments for branch {self.branch!r}: {e}") from e

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def read(self, commit_id: str) -> Optional[CommitComments]:
        """Read the persisted collection of a commit (None if there is none)"""
        namespace = self.namespace
        try:
            payload = self.repository.read_note(namespace, commit_id)
        except GitError as e:
            raise StorageError(f"Failed to read comments for {commit_id[:7]}: {e}") from e
        if payload is None:
            return None
        try:
            return CommitComments.from_json(payload)
        except (ValidationError, json.JSONDecodeError, ValueError) as e:
            raise StorageError(f"Failed to parse comments for {commit_id[:7]}: {e}") from e

    def write(self, collection: CommitComments) -> None:
        """Persist a whole collection, replacing the stored one"""
        namespace = self.namespace
        try:
            payload = collection.to_json()
        except (ValueError, TypeError) as e:
            raise StorageError(f"Failed to serialize comments for {collection.commit_id[:7]}: {e}") from e
        try:
            self.repository.write_note(namespace, collection.commit_id, payload)
        except GitError as e:
            raise StorageError(f"Failed to write comments for {collection.commit_id[:7]}: {e}") from e

    def _remove(self, commit_id: str) -> bool:
        namespace = self.namespace
        try:
            return self.repository.delete_note(namespace, commit_id)
        except GitError as e:
            raise StorageError(f"Failed to delete comments for {commit_id[:7]}: {e}") from e

    def list_for_branch(self) -> List[CommitComments]:
        """All persisted collections of the branch

        Notes that cannot be parsed are skipped with a warning so one corrupt
        note does not hide the others.
        """
        namespace = self.namespace
        try:
            commit_ids = self.repository.list_noted_commits(namespace)
        except GitError as e:
            raise StorageError(f"Failed to list comments for branch {self.branch!r}: {e}") from e

        collections = []
        for commit_id in commit_ids:
            try:
                collection = self.read(commit_id)
            except StorageError as e:
                logger.warning(f"Skipping unreadable comments: {e}")
                continue
            if collection is not None:
                collections.append(collection)
        return collections

    def load(self) -> int:
        """Replace the in-memory index with everything stored for the branch

        Returns:
            Number of commits with comments
        """
        collections = self.list_for_branch()
        self._by_commit = {c.commit_id: c for c in collections}
        logger.info(f"Loaded comments for {len(self._by_commit)} commit(s) on {self.branch}")
        return len(self._by_commit)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get(self, commit_id: str) -> Optional[CommitComments]:
        """In-memory collection of a commit"""
        return self._by_commit.get(commit_id)

    def add(self, commit_id: str, comment: Comment) -> CommitComments:
        """Append a comment to the commit's collection and persist it

        Raises:
            StorageError: If persisting fails (in-memory state unchanged)
        """
        current = self._by_commit.get(commit_id) or CommitComments(commit_id=commit_id, branch=self.branch)
        updated = current.with_comment(comment)
        self.write(updated)
        self._by_commit[commit_id] = updated
        logger.debug(f"Added {comment.level.value} comment on {comment.file_path} for {commit_id[:7]}")
        return updated

    def comments_for_file(self, commit_id: str, file_path: str) -> List[Comment]:
        """Comments of a file in display order (the order delete indices refer to)"""
        collection = self._by_commit.get(commit_id)
        if collection is None:
            return []
        return collection.comments_for_file(file_path)

    def view(self, commit_id: str, target: CommentTarget) -> List[Comment]:
        """Comments relevant at a resolved cursor position

        Union of exact line matches, exact hunk matches and every file-level
        comment of the file. An empty list means "nothing here", not an error.
        """
        collection = self._by_commit.get(commit_id)
        if collection is None or target.file_path is None:
            return []

        found: List[Comment] = []
        if target.level is CommentLevel.LINE and target.line_number is not None and target.side is not None:
            found.extend(collection.comments_at_line(target.file_path, target.line_number, target.side))
        if target.level in (CommentLevel.LINE, CommentLevel.HUNK) and target.hunk_header:
            found.extend(collection.comments_at_hunk(target.file_path, target.hunk_header))
        found.extend(collection.file_level_comments(target.file_path))
        return found

    def delete(self, commit_id: str, file_path: str, display_index: int) -> bool:
        """Delete the display_index-th comment of file_path

        Returns:
            False if there is no such comment

        Raises:
            StorageError: If persisting fails (in-memory state unchanged)
        """
        collection = self._by_commit.get(commit_id)
        if collection is None:
            return False

        indices = collection.file_indices(file_path)
        if display_index < 0 or display_index >= len(indices):
            return False

        updated = collection.without_index(indices[display_index])
        if updated is None:
            return False

        if updated.is_empty():
            self._remove(commit_id)
            del self._by_commit[commit_id]
        else:
            self.write(updated)
            self._by_commit[commit_id] = updated
        return True

    def clear(self) -> int:
        """Delete every stored collection of the branch

        Returns:
            Number of collections deleted
        """
        namespace = self.namespace
        try:
            deleted = self.repository.delete_namespace(namespace)
        except GitError as e:
            raise StorageError(f"Failed to clear comments for branch {self.branch!r}: {e}") from e
        self._by_commit.clear()
        return deleted

    def commit_ids(self) -> List[str]:
        return list(self._by_commit)
