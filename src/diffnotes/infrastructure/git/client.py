"""Git repository access through the git executable"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from diffnotes.domain.config.notes import NotesConfig
from diffnotes.domain.config.retry import RetryConfig
from diffnotes.domain.models.commit import CommitInfo
from diffnotes.infrastructure.retry import call_with_lock_retry

logger = logging.getLogger(__name__)

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = "%H%x1f%h%x1f%an%x1f%ct%x1f%B%x1e"


class GitError(RuntimeError):
    """A git command failed."""

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = list(command) if command else []
        self.returncode = returncode
        self.stderr = stderr


class BaseRefNotFoundError(GitError):
    """The base reference of the review cannot be resolved."""

    pass


class DiffDecodeError(GitError):
    """Diff output is not valid UTF-8 text."""

    pass


def parse_range(range_spec: str) -> Tuple[str, str]:
    """Split a commit range into (start, end)

    "A..B" reviews commits in B not in A; a single ref "A" means "A..HEAD".

    Raises:
        ValueError: If either side of ".." is empty
    """
    spec = range_spec.strip()
    if not spec:
        raise ValueError("Empty commit range")
    if ".." not in spec:
        return spec, "HEAD"
    if "..." in spec:
        raise ValueError(f"Symmetric ranges are not supported: {range_spec}")
    start, end = spec.split("..", 1)
    if not start or not end:
        raise ValueError(f"Invalid commit range (expected START..END): {range_spec}")
    return start, end


def decode_diff_text(data: bytes) -> str:
    """Decode raw diff output

    Raises:
        DiffDecodeError: If the output is not valid UTF-8
    """
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DiffDecodeError(f"Diff output is not valid UTF-8: {e}") from e


class GitRepository:
    """Repository access used by the review session and the comment store"""

    def __init__(
        self,
        path: Union[str, Path, None] = None,
        notes_config: Optional[NotesConfig] = None,
        retry_config: Optional[RetryConfig] = None,
        git_executable: str = "git",
    ):
        """Initialize repository access

        Args:
            path: Repository work tree (default: current directory)
            notes_config: Fallback identity for note commits
            retry_config: Retry configuration for ref-locking writes
            git_executable: git binary to invoke
        """
        self.path = Path(path) if path is not None else Path.cwd()
        self.notes_config = notes_config or NotesConfig()
        self.retry_config = retry_config or RetryConfig()
        self.git_executable = git_executable
        self._identity_env: Optional[Dict[str, str]] = None

    @classmethod
    def discover(cls, path: Union[str, Path, None] = None, **kwargs) -> "GitRepository":
        """Open the repository containing path

        Raises:
            GitError: If path is not inside a git work tree
        """
        probe = cls(path, **kwargs)
        try:
            top_level = probe._run_text(["rev-parse", "--show-toplevel"]).strip()
        except GitError as e:
            raise GitError(
                "Failed to find git repository. Make sure you're in a git directory.",
                e.command,
                e.returncode,
                e.stderr,
            ) from e
        return cls(top_level, **kwargs)

    def _run(
        self,
        args: Sequence[str],
        input_data: Optional[bytes] = None,
        check: bool = True,
        env: Optional[Dict[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        command = [self.git_executable, "-C", str(self.path), *args]
        logger.debug(f"Running: {' '.join(command)}")
        run_env = None
        if env:
            run_env = dict(os.environ)
            run_env.update(env)
        try:
            result = subprocess.run(
                command,
                input=input_data,
                capture_output=True,
                check=False,
                env=run_env,
            )
        except FileNotFoundError as e:
            raise GitError(
                f"'{self.git_executable}' command not found. Ensure Git is installed and in PATH.",
                command,
            ) from e

        if check and result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise GitError(
                f"git {args[0]} failed ({result.returncode}): {stderr}",
                command,
                result.returncode,
                stderr,
            )
        return result

    def _run_text(self, args: Sequence[str], **kwargs) -> str:
        return self._run(args, **kwargs).stdout.decode("utf-8", errors="replace")

    def _stderr(self, result: subprocess.CompletedProcess) -> str:
        return result.stderr.decode("utf-8", errors="replace").strip()

    # ------------------------------------------------------------------
    # Commits and diffs
    # ------------------------------------------------------------------

    def resolve(self, ref: str) -> Optional[str]:
        """Resolve ref to a commit hash, or None if it does not exist"""
        result = self._run(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], check=False)
        if result.returncode != 0:
            return None
        return result.stdout.decode("utf-8").strip() or None

    def diff_bytes(self, commit: str, context_lines: int) -> bytes:
        """Raw patch of commit against its first parent (root commits against the empty tree)"""
        result = self._run(
            [
                "diff-tree",
                "--patch",
                "--no-commit-id",
                "--root",
                "-m",
                "--first-parent",
                "--no-color",
                "--no-ext-diff",
                f"--unified={context_lines}",
                commit,
            ]
        )
        return result.stdout

    def generate_diff(self, commit: str, context_lines: int) -> str:
        """Patch text of commit with the requested number of context lines

        Raises:
            GitError: If git fails
            DiffDecodeError: If the patch is not valid UTF-8
        """
        return decode_diff_text(self.diff_bytes(commit, context_lines))

    def _log(self, revisions: Sequence[str]) -> List[CommitInfo]:
        output = self._run_text(["log", f"--format={_LOG_FORMAT}", *revisions, "--"])
        commits = []
        for record in output.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            parts = record.split(_FIELD_SEP, 4)
            if len(parts) != 5:
                logger.warning(f"Skipping malformed log record: {record[:80]!r}")
                continue
            commit_id, short_id, author, timestamp, message = parts
            commits.append(
                CommitInfo(
                    id=commit_id,
                    short_id=short_id,
                    message=message.strip() or "<no message>",
                    author_name=author or "<unknown>",
                    timestamp=int(timestamp or 0),
                )
            )
        return commits

    def list_commits(self, base_ref: str) -> List[CommitInfo]:
        """Commits reachable from HEAD but not from base_ref, newest first

        Raises:
            BaseRefNotFoundError: If base_ref cannot be resolved
        """
        if self.resolve(base_ref) is None:
            raise BaseRefNotFoundError(f"Failed to find base branch: {base_ref}")
        if self.resolve("HEAD") is None:
            raise GitError("HEAD does not point to a valid commit")
        return self._log([f"{base_ref}..HEAD"])

    def list_commits_range(self, start_ref: str, end_ref: str) -> List[CommitInfo]:
        """Commits reachable from end_ref but not from start_ref, newest first"""
        if self.resolve(start_ref) is None:
            raise BaseRefNotFoundError(f"Failed to find start ref: {start_ref}")
        if self.resolve(end_ref) is None:
            raise BaseRefNotFoundError(f"Failed to find end ref: {end_ref}")
        return self._log([f"{start_ref}..{end_ref}"])

    def detect_base_branch(self) -> str:
        """Detect the branch to compare against

        Strategy:
        1. Upstream tracking branch of local main/master
        2. Local main/master
        3. origin/main or origin/master

        Raises:
            BaseRefNotFoundError: If none of the candidates exists
        """
        for local_branch in ("main", "master"):
            if self._run(["show-ref", "--verify", "--quiet", f"refs/heads/{local_branch}"], check=False).returncode != 0:
                continue
            upstream = self._run(
                ["rev-parse", "--abbrev-ref", "--symbolic-full-name", f"{local_branch}@{{upstream}}"],
                check=False,
            )
            if upstream.returncode == 0:
                upstream_name = upstream.stdout.decode("utf-8").strip()
                if upstream_name and self.resolve(upstream_name) is not None:
                    return upstream_name
            if self.resolve(local_branch) is not None:
                return local_branch

        for remote_branch in ("origin/main", "origin/master"):
            if self.resolve(remote_branch) is not None:
                return remote_branch

        raise BaseRefNotFoundError(
            "Could not find base branch. Tried: main, master (with upstream tracking), "
            "origin/main, origin/master.\nMake sure you have a main or master branch."
        )

    def current_branch(self) -> str:
        """Short name of the checked-out branch, or "detached-<sha7>" """
        result = self._run(["symbolic-ref", "--quiet", "--short", "HEAD"], check=False)
        if result.returncode == 0:
            name = result.stdout.decode("utf-8").strip()
            if name:
                return name
        head = self.resolve("HEAD")
        if head is None:
            raise GitError("HEAD has no target")
        return f"detached-{head[:7]}"

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def _note_identity_env(self) -> Dict[str, str]:
        """Fallback identity for note commits when git has none configured"""
        if self._identity_env is None:
            probe = self._run(["var", "GIT_COMMITTER_IDENT"], check=False)
            if probe.returncode == 0:
                self._identity_env = {}
            else:
                name = self.notes_config.author_name
                email = self.notes_config.author_email
                logger.debug(f"No git identity configured, using {name} <{email}> for notes")
                self._identity_env = {
                    "GIT_AUTHOR_NAME": name,
                    "GIT_AUTHOR_EMAIL": email,
                    "GIT_COMMITTER_NAME": name,
                    "GIT_COMMITTER_EMAIL": email,
                }
        return self._identity_env

    def read_note(self, namespace: str, commit: str) -> Optional[str]:
        """Note text attached to commit under namespace, or None"""
        result = self._run(["notes", f"--ref={namespace}", "show", commit], check=False)
        if result.returncode != 0:
            stderr = self._stderr(result)
            if "no note found" in stderr.lower():
                return None
            raise GitError(
                f"Failed to read git note for {commit}: {stderr}",
                result.args,
                result.returncode,
                stderr,
            )
        return result.stdout.decode("utf-8")

    def write_note(self, namespace: str, commit: str, text: str) -> None:
        """Attach text to commit, replacing any existing note"""
        call_with_lock_retry(
            self.retry_config,
            self._run,
            ["notes", f"--ref={namespace}", "add", "--force", "--file=-", commit],
            input_data=text.encode("utf-8"),
            env=self._note_identity_env(),
        )
        logger.debug(f"Wrote note for {commit} in {namespace}")

    def delete_note(self, namespace: str, commit: str) -> bool:
        """Remove the note of commit; False if there was none"""

        def _remove() -> bool:
            result = self._run(
                ["notes", f"--ref={namespace}", "remove", commit],
                check=False,
                env=self._note_identity_env(),
            )
            if result.returncode == 0:
                return True
            stderr = self._stderr(result)
            if "has no note" in stderr.lower():
                return False
            raise GitError(
                f"Failed to delete git note for {commit}: {stderr}",
                result.args,
                result.returncode,
                stderr,
            )

        return call_with_lock_retry(self.retry_config, _remove)

    def list_noted_commits(self, namespace: str) -> List[str]:
        """Commits that carry a note under namespace"""
        output = self._run_text(["notes", f"--ref={namespace}", "list"])
        commits = []
        for line in output.splitlines():
            parts = line.split()
            if len(parts) == 2:
                commits.append(parts[1])
        return commits

    def delete_namespace(self, namespace: str) -> int:
        """Drop every note under namespace; returns how many notes were removed"""
        commits = self.list_noted_commits(namespace)
        if not commits:
            return 0
        call_with_lock_retry(self.retry_config, self._run, ["update-ref", "-d", namespace])
        logger.info(f"Deleted {len(commits)} note(s) under {namespace}")
        return len(commits)
