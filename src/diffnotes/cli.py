"""CLI interface for diffnotes"""

import logging
from pathlib import Path
from typing import List, Optional

import click
from pydantic import ValidationError

from diffnotes.application.comment_store import CommentStore, StorageError
from diffnotes.application.review_session import ReviewSession
from diffnotes.application.side_by_side import join_columns
from diffnotes.domain.models.comment import Comment, LineSide
from diffnotes.domain.models.commit import CommitInfo
from diffnotes.infrastructure.config.config_manager import ConfigManager, ConfigurationError
from diffnotes.infrastructure.export import to_json, to_markdown
from diffnotes.infrastructure.git.client import (
    BaseRefNotFoundError,
    GitError,
    GitRepository,
    parse_range,
)

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    logging.getLogger().setLevel(level)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> None:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


def _config_manager(ctx: click.Context) -> ConfigManager:
    try:
        return ConfigManager(config_path=ctx.obj.get("config_path"), search_from=ctx.obj.get("repo_path"))
    except ConfigurationError as e:
        _die(str(e), verbose=ctx.obj.get("verbose", False), exc=e)


def _open_repository(ctx: click.Context, config_manager: ConfigManager) -> GitRepository:
    try:
        return GitRepository.discover(
            ctx.obj.get("repo_path"),
            notes_config=config_manager.get_notes_config(),
            retry_config=config_manager.get_retry_config(),
        )
    except GitError as e:
        _die(str(e), verbose=ctx.obj.get("verbose", False), exc=e)


def _open_store(ctx: click.Context, repository: GitRepository, config_manager: ConfigManager) -> CommentStore:
    verbose = ctx.obj.get("verbose", False)
    try:
        store = CommentStore(repository, repository.current_branch(), config_manager.get_notes_config())
        store.load()
    except (GitError, StorageError) as e:
        _die(f"Failed to load comments: {e}", verbose=verbose, exc=e)
    return store


def _review_commits(
    ctx: click.Context, repository: GitRepository, base: Optional[str], commit_range: Optional[str]
) -> List[CommitInfo]:
    """Commits under review: an explicit range, an explicit base or the detected base"""
    verbose = ctx.obj.get("verbose", False)
    try:
        if commit_range:
            start, end = parse_range(commit_range)
            return repository.list_commits_range(start, end)
        return repository.list_commits(base or repository.detect_base_branch())
    except ValueError as e:
        _die(str(e), verbose=verbose, exc=e)
    except BaseRefNotFoundError as e:
        _die(str(e), verbose=verbose, exc=e)
    except GitError as e:
        _die(f"Failed to list commits: {e}", verbose=verbose, exc=e)


def _resolve_commit(ctx: click.Context, repository: GitRepository, ref: str) -> str:
    commit_id = repository.resolve(ref)
    if commit_id is None:
        _die(f"Unknown commit: {ref}", verbose=ctx.obj.get("verbose", False))
    return commit_id


def review_options(func):
    """--base / --range options shared by commands that walk the reviewed commits"""
    func = click.option(
        "--range",
        "commit_range",
        type=str,
        help="Commit range START..END to review (overrides --base)",
    )(func)
    func = click.option(
        "--base",
        type=str,
        help="Base branch to compare against (default: detected main/master)",
    )(func)
    return func


def _build_session(
    ctx: click.Context,
    commit: Optional[str],
    base: Optional[str],
    commit_range: Optional[str],
    context: Optional[int] = None,
    height: int = 20,
) -> ReviewSession:
    config_manager = _config_manager(ctx)
    repository = _open_repository(ctx, config_manager)
    commits = _review_commits(ctx, repository, base, commit_range)
    if not commits:
        _die("No commits to review", verbose=ctx.obj.get("verbose", False))

    display = config_manager.get_display_config()
    if context is not None:
        display = display.model_copy(update={"context_lines": context})

    index = 0
    if commit:
        commit_id = _resolve_commit(ctx, repository, commit)
        index = next((i for i, c in enumerate(commits) if c.id == commit_id), None)
        if index is None:
            _die(f"Commit {commit} is not among the reviewed commits", verbose=ctx.obj.get("verbose", False))

    store = _open_store(ctx, repository, config_manager)
    session = ReviewSession(repository, commits, store, display, visible_height=height)
    if index:
        session.select_commit(index)
    else:
        session.start()
    return session


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .git-review.yml config file",
)
@click.option(
    "--repo",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Repository to review (default: current directory)",
)
@click.pass_context
def cli(ctx, verbose: bool, config: Path, repo: Path):
    """diffnotes - review commits and keep comments in git notes"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj["config_path"] = config
    ctx.obj["repo_path"] = repo
    ctx.obj["verbose"] = verbose


@cli.command()
@review_options
@click.pass_context
def log(ctx, base: Optional[str], commit_range: Optional[str]):
    """List the commits under review, newest first."""
    config_manager = _config_manager(ctx)
    repository = _open_repository(ctx, config_manager)
    commits = _review_commits(ctx, repository, base, commit_range)
    if not commits:
        click.echo("No commits to review")
        return

    store = _open_store(ctx, repository, config_manager)
    for commit in commits:
        collection = store.get(commit.id)
        marker = f"  [{len(collection.comments)} comment(s)]" if collection else ""
        click.echo(
            f"{commit.short_id}  {commit.summary}  ({commit.author_name}, {commit.relative_time()}){marker}"
        )


@cli.command()
@click.argument("commit", required=False)
@review_options
@click.option("--context", type=click.IntRange(min=0), help="Context lines (default: from config)")
@click.option("--expand", type=click.IntRange(min=0), default=0, help="Number of context expansions to apply")
@click.option(
    "--mode",
    type=click.Choice(["side-by-side", "inline"], case_sensitive=False),
    help="Diff mode. Overrides config.",
)
@click.option("--width", type=click.IntRange(min=10), help="Column width for side-by-side mode")
@click.option("--skip", type=click.IntRange(min=0), default=0, help="Rows to scroll down")
@click.option("--limit", type=click.IntRange(min=1), default=40, help="Rows to show")
@click.option("--hscroll", type=click.IntRange(min=0), default=0, help="Horizontal scroll offset")
@click.option("--file", "file_index", type=click.IntRange(min=0), default=0, help="File index (side-by-side)")
@click.pass_context
def show(
    ctx,
    commit: Optional[str],
    base: Optional[str],
    commit_range: Optional[str],
    context: Optional[int],
    expand: int,
    mode: Optional[str],
    width: Optional[int],
    skip: int,
    limit: int,
    hscroll: int,
    file_index: int,
):
    """Render the diff of a commit.

    COMMIT: Commit to show (default: newest reviewed commit)
    """
    session = _build_session(ctx, commit, base, commit_range, context, height=limit)
    for _ in range(expand):
        session.expand_context()

    selected = session.selected_commit
    click.echo(f"commit {selected.id}")
    click.echo(f"{selected.summary}  ({selected.author_name}, {selected.relative_time()})")
    click.echo(f"context: {session.state.context_lines} lines")
    click.echo("")

    if not session.files:
        click.echo("No changes")
        return

    diff_mode = (mode or session.display_config.diff_mode).lower()
    if diff_mode == "inline":
        session.scroll(skip)
        for row in session.inline_rows(limit):
            click.echo(row.text)
        return

    if not session.select_file(file_index):
        _die(f"File index {file_index} out of range (0-{len(session.files) - 1})", verbose=ctx.obj.get("verbose", False))
    session.state.file_scroll = skip
    session.state.horizontal_scroll = hscroll
    click.echo(f"[{file_index + 1}/{len(session.files)}] {session.selected_file.path}")
    left, right = session.side_by_side(width, limit)
    for line in join_columns(left, right):
        click.echo(line)


@cli.command()
@click.argument("query")
@click.argument("commit", required=False)
@review_options
@click.option("--context", type=click.IntRange(min=0), help="Context lines (default: from config)")
@click.pass_context
def search(ctx, query: str, commit: Optional[str], base: Optional[str], commit_range: Optional[str], context: Optional[int]):
    """Search the diff of a commit (case-insensitive).

    Prints one "row:column" position per match.
    """
    session = _build_session(ctx, commit, base, commit_range, context)
    matches = session.search(query)
    if not matches:
        click.echo(session.status_message or "No matches")
        return
    for match in matches:
        click.echo(f"{match.line_index}:{match.char_start}")


@cli.group()
def comment():
    """Add, list and delete review comments."""


@comment.command("add")
@click.argument("commit")
@click.argument("text")
@click.option("--file", "file_path", required=True, help="File the comment refers to")
@click.option("--line", type=click.IntRange(min=1), help="Line number (line-level comment)")
@click.option(
    "--side",
    type=click.Choice([s.value for s in LineSide]),
    default=LineSide.NEW.value,
    show_default=True,
    help="Side of the line number",
)
@click.option("--hunk", "hunk_header", help="Hunk header (hunk-level comment)")
@click.pass_context
def comment_add(
    ctx,
    commit: str,
    text: str,
    file_path: str,
    line: Optional[int],
    side: str,
    hunk_header: Optional[str],
):
    """Attach a comment to a commit.

    Without --line or --hunk the comment applies to the whole file.
    """
    verbose = ctx.obj.get("verbose", False)
    if line is not None and hunk_header:
        _die("--line and --hunk are mutually exclusive", verbose=verbose)

    config_manager = _config_manager(ctx)
    repository = _open_repository(ctx, config_manager)
    commit_id = _resolve_commit(ctx, repository, commit)
    store = _open_store(ctx, repository, config_manager)

    try:
        if line is not None:
            new_comment = Comment.for_line(file_path, line, LineSide(side), text)
        elif hunk_header:
            new_comment = Comment.for_hunk(file_path, hunk_header, text)
        else:
            new_comment = Comment.for_file(file_path, text)
    except ValidationError as e:
        _die(f"Invalid comment: {e.errors()[0]['msg']}", verbose=verbose, exc=e)

    try:
        store.add(commit_id, new_comment)
    except StorageError as e:
        _die(str(e), verbose=verbose, exc=e)
    click.echo(f"Comment saved on {commit_id[:7]} ({new_comment.location_desc()})")


@comment.command("list")
@click.argument("commit")
@click.option("--file", "file_path", help="Only comments of this file")
@click.pass_context
def comment_list(ctx, commit: str, file_path: Optional[str]):
    """List the comments of a commit.

    Indices are per file and are the ones "comment delete" expects.
    """
    config_manager = _config_manager(ctx)
    repository = _open_repository(ctx, config_manager)
    commit_id = _resolve_commit(ctx, repository, commit)
    store = _open_store(ctx, repository, config_manager)

    collection = store.get(commit_id)
    if collection is None:
        click.echo("No comments for this commit")
        return

    paths = [file_path] if file_path else sorted({c.file_path for c in collection.comments})
    for path in paths:
        comments = store.comments_for_file(commit_id, path)
        if not comments:
            continue
        click.echo(path)
        for index, item in enumerate(comments):
            click.echo(f"  [{index}] {item.location_desc()}: {item.text}")


@comment.command("delete")
@click.argument("commit")
@click.argument("index", type=click.IntRange(min=0))
@click.option("--file", "file_path", required=True, help="File the index refers to")
@click.pass_context
def comment_delete(ctx, commit: str, index: int, file_path: str):
    """Delete a comment by its per-file index."""
    verbose = ctx.obj.get("verbose", False)
    config_manager = _config_manager(ctx)
    repository = _open_repository(ctx, config_manager)
    commit_id = _resolve_commit(ctx, repository, commit)
    store = _open_store(ctx, repository, config_manager)

    try:
        deleted = store.delete(commit_id, file_path, index)
    except StorageError as e:
        _die(str(e), verbose=verbose, exc=e)
    if not deleted:
        _die(f"No comment {index} for {file_path} on {commit_id[:7]}", verbose=verbose)
    click.echo("Comment deleted")


@cli.command()
@click.option(
    "--format",
    "export_format",
    type=click.Choice(["markdown", "json"], case_sensitive=False),
    default="markdown",
    show_default=True,
)
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write to file instead of stdout")
@click.pass_context
def export(ctx, export_format: str, output: Optional[Path]):
    """Export every comment of the current branch."""
    config_manager = _config_manager(ctx)
    repository = _open_repository(ctx, config_manager)
    store = _open_store(ctx, repository, config_manager)

    collections = [store.get(commit_id) for commit_id in store.commit_ids()]
    if export_format.lower() == "json":
        content = to_json(collections)
    else:
        content = to_markdown(collections, store.branch)

    if output is None:
        click.echo(content)
        return
    output.write_text(content, encoding="utf-8")
    click.echo(f"Exported {len(collections)} commit(s) to {output}")


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def clear(ctx, yes: bool):
    """Delete all comments of the current branch."""
    verbose = ctx.obj.get("verbose", False)
    config_manager = _config_manager(ctx)
    repository = _open_repository(ctx, config_manager)
    store = _open_store(ctx, repository, config_manager)

    if not yes:
        click.confirm(f"Delete all comments for branch '{store.branch}'?", abort=True)
    try:
        deleted = store.clear()
    except StorageError as e:
        _die(str(e), verbose=verbose, exc=e)
    click.echo(f"Deleted comments for {deleted} commit(s)")


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
