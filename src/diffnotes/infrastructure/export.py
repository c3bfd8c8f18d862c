"""Export of branch comments as Markdown or JSON"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel

from diffnotes.domain.models.comment import (
    Comment,
    CommentLevel,
    CommitComments,
    HunkLocation,
    LineLocation,
)

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ExportComment(BaseModel):
    level: CommentLevel
    line: Optional[int] = None
    side: Optional[str] = None
    hunk_header: Optional[str] = None
    text: str
    created_at: datetime


class ExportFile(BaseModel):
    path: str
    comments: List[ExportComment]


class ExportCommit(BaseModel):
    id: str
    timestamp: datetime
    files: List[ExportFile]


class ExportData(BaseModel):
    branch: str
    exported_at: datetime
    commits: List[ExportCommit]


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _group_by_file(collection: CommitComments) -> Dict[str, List[Comment]]:
    grouped: Dict[str, List[Comment]] = defaultdict(list)
    for comment in collection.comments:
        grouped[comment.file_path].append(comment)
    return dict(sorted(grouped.items()))


def to_markdown(
    collections: Sequence[CommitComments], branch: str, now: Optional[datetime] = None
) -> str:
    """Render comments grouped by commit, then by file

    Within a file, line comments come first, then hunk comments, then
    file-level comments.
    """
    lines = [f"# Code Review: {branch}", "", f"Exported: {_now(now).strftime(_DATE_FORMAT)}", ""]

    if not collections:
        lines.append("No comments found.")
        return "\n".join(lines) + "\n"

    lines += [f"Total commits with comments: {len(collections)}", "", "---", ""]

    for collection in collections:
        lines += [
            f"## Commit: {collection.commit_id[:7]}",
            "",
            f"Date: {collection.timestamp.strftime(_DATE_FORMAT)}",
            "",
        ]
        for file_path, comments in _group_by_file(collection).items():
            lines += [f"### {file_path}", ""]
            for level in (CommentLevel.LINE, CommentLevel.HUNK, CommentLevel.FILE):
                for comment in comments:
                    if comment.level is not level:
                        continue
                    title = "File-level Comment" if level is CommentLevel.FILE else comment.location_desc()
                    lines += [f"#### {title}", "", f"**Comment:** {comment.text}", ""]
        lines += ["---", ""]

    return "\n".join(lines)


def _export_comment(comment: Comment) -> ExportComment:
    location = comment.location
    fields = {}
    if isinstance(location, LineLocation):
        fields = {"line": location.number, "side": location.side.value}
    elif isinstance(location, HunkLocation):
        fields = {"hunk_header": location.header}
    return ExportComment(level=comment.level, text=comment.text, created_at=comment.created_at, **fields)


def to_json(collections: Sequence[CommitComments], now: Optional[datetime] = None) -> str:
    """Serialize comments as {branch, exported_at, commits: [...]}

    Optional fields (line, side, hunk_header) are omitted when they do not
    apply to the comment's level.
    """
    commits = [
        ExportCommit(
            id=collection.commit_id,
            timestamp=collection.timestamp,
            files=[
                ExportFile(path=path, comments=[_export_comment(c) for c in comments])
                for path, comments in _group_by_file(collection).items()
            ],
        )
        for collection in collections
    ]
    data = ExportData(
        branch=collections[0].branch if collections else "",
        exported_at=_now(now),
        commits=commits,
    )
    return data.model_dump_json(indent=2, exclude_none=True)
