"""Comment models - review comments and their persisted per-commit collection"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from diffnotes.domain.models.diff import LineType


class CommentLevel(str, Enum):
    """Granularity a comment is attached to"""

    LINE = "line"
    HUNK = "hunk"
    FILE = "file"


class LineSide(str, Enum):
    """Side of the diff a line comment refers to"""

    OLD = "old"
    NEW = "new"
    CONTEXT = "context"

    @classmethod
    def from_line_type(cls, line_type: LineType) -> "LineSide":
        """Map a diff line type onto the side vocabulary"""
        if line_type is LineType.ADDED:
            return cls.NEW
        if line_type is LineType.REMOVED:
            return cls.OLD
        return cls.CONTEXT


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LineLocation(BaseModel):
    """Comment attached to a single line"""

    model_config = ConfigDict(frozen=True)

    type: Literal["line"] = "line"
    number: int = Field(..., ge=1)
    side: LineSide


class HunkLocation(BaseModel):
    """Comment attached to a hunk, identified by its header text"""

    model_config = ConfigDict(frozen=True)

    type: Literal["hunk"] = "hunk"
    header: str = Field(..., min_length=1)


class FileLocation(BaseModel):
    """Comment attached to a whole file"""

    model_config = ConfigDict(frozen=True)

    type: Literal["file"] = "file"


CommentLocation = Annotated[
    Union[LineLocation, HunkLocation, FileLocation],
    Field(discriminator="type"),
]


class Comment(BaseModel):
    """Represents a review comment

    Comments are immutable once created; they can only be deleted.
    """

    model_config = ConfigDict(frozen=True)

    file_path: str = Field(..., min_length=1)
    location: CommentLocation
    text: str
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Comment text cannot be empty")
        return value

    @computed_field  # type: ignore[misc]
    @property
    def level(self) -> CommentLevel:
        """Comment level derived from the location variant"""
        return CommentLevel(self.location.type)

    @classmethod
    def for_line(cls, file_path: str, number: int, side: LineSide, text: str) -> "Comment":
        return cls(file_path=file_path, location=LineLocation(number=number, side=side), text=text)

    @classmethod
    def for_hunk(cls, file_path: str, header: str, text: str) -> "Comment":
        return cls(file_path=file_path, location=HunkLocation(header=header), text=text)

    @classmethod
    def for_file(cls, file_path: str, text: str) -> "Comment":
        return cls(file_path=file_path, location=FileLocation(), text=text)

    def location_desc(self) -> str:
        """Human readable description of where the comment is attached"""
        location = self.location
        if isinstance(location, LineLocation):
            return f"Line {location.number} ({location.side.value})"
        if isinstance(location, HunkLocation):
            return f"Hunk {location.header}"
        return "File"

    def to_markdown(self) -> str:
        """Format comment as markdown"""
        return f"**{self.location_desc()}:** {self.text}"


class CommitComments(BaseModel):
    """All comments for one commit on one branch - the unit of persistence"""

    commit_id: str = Field(..., min_length=1)
    branch: str
    timestamp: datetime = Field(default_factory=_utcnow)
    comments: List[Comment] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.comments

    def with_comment(self, comment: Comment) -> "CommitComments":
        """Return a copy with the comment appended"""
        return self.model_copy(update={"comments": [*self.comments, comment]})

    def without_index(self, index: int) -> Optional["CommitComments"]:
        """Return a copy without the comment at index, or None if out of range"""
        if index < 0 or index >= len(self.comments):
            return None
        remaining = self.comments[:index] + self.comments[index + 1 :]
        return self.model_copy(update={"comments": remaining})

    def file_indices(self, file_path: str) -> List[int]:
        """Absolute indices of comments belonging to file_path, in display order"""
        return [i for i, c in enumerate(self.comments) if c.file_path == file_path]

    def comments_for_file(self, file_path: str) -> List[Comment]:
        return [c for c in self.comments if c.file_path == file_path]

    def comments_at_line(self, file_path: str, number: int, side: LineSide) -> List[Comment]:
        return [
            c
            for c in self.comments
            if c.file_path == file_path
            and isinstance(c.location, LineLocation)
            and c.location.number == number
            and c.location.side == side
        ]

    def comments_at_hunk(self, file_path: str, header: str) -> List[Comment]:
        return [
            c
            for c in self.comments
            if c.file_path == file_path
            and isinstance(c.location, HunkLocation)
            and c.location.header == header
        ]

    def file_level_comments(self, file_path: str) -> List[Comment]:
        return [
            c
            for c in self.comments
            if c.file_path == file_path and isinstance(c.location, FileLocation)
        ]

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, payload: str) -> "CommitComments":
        return cls.model_validate_json(payload)
