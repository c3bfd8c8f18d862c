"""Notes storage configuration model."""

from pydantic import BaseModel, Field, field_validator


class NotesConfig(BaseModel):
    """Configuration for comment storage in git notes.

    Attributes:
        ref_prefix: Notes ref under which one namespace per branch is created
        author_name: Identity used for note commits when git has none configured
        author_email: Email used for note commits when git has none configured
    """

    ref_prefix: str = "refs/notes/git-review"
    author_name: str = Field("git-review", min_length=1)
    author_email: str = Field("git-review@local", min_length=1)

    @field_validator("ref_prefix")
    @classmethod
    def _must_be_notes_ref(cls, value: str) -> str:
        value = value.rstrip("/")
        if not value.startswith("refs/notes/") or value == "refs/notes":
            raise ValueError("ref_prefix must be a ref below refs/notes/")
        if ".." in value or " " in value:
            raise ValueError("ref_prefix is not a valid ref name")
        return value
