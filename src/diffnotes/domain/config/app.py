"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from diffnotes.domain.config.display import DisplayConfig
from diffnotes.domain.config.notes import NotesConfig
from diffnotes.domain.config.retry import RetryConfig


class AppConfig(BaseModel):
    """Main application configuration.

    This is the root configuration model that aggregates all configuration sections.
    Validation is performed at load time to fail fast on configuration errors.

    Attributes:
        display: Diff rendering configuration
        notes: Comment storage configuration
        retry: Retry logic for note writes
    """

    display: DisplayConfig = Field(default_factory=DisplayConfig)
    notes: NotesConfig = Field(default_factory=NotesConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    model_config = ConfigDict(
        validate_assignment=True,  # Validate on attribute assignment
        extra="forbid",  # Reject unknown fields
        use_enum_values=True,
        json_schema_extra={
            "example": {
                "display": {
                    "diff_mode": "side-by-side",
                    "context_lines": 8,
                    "context_expand_increment": 8,
                    "horizontal_scroll_amount": 4,
                    "column_width": 80,
                },
                "notes": {
                    "ref_prefix": "refs/notes/git-review",
                },
                "retry": {
                    "max_attempts": 3,
                    "initial_delay": 0.2,
                    "backoff_multiplier": 2.0,
                    "jitter": 0.1,
                },
            }
        },
    )
