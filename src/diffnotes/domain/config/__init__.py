"""Configuration models with Pydantic validation."""

from diffnotes.domain.config.app import AppConfig
from diffnotes.domain.config.display import DisplayConfig
from diffnotes.domain.config.notes import NotesConfig
from diffnotes.domain.config.retry import RetryConfig

__all__ = [
    "AppConfig",
    "DisplayConfig",
    "NotesConfig",
    "RetryConfig",
]
