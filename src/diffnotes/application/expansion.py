"""Context expansion for the active diff

git produces a single context width per diff request, so widening context is a
property of the whole diff rather than of one hunk: every change re-requests
and re-parses the diff.
"""

import logging
from typing import Optional

from diffnotes.domain.models.diff import Hunk

logger = logging.getLogger(__name__)


def available_lines_above(hunk: Hunk) -> int:
    return hunk.available_lines_above()


def can_expand_below(hunk: Hunk, file_lines: Optional[int]) -> bool:
    """Whether "expand below" is offered; unknown file length offers nothing"""
    if file_lines is None:
        return False
    return hunk.can_expand_below(file_lines)


class ContextController:
    """Tracks the context width requested for the active diff"""

    def __init__(self, default_context: int = 8, increment: int = 8):
        if default_context < 0:
            raise ValueError("default_context must be >= 0")
        if increment <= 0:
            raise ValueError("increment must be > 0")
        self.default_context = default_context
        self.increment = increment
        self.current = default_context

    def expand(self, increment: Optional[int] = None) -> int:
        """Widen context by increment (default: configured increment)"""
        step = self.increment if increment is None else increment
        if step <= 0:
            raise ValueError("increment must be > 0")
        self.current += step
        logger.debug(f"Context expanded to {self.current} lines")
        return self.current

    def reset(self) -> int:
        """Restore the configured default context"""
        self.current = self.default_context
        return self.current

    @property
    def is_expanded(self) -> bool:
        return self.current != self.default_context
