"""Display configuration model."""

from typing import Literal

from pydantic import BaseModel, Field


class DisplayConfig(BaseModel):
    """Configuration for diff rendering.

    Attributes:
        diff_mode: Rendering mode (side-by-side or inline)
        context_lines: Context lines requested for a freshly loaded diff
        context_expand_increment: Context lines added per expansion
        horizontal_scroll_amount: Characters moved per horizontal scroll step
        column_width: Width of one side-by-side column
    """

    diff_mode: Literal["side-by-side", "inline"] = "side-by-side"
    context_lines: int = Field(8, ge=0, le=10000)
    context_expand_increment: int = Field(8, gt=0, le=10000)
    horizontal_scroll_amount: int = Field(4, gt=0, le=1000)
    column_width: int = Field(80, ge=10, le=1000)
