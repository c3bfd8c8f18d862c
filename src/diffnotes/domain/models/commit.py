"""CommitInfo model - a commit under review"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class CommitInfo:
    """Represents one commit in the review list"""

    id: str  # Full commit hash
    short_id: str
    message: str
    author_name: str
    timestamp: int  # Commit time, seconds since epoch

    @property
    def summary(self) -> str:
        """First line of the commit message"""
        lines = self.message.splitlines()
        return lines[0] if lines else ""

    def relative_time(self, now: Optional[datetime] = None) -> str:
        """Format commit time relative to now (e.g. "2 hours ago")"""
        now = now or datetime.now(timezone.utc)
        diff = int(now.timestamp()) - self.timestamp

        if diff < 60:
            return "just now"
        if diff < 3600:
            return f"{diff // 60} minutes ago"
        if diff < 86400:
            return f"{diff // 3600} hours ago"
        if diff < 2592000:
            return f"{diff // 86400} days ago"
        if diff < 31536000:
            return f"{diff // 2592000} months ago"
        return f"{diff // 31536000} years ago"
