"""Lease model - temporary unlock of one chapter for one user."""

from datetime import datetime

from pydantic import BaseModel

from rovel.utils.time import utc_now


class Lease(BaseModel):
    """Represents a user's time-limited access to a chapter."""

    user_id: str
    content_id: int
    chapter_id: str
    granted_at: datetime
    expires_at: datetime

    def is_active(self, now: datetime | None = None) -> bool:
        """Active strictly before expires_at; expired at or after it."""
        if now is None:
            now = utc_now()
        return now < self.expires_at
