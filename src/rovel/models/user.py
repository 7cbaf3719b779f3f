"""User model."""

from datetime import datetime

from pydantic import BaseModel


class User(BaseModel):
    """Reader identity; guests are created anonymously on first visit."""

    id: str
    type: str = "guest"
    created_at: datetime
    last_seen: datetime
