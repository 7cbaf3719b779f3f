"""Content and chapter models."""

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

_SEPARATORS = re.compile(r"[\W_]+")


def normalize_title(title: str) -> str:
    """Derive the content key used by reader routes.

    Letters and digits of any script are kept:
    "Solo Leveling: Ragnarok" -> "solo-leveling-ragnarok",
    "進撃の巨人" -> "進撃の巨人". Punctuation-only titles normalize to "".
    """
    return _SEPARATORS.sub("-", title.strip().casefold()).strip("-")


class Content(BaseModel):
    """A manga or novel title."""

    id: int
    title: str
    normalized_title: str
    description: Optional[str] = None
    type: str = "manga"
    cover: Optional[str] = None
    author: str = "Unknown"
    genres: str = "Action, Adventure"
    status: str = "Ongoing"
    rating: str = "4.5"
    chapters_count: int = 0
    created_at: datetime
    updated_at: datetime


class ContentCreate(BaseModel):
    """Fields accepted when creating content; unset fields take defaults."""

    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    type: str = "manga"
    cover: Optional[str] = None
    author: str = "Unknown"
    genres: str = "Action, Adventure"
    status: str = "Ongoing"
    rating: str = "4.5"
    chapters_count: int = 0


class ContentPatch(BaseModel):
    """Partial update: only fields present (and non-empty) are written."""

    title: Optional[str] = None
    description: Optional[str] = None
    cover: Optional[str] = None
    author: Optional[str] = None
    genres: Optional[str] = None
    status: Optional[str] = None
    rating: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        return {
            name: value
            for name, value in self.model_dump(exclude_unset=True).items()
            if value not in (None, "")
        }


class ChapterPayload(BaseModel):
    """What a reader receives for one chapter."""

    title: str
    pages: list[str] = Field(default_factory=list)
    content: Optional[str] = None


class Chapter(BaseModel):
    """A stored chapter."""

    content_id: int
    chapter_id: str
    normalized_title: str
    title: str
    pages: list[str] = Field(default_factory=list)
    content: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    def payload(self) -> ChapterPayload:
        return ChapterPayload(title=self.title, pages=self.pages, content=self.content)


class ChapterCreate(BaseModel):
    chapter_id: str = Field(..., min_length=1)
    title: Optional[str] = None
    pages: list[str] = Field(default_factory=list)
    content: Optional[str] = None
