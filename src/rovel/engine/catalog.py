"""Content and chapter catalog."""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.exc import IntegrityError

from rovel.db.base import Database
from rovel.db.repositories import ChapterRepository, ContentRepository
from rovel.errors import (
    BadInput,
    ChapterAlreadyExists,
    ChapterNotFound,
    ContentAlreadyExists,
    ContentNotFound,
)
from rovel.models import (
    Chapter,
    ChapterCreate,
    ChapterPayload,
    Content,
    ContentCreate,
    ContentPatch,
    normalize_title,
)
from rovel.utils.time import utc_now

logger = logging.getLogger(__name__)


def parse_content_id(content_key: Any) -> Optional[int]:
    """Return the integer id if `content_key` is one, else None."""
    if isinstance(content_key, bool):
        return None
    if isinstance(content_key, int):
        return content_key
    text = str(content_key).strip()
    if text.isascii() and text.isdigit():
        return int(text)
    return None


def _require_title_key(title: str) -> None:
    if not normalize_title(title):
        raise BadInput(["title"], reason="Title has no letters or digits")


class CatalogService:
    """Titles and their chapters.

    Content has two keys: the integer id (canonical, used by leases) and the
    normalized title (used in reader URLs). ``resolve_content_id`` maps the
    latter onto the former so both paths share one lease key space.
    """

    def __init__(self, database: Database, clock: Callable[[], datetime] = utc_now):
        self.database = database
        self.clock = clock

    async def resolve_content_id(
        self,
        content_key: Any,
        prefer_title: bool = True,
    ) -> Optional[int]:
        """Translate a normalized title or id into the canonical content id.

        Titles can be all digits ("86", "1984"), so reader keys are matched
        against titles first and only then read as an id. Callers whose key
        is an id by contract pass ``prefer_title=False``.
        """
        content_id = parse_content_id(content_key)
        if content_id is not None and not prefer_title:
            return content_id

        normalized = normalize_title(str(content_key))
        if normalized:
            async with self.database.session() as session:
                content = await ContentRepository(session).get_by_normalized_title(normalized)
            if content:
                return content.id
        return content_id

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def list_content(self, type: Optional[str] = None) -> list[Content]:
        async with self.database.session() as session:
            return await ContentRepository(session).list(type=type)

    async def get_content(self, content_id: int) -> Content:
        async with self.database.session() as session:
            content = await ContentRepository(session).get(content_id)
        if not content:
            raise ContentNotFound(str(content_id))
        return content

    async def create_content(self, data: ContentCreate) -> Content:
        _require_title_key(data.title)
        try:
            async with self.database.session() as session:
                content = await ContentRepository(session).create(data, now=self.clock())
        except IntegrityError:
            raise ContentAlreadyExists(normalize_title(data.title))

        logger.info(f"Created content {content.id} ({content.normalized_title})")
        return content

    async def update_content(self, content_id: int, patch: ContentPatch) -> Content:
        """Apply only the fields present in `patch`."""
        changes = patch.changes()
        if "title" in changes:
            _require_title_key(changes["title"])
        try:
            async with self.database.session() as session:
                contents = ContentRepository(session)
                if not await contents.update(content_id, changes, now=self.clock()):
                    raise ContentNotFound(str(content_id))
                if "title" in changes:
                    await ChapterRepository(session).rename_content(
                        content_id, normalize_title(changes["title"])
                    )
                content = await contents.get(content_id)
        except IntegrityError:
            raise ContentAlreadyExists(normalize_title(changes.get("title", "")))
        return content

    async def delete_content(self, content_id: int) -> int:
        """Delete a title and its chapters; returns how many chapters went with it."""
        async with self.database.session() as session:
            removed = await ChapterRepository(session).delete_for_content(content_id)
            if not await ContentRepository(session).delete(content_id):
                raise ContentNotFound(str(content_id))

        logger.info(f"Deleted content {content_id} and {removed} chapters")
        return removed

    # ------------------------------------------------------------------
    # Chapters
    # ------------------------------------------------------------------

    async def list_chapters(self, content_id: int) -> dict[str, ChapterPayload]:
        """Chapters keyed by chapter id, as the reader app consumes them."""
        async with self.database.session() as session:
            chapters = await ChapterRepository(session).list_for_content(content_id)
        return {chapter.chapter_id: chapter.payload() for chapter in chapters}

    async def create_chapter(self, content_id: int, data: ChapterCreate) -> Chapter:
        try:
            async with self.database.session() as session:
                content = await ContentRepository(session).get(content_id)
                if not content:
                    raise ContentNotFound(str(content_id))

                chapters = ChapterRepository(session)
                if await chapters.get(content_id, data.chapter_id):
                    raise ChapterAlreadyExists(content_id, data.chapter_id)

                chapter = await chapters.create(content, data, now=self.clock())
                await ContentRepository(session).adjust_chapters_count(content_id, 1)
        except IntegrityError:
            raise ChapterAlreadyExists(content_id, data.chapter_id)
        return chapter

    async def delete_chapter(self, content_id: int, chapter_id: str) -> None:
        async with self.database.session() as session:
            if not await ChapterRepository(session).delete(content_id, chapter_id):
                raise ChapterNotFound(str(content_id), chapter_id)
            await ContentRepository(session).adjust_chapters_count(content_id, -1)

    async def get_chapter(self, content_id: int, chapter_id: str) -> Optional[Chapter]:
        async with self.database.session() as session:
            return await ChapterRepository(session).get(content_id, chapter_id)

    async def get_chapter_by_title(
        self,
        normalized_title: str,
        chapter_id: str,
    ) -> Optional[Chapter]:
        async with self.database.session() as session:
            return await ChapterRepository(session).get_by_normalized_title(
                normalize_title(normalized_title), chapter_id
            )
