"""Database repositories for Rovel entities."""

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from rovel.db.tables import (
    AdsConfigTable,
    ChapterTable,
    ContentTable,
    LeaseTable,
    UploadTable,
    UserTable,
)
from rovel.models import (
    Chapter,
    ChapterCreate,
    Content,
    ContentCreate,
    Lease,
    UploadedImage,
    User,
    normalize_title,
)

ADS_CONFIG_ID = 1


def _dialect_insert(session: AsyncSession):
    """Return the dialect's insert() so upserts can use ON CONFLICT."""
    if session.get_bind().dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


class LeaseRepository:
    """Repository for chapter unlock leases.

    Every mutation is a single statement; the unique (user, content, chapter)
    key makes concurrent grants for one triple collapse into one row.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(
        self,
        user_id: str,
        content_id: int,
        chapter_id: str,
        granted_at: datetime,
        expires_at: datetime,
    ) -> Lease:
        """Create the lease or renew the existing one for this triple."""
        insert = _dialect_insert(self.session)
        stmt = insert(LeaseTable).values(
            user_id=user_id,
            content_id=content_id,
            chapter_id=chapter_id,
            granted_at=granted_at,
            expires_at=expires_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[
                LeaseTable.user_id,
                LeaseTable.content_id,
                LeaseTable.chapter_id,
            ],
            set_={
                "granted_at": stmt.excluded.granted_at,
                "expires_at": stmt.excluded.expires_at,
            },
        )
        await self.session.execute(stmt)

        return Lease(
            user_id=user_id,
            content_id=content_id,
            chapter_id=chapter_id,
            granted_at=granted_at,
            expires_at=expires_at,
        )

    async def find_active(
        self,
        user_id: str,
        content_id: int,
        chapter_id: str,
        now: datetime,
    ) -> Lease | None:
        """Get the lease for a triple if it has not expired at `now`."""
        result = await self.session.execute(
            select(LeaseTable).where(
                LeaseTable.user_id == user_id,
                LeaseTable.content_id == content_id,
                LeaseTable.chapter_id == chapter_id,
                LeaseTable.expires_at > now,
            )
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def get(self, user_id: str, content_id: int, chapter_id: str) -> Lease | None:
        """Get the stored lease for a triple regardless of expiry."""
        result = await self.session.execute(
            select(LeaseTable).where(
                LeaseTable.user_id == user_id,
                LeaseTable.content_id == content_id,
                LeaseTable.chapter_id == chapter_id,
            )
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def list_active(self, user_id: str, now: datetime) -> list[Lease]:
        """List leases for a user that have not expired at `now`."""
        result = await self.session.execute(
            select(LeaseTable).where(
                LeaseTable.user_id == user_id,
                LeaseTable.expires_at > now,
            )
        )
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def delete_all(self) -> int:
        """Delete every lease, expired or not."""
        result = await self.session.execute(delete(LeaseTable))
        return result.rowcount or 0

    async def delete_expired(self, now: datetime) -> int:
        """Delete leases whose expiry is strictly before `now`."""
        result = await self.session.execute(
            delete(LeaseTable).where(LeaseTable.expires_at < now)
        )
        return result.rowcount or 0

    def _row_to_model(self, row: LeaseTable) -> Lease:
        """Convert database row to model."""
        return Lease(
            user_id=row.user_id,
            content_id=row.content_id,
            chapter_id=row.chapter_id,
            granted_at=row.granted_at,
            expires_at=row.expires_at,
        )


class UserRepository:
    """Repository for reader accounts."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user_id: str, type: str, now: datetime) -> User:
        row = UserTable(id=user_id, type=type, created_at=now, last_seen=now)
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    async def get(self, user_id: str) -> User | None:
        row = await self.session.get(UserTable, user_id)
        return self._row_to_model(row) if row else None

    async def list(self) -> list[User]:
        result = await self.session.execute(select(UserTable).order_by(UserTable.created_at))
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def touch_last_seen(self, user_id: str, now: datetime) -> bool:
        """Bump last_seen; returns False when the user row does not exist."""
        result = await self.session.execute(
            update(UserTable).where(UserTable.id == user_id).values(last_seen=now)
        )
        return (result.rowcount or 0) > 0

    async def delete(self, user_id: str) -> bool:
        result = await self.session.execute(delete(UserTable).where(UserTable.id == user_id))
        return (result.rowcount or 0) > 0

    def _row_to_model(self, row: UserTable) -> User:
        return User(
            id=row.id,
            type=row.type,
            created_at=row.created_at,
            last_seen=row.last_seen,
        )


class ContentRepository:
    """Repository for manga/novel titles."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, data: ContentCreate, now: datetime) -> Content:
        row = ContentTable(
            **data.model_dump(),
            normalized_title=normalize_title(data.title),
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    async def get(self, content_id: int) -> Content | None:
        row = await self.session.get(ContentTable, content_id)
        return self._row_to_model(row) if row else None

    async def get_by_normalized_title(self, normalized_title: str) -> Content | None:
        result = await self.session.execute(
            select(ContentTable).where(ContentTable.normalized_title == normalized_title)
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def list(self, type: str | None = None) -> list[Content]:
        query = select(ContentTable).order_by(ContentTable.id)
        if type:
            query = query.where(ContentTable.type == type)
        result = await self.session.execute(query)
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def update(self, content_id: int, changes: dict[str, Any], now: datetime) -> bool:
        """Write only the given fields; returns False when no row matched."""
        values = dict(changes, updated_at=now)
        if "title" in changes:
            values["normalized_title"] = normalize_title(changes["title"])
        result = await self.session.execute(
            update(ContentTable).where(ContentTable.id == content_id).values(**values)
        )
        return (result.rowcount or 0) > 0

    async def adjust_chapters_count(self, content_id: int, delta: int) -> None:
        await self.session.execute(
            update(ContentTable)
            .where(ContentTable.id == content_id)
            .values(chapters_count=ContentTable.chapters_count + delta)
        )

    async def delete(self, content_id: int) -> bool:
        result = await self.session.execute(
            delete(ContentTable).where(ContentTable.id == content_id)
        )
        return (result.rowcount or 0) > 0

    def _row_to_model(self, row: ContentTable) -> Content:
        return Content(
            id=row.id,
            title=row.title,
            normalized_title=row.normalized_title,
            description=row.description,
            type=row.type,
            cover=row.cover,
            author=row.author,
            genres=row.genres,
            status=row.status,
            rating=row.rating,
            chapters_count=row.chapters_count,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class ChapterRepository:
    """Repository for chapter bodies."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        content: Content,
        data: ChapterCreate,
        now: datetime,
    ) -> Chapter:
        row = ChapterTable(
            content_id=content.id,
            chapter_id=data.chapter_id,
            normalized_title=content.normalized_title,
            title=data.title or f"Chapter {data.chapter_id}",
            pages=list(data.pages),
            content=data.content,
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    async def get(self, content_id: int, chapter_id: str) -> Chapter | None:
        result = await self.session.execute(
            select(ChapterTable).where(
                ChapterTable.content_id == content_id,
                ChapterTable.chapter_id == chapter_id,
            )
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def get_by_normalized_title(
        self,
        normalized_title: str,
        chapter_id: str,
    ) -> Chapter | None:
        result = await self.session.execute(
            select(ChapterTable).where(
                ChapterTable.normalized_title == normalized_title,
                ChapterTable.chapter_id == chapter_id,
            )
        )
        row = result.scalars().first()
        return self._row_to_model(row) if row else None

    async def list_for_content(self, content_id: int) -> list[Chapter]:
        result = await self.session.execute(
            select(ChapterTable)
            .where(ChapterTable.content_id == content_id)
            .order_by(ChapterTable.id)
        )
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def rename_content(self, content_id: int, normalized_title: str) -> None:
        """Keep chapter title keys in step with a renamed content item."""
        await self.session.execute(
            update(ChapterTable)
            .where(ChapterTable.content_id == content_id)
            .values(normalized_title=normalized_title)
        )

    async def delete(self, content_id: int, chapter_id: str) -> bool:
        result = await self.session.execute(
            delete(ChapterTable).where(
                ChapterTable.content_id == content_id,
                ChapterTable.chapter_id == chapter_id,
            )
        )
        return (result.rowcount or 0) > 0

    async def delete_for_content(self, content_id: int) -> int:
        result = await self.session.execute(
            delete(ChapterTable).where(ChapterTable.content_id == content_id)
        )
        return result.rowcount or 0

    def _row_to_model(self, row: ChapterTable) -> Chapter:
        return Chapter(
            content_id=row.content_id,
            chapter_id=row.chapter_id,
            normalized_title=row.normalized_title,
            title=row.title,
            pages=list(row.pages or []),
            content=row.content,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class AdsConfigRepository:
    """Repository for the singleton ads configuration document."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self) -> dict[str, Any] | None:
        row = await self.session.get(AdsConfigTable, ADS_CONFIG_ID)
        return dict(row.config) if row else None

    async def put(self, config: dict[str, Any], now: datetime) -> None:
        insert = _dialect_insert(self.session)
        stmt = insert(AdsConfigTable).values(id=ADS_CONFIG_ID, config=config, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[AdsConfigTable.id],
            set_={"config": stmt.excluded.config, "updated_at": stmt.excluded.updated_at},
        )
        await self.session.execute(stmt)


class UploadRepository:
    """Repository for uploaded images."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        data: bytes,
        content_type: str,
        filename: str | None,
        now: datetime,
    ) -> UploadedImage:
        row = UploadTable(
            id=uuid4().hex,
            filename=filename,
            content_type=content_type,
            data=data,
            size=len(data),
            uploaded_at=now,
        )
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    async def get(self, image_id: str) -> UploadedImage | None:
        row = await self.session.get(UploadTable, image_id)
        return self._row_to_model(row) if row else None

    def _row_to_model(self, row: UploadTable) -> UploadedImage:
        return UploadedImage(
            id=row.id,
            filename=row.filename,
            content_type=row.content_type,
            data=row.data,
            size=row.size,
            uploaded_at=row.uploaded_at,
        )
