"""Plain record services: users, ads configuration and uploaded images."""

import logging
import secrets
import string
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Optional

from rovel.db.base import Database
from rovel.db.repositories import AdsConfigRepository, UploadRepository, UserRepository
from rovel.errors import BadInput, ImageNotFound, UploadTooLarge, UserNotFound
from rovel.models import UploadedImage, User, default_ads_config
from rovel.utils.time import utc_now

logger = logging.getLogger(__name__)

_GUEST_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def new_guest_id(now: datetime) -> str:
    """guest_<epoch ms>_<9 random chars>"""
    suffix = "".join(secrets.choice(_GUEST_SUFFIX_ALPHABET) for _ in range(9))
    return f"guest_{int(now.timestamp() * 1000)}_{suffix}"


class UserService:
    def __init__(self, database: Database, clock: Callable[[], datetime] = utc_now):
        self.database = database
        self.clock = clock

    async def create_guest(self) -> User:
        now = self.clock()
        async with self.database.session() as session:
            return await UserRepository(session).create(new_guest_id(now), "guest", now)

    async def list_users(self) -> list[User]:
        async with self.database.session() as session:
            return await UserRepository(session).list()

    async def delete_user(self, user_id: str) -> None:
        async with self.database.session() as session:
            if not await UserRepository(session).delete(user_id):
                raise UserNotFound(user_id)


class AdsConfigService:
    """Singleton ads configuration with a built-in default."""

    def __init__(
        self,
        database: Database,
        lease_duration_ms: int,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.database = database
        self.lease_duration_ms = lease_duration_ms
        self.clock = clock

    async def get(self) -> dict[str, Any]:
        async with self.database.session() as session:
            stored = await AdsConfigRepository(session).get()
        if stored is None:
            return default_ads_config(self.lease_duration_ms)
        return stored

    async def put(self, config: dict[str, Any]) -> None:
        async with self.database.session() as session:
            await AdsConfigRepository(session).put(config, now=self.clock())
        logger.info("Ads config updated")


class UploadService:
    """Stores uploaded images inline in the durable store."""

    def __init__(
        self,
        database: Database,
        max_bytes: int,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.database = database
        self.max_bytes = max_bytes
        self.clock = clock

    async def read_body(
        self,
        chunks: AsyncIterator[bytes],
        declared_size: Optional[int] = None,
    ) -> bytes:
        """Collect an upload body, stopping as soon as it passes the limit.

        A declared Content-Length over the limit is refused before reading.
        """
        if declared_size is not None and declared_size > self.max_bytes:
            raise UploadTooLarge(declared_size, self.max_bytes)

        received = bytearray()
        async for chunk in chunks:
            received.extend(chunk)
            if len(received) > self.max_bytes:
                raise UploadTooLarge(len(received), self.max_bytes)
        return bytes(received)

    async def store(
        self,
        data: bytes,
        content_type: Optional[str],
        filename: Optional[str] = None,
    ) -> UploadedImage:
        if not data:
            raise BadInput(["image"], reason="No file uploaded")
        if not content_type:
            raise BadInput(["Content-Type"])
        if len(data) > self.max_bytes:
            raise UploadTooLarge(len(data), self.max_bytes)

        async with self.database.session() as session:
            return await UploadRepository(session).create(
                data, content_type, filename, now=self.clock()
            )

    async def get(self, image_id: str) -> UploadedImage:
        async with self.database.session() as session:
            image = await UploadRepository(session).get(image_id)
        if not image:
            raise ImageNotFound(image_id)
        return image
