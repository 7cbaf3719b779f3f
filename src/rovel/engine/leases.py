"""Chapter unlock lease manager."""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from rovel.db.base import Database
from rovel.db.repositories import LeaseRepository, UserRepository
from rovel.errors import BadInput
from rovel.models import Lease
from rovel.observability.metrics import metrics
from rovel.tasks.scheduler import TaskScheduler
from rovel.utils.time import utc_now

logger = logging.getLogger(__name__)

DEFAULT_LEASE_DURATION = timedelta(minutes=10)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_lease_key(user_id: Any, content_id: Any, chapter_id: Any) -> tuple[str, int, str]:
    """Check and coerce a (user, content, chapter) triple.

    content_id is the canonical integer id; numeric strings are accepted.
    Raises BadInput before anything touches the store.
    """
    missing = [
        name
        for name, value in (
            ("userId", user_id),
            ("contentId", content_id),
            ("chapterId", chapter_id),
        )
        if _is_blank(value)
    ]
    if missing:
        raise BadInput(missing)

    if isinstance(content_id, bool):
        raise BadInput(["contentId"], reason="Invalid identifier")
    try:
        canonical_content_id = int(str(content_id).strip())
    except ValueError:
        raise BadInput(["contentId"], reason="Invalid identifier")

    return str(user_id).strip(), canonical_content_id, str(chapter_id).strip()


class LeaseManager:
    """Grants, renews, checks and expires chapter unlock leases.

    Consistency comes from the store: every mutation is one atomic upsert or
    delete-by-filter and every read filters on ``expires_at > now``. The
    manager holds no locks of its own.
    """

    def __init__(
        self,
        database: Database,
        scheduler: Optional[TaskScheduler] = None,
        lease_duration: timedelta = DEFAULT_LEASE_DURATION,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.database = database
        self.scheduler = scheduler
        self.lease_duration = lease_duration
        self.clock = clock

    async def grant(self, user_id: Any, content_id: Any, chapter_id: Any) -> Lease:
        """Create or renew the lease for a triple.

        Repeated grants leave a single lease carrying the latest expiry.
        """
        user_id, content_id, chapter_id = validate_lease_key(user_id, content_id, chapter_id)

        now = self.clock()
        async with self.database.session() as session:
            lease = await LeaseRepository(session).upsert(
                user_id=user_id,
                content_id=content_id,
                chapter_id=chapter_id,
                granted_at=now,
                expires_at=now + self.lease_duration,
            )

        metrics.inc_counter("leases.granted")
        await self._touch_last_seen(user_id, now)
        return lease

    async def is_active(self, user_id: Any, content_id: Any, chapter_id: Any) -> bool:
        """True iff an unexpired lease exists for the triple right now."""
        user_id, content_id, chapter_id = validate_lease_key(user_id, content_id, chapter_id)

        async with self.database.session() as session:
            lease = await LeaseRepository(session).find_active(
                user_id, content_id, chapter_id, now=self.clock()
            )
        return lease is not None

    async def list_active_for_user(self, user_id: str) -> list[Lease]:
        """All unexpired leases held by a user, in no particular order."""
        if _is_blank(user_id):
            raise BadInput(["userId"])

        async with self.database.session() as session:
            return await LeaseRepository(session).list_active(user_id, now=self.clock())

    async def revoke_all(self) -> int:
        """Administrative reset: delete every lease regardless of expiry."""
        async with self.database.session() as session:
            count = await LeaseRepository(session).delete_all()

        metrics.inc_counter("leases.revoked", count)
        logger.info(f"Revoked all chapter locks ({count} removed)")
        return count

    async def expire(self, now: Optional[datetime] = None) -> int:
        """Delete leases whose expiry is strictly in the past."""
        cutoff = now or self.clock()
        async with self.database.session() as session:
            return await LeaseRepository(session).delete_expired(cutoff)

    def schedule_delayed_grant(
        self,
        user_id: Any,
        content_id: Any,
        chapter_id: Any,
        delay: timedelta,
    ) -> None:
        """Grant after `delay` without holding up the caller.

        Fire-and-forget: the grant is lost if the process stops first and
        cannot be withdrawn once scheduled.
        """
        if self.scheduler is None:
            raise RuntimeError("LeaseManager was built without a scheduler")

        user_id, content_id, chapter_id = validate_lease_key(user_id, content_id, chapter_id)

        async def fire() -> None:
            await self.grant(user_id, content_id, chapter_id)
            logger.info(f"Chapter {content_id}-{chapter_id} unlocked for user {user_id}")

        self.scheduler.schedule_after(
            delay.total_seconds(),
            fire,
            name=f"delayed-grant:{user_id}:{content_id}:{chapter_id}",
        )

    async def _touch_last_seen(self, user_id: str, now: datetime) -> None:
        """Best-effort; a failure here never undoes the grant."""
        try:
            async with self.database.session() as session:
                await UserRepository(session).touch_last_seen(user_id, now)
        except Exception as e:
            logger.warning(f"Could not update last_seen for {user_id}: {e}")
