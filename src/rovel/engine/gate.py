"""Access gate for the chapter read path."""

import logging
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from rovel.engine.catalog import CatalogService
from rovel.engine.leases import LeaseManager
from rovel.models import ChapterPayload
from rovel.observability.metrics import metrics

logger = logging.getLogger(__name__)

ANONYMOUS_USER_ID = "guest"


class GateOutcome(str, Enum):
    """Result of a gated chapter read."""

    ALLOWED = "allowed"
    LOCKED = "locked"
    NOT_FOUND = "not_found"


class GateDecision(BaseModel):
    """What the gate decided and, when allowed, the chapter to serve."""

    outcome: GateOutcome
    user_id: str
    content_id: Optional[int] = None
    chapter_id: str
    chapter: Optional[ChapterPayload] = None

    model_config = {"frozen": True}

    @property
    def allowed(self) -> bool:
        return self.outcome == GateOutcome.ALLOWED


class AccessGate:
    """Serves chapter content only to holders of an active lease.

    Locked and not-found are distinct outcomes: the lease is checked first,
    so a reader without an unlock is told to unlock whether or not the
    chapter exists.
    """

    def __init__(
        self,
        leases: LeaseManager,
        catalog: CatalogService,
        anonymous_user_id: str = ANONYMOUS_USER_ID,
    ):
        self.leases = leases
        self.catalog = catalog
        self.anonymous_user_id = anonymous_user_id

    async def check(
        self,
        content_key: Any,
        chapter_id: str,
        user_id: Optional[str] = None,
    ) -> GateDecision:
        """Decide whether `user_id` may read the chapter; fetch it if so.

        `content_key` is the content id or its normalized title.
        """
        if user_id is None or not str(user_id).strip():
            user_id = self.anonymous_user_id

        content_id = await self.catalog.resolve_content_id(content_key)
        if content_id is None or not await self.leases.is_active(user_id, content_id, chapter_id):
            metrics.inc_counter("gate.locked")
            return GateDecision(
                outcome=GateOutcome.LOCKED,
                user_id=user_id,
                content_id=content_id,
                chapter_id=chapter_id,
            )

        chapter = await self.catalog.get_chapter(content_id, chapter_id)
        if chapter is None:
            metrics.inc_counter("gate.not_found")
            return GateDecision(
                outcome=GateOutcome.NOT_FOUND,
                user_id=user_id,
                content_id=content_id,
                chapter_id=chapter_id,
            )

        metrics.inc_counter("gate.allowed")
        return GateDecision(
            outcome=GateOutcome.ALLOWED,
            user_id=user_id,
            content_id=content_id,
            chapter_id=chapter_id,
            chapter=chapter.payload(),
        )

    async def read_unchecked(
        self,
        normalized_title: str,
        chapter_id: str,
    ) -> Optional[ChapterPayload]:
        """Serve a chapter by normalized title WITHOUT any lease check.

        This bypasses the gate entirely. Only for flows that have already
        established access some other way.
        """
        chapter = await self.catalog.get_chapter_by_title(normalized_title, chapter_id)
        return chapter.payload() if chapter else None
