"""REST API router - chapter unlocks and the reader path."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from rovel.api.deps import (
    get_access_gate,
    get_catalog,
    get_lease_manager,
    get_services,
    verify_admin_key,
)
from rovel.api.schemas import (
    ActionResponse,
    AdCompleteRequest,
    CheckUnlockResponse,
    HealthResponse,
    LeaseResponse,
    RefreshLocksResponse,
    StartTimerRequest,
    StartTimerResponse,
    UnlockRequest,
    UnlockResponse,
)
from rovel.container import Services
from rovel.engine import AccessGate, CatalogService, GateOutcome, LeaseManager
from rovel.errors import BadInput
from rovel.models import ChapterPayload
from rovel.observability.metrics import metrics
from rovel.tasks import SchedulerClosed
from rovel.utils.time import ms_to_timedelta, utc_now

logger = logging.getLogger("rovel.api")

router = APIRouter(prefix="/api")
reader_router = APIRouter()


# ============================================================================
# Health
# ============================================================================


@reader_router.get("/health", response_model=HealthResponse)
async def health_check(services: Services = Depends(get_services)):
    """Health check endpoint."""
    database = services.database
    return HealthResponse(
        status="healthy" if database.is_connected else "unhealthy",
        database=database.state.value,
        timestamp=utc_now(),
    )


@router.get("/metrics", dependencies=[Depends(verify_admin_key)])
async def get_metrics():
    """In-process counters and query timings."""
    return metrics.snapshot()


# ============================================================================
# Chapter locks
# ============================================================================


@router.get(
    "/check-unlock/{user_id}/{content_id}/{chapter_id}",
    response_model=CheckUnlockResponse,
)
async def check_unlock(
    user_id: str,
    content_id: str,
    chapter_id: str,
    leases: LeaseManager = Depends(get_lease_manager),
    catalog: CatalogService = Depends(get_catalog),
):
    """Is the chapter currently unlocked for this user?"""
    resolved = await catalog.resolve_content_id(content_id, prefer_title=False)
    if resolved is None:
        return CheckUnlockResponse(unlocked=False)
    return CheckUnlockResponse(unlocked=await leases.is_active(user_id, resolved, chapter_id))


@router.post("/unlock-chapter", response_model=UnlockResponse)
async def unlock_chapter(
    request: UnlockRequest,
    leases: LeaseManager = Depends(get_lease_manager),
):
    """Grant (or renew) a chapter unlock."""
    lease = await leases.grant(request.user_id, request.content_id, request.chapter_id)
    return UnlockResponse(
        message="Chapter unlocked successfully",
        granted_at=lease.granted_at,
        expires_at=lease.expires_at,
    )


@router.post("/start-chapter-timer", response_model=StartTimerResponse)
async def start_chapter_timer(
    request: StartTimerRequest,
    services: Services = Depends(get_services),
):
    """Unlock the chapter after a countdown; returns immediately."""
    delay_ms = request.delay_ms
    if delay_ms is None:
        delay_ms = services.settings.delayed_grant_default_ms

    try:
        services.leases.schedule_delayed_grant(
            request.user_id,
            request.content_id,
            request.chapter_id,
            delay=ms_to_timedelta(delay_ms),
        )
    except SchedulerClosed as e:
        raise HTTPException(status_code=503, detail=str(e))

    return StartTimerResponse(
        message=f"Chapter unlock timer started ({delay_ms // 1000} seconds)",
        timer_duration=delay_ms,
    )


@router.get("/user-locks/{user_id}", response_model=list[LeaseResponse])
async def user_locks(
    user_id: str,
    leases: LeaseManager = Depends(get_lease_manager),
):
    """Active unlocks held by a user."""
    active = await leases.list_active_for_user(user_id)
    return [LeaseResponse(**lease.model_dump()) for lease in active]


@router.post(
    "/refresh-chapter-locks",
    response_model=RefreshLocksResponse,
    dependencies=[Depends(verify_admin_key)],
)
async def refresh_chapter_locks(leases: LeaseManager = Depends(get_lease_manager)):
    """Reset every chapter lock (administrative)."""
    deleted = await leases.revoke_all()
    return RefreshLocksResponse(
        message="All chapter locks refreshed",
        deleted_count=deleted,
    )


@reader_router.post("/ads-complete", response_model=ActionResponse)
async def ads_complete(
    request: AdCompleteRequest,
    leases: LeaseManager = Depends(get_lease_manager),
    catalog: CatalogService = Depends(get_catalog),
):
    """Ad finished playing: unlock the chapter it was gating."""
    missing = [
        name
        for name, value in (
            ("userId", request.user_id),
            ("manga", request.manga),
            ("chapterId", request.chapter_id),
        )
        if value is None or value == ""
    ]
    if missing:
        raise BadInput(missing)

    content_id = await catalog.resolve_content_id(request.manga)
    if content_id is None:
        raise HTTPException(status_code=404, detail=f"Content not found: {request.manga}")

    await leases.grant(request.user_id, content_id, request.chapter_id)
    return ActionResponse(message="Ad completed and chapter unlocked")


# ============================================================================
# Reader
# ============================================================================


@reader_router.get("/chapter/{manga}/{chapter_id}", response_model=ChapterPayload)
async def read_chapter(
    manga: str,
    chapter_id: str,
    user: Optional[str] = Query(None),
    gate: AccessGate = Depends(get_access_gate),
):
    """Serve a chapter to a reader holding an active unlock."""
    decision = await gate.check(manga, chapter_id, user_id=user)

    if decision.outcome == GateOutcome.LOCKED:
        raise HTTPException(
            status_code=402,
            detail="Chapter locked. Please watch an ad to unlock.",
        )
    if decision.outcome == GateOutcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Chapter not found")
    return decision.chapter


@reader_router.get(
    "/direct-chapter/{manga}/{chapter_id}",
    response_model=ChapterPayload,
    description=(
        "UNCHECKED: serves the chapter by normalized title without consulting "
        "chapter locks. Only for flows that already established access."
    ),
)
async def read_chapter_unchecked(
    manga: str,
    chapter_id: str,
    gate: AccessGate = Depends(get_access_gate),
):
    """Serve a chapter with no lock check (bypasses the access gate)."""
    chapter = await gate.read_unchecked(manga, chapter_id)
    if chapter is None:
        raise HTTPException(status_code=404, detail="Chapter not found")
    return chapter
