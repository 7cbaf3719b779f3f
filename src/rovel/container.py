"""Explicit dependency container for runtime wiring.

Side-effect free on import: nothing connects or starts until the
application lifespan calls into it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from rovel.config import Settings
from rovel.db.base import Database
from rovel.engine import (
    AccessGate,
    AdsConfigService,
    CatalogService,
    LeaseManager,
    UploadService,
    UserService,
)
from rovel.tasks import LeaseSweeper, TaskScheduler
from rovel.utils.time import ms_to_timedelta, utc_now


@dataclass
class Services:
    """Holds the constructed runtime dependencies."""

    settings: Settings
    database: Database
    scheduler: TaskScheduler

    leases: LeaseManager
    sweeper: LeaseSweeper
    gate: AccessGate
    catalog: CatalogService

    users: UserService
    ads: AdsConfigService
    uploads: UploadService


def build_services(
    settings: Settings,
    database: Optional[Database] = None,
    scheduler: Optional[TaskScheduler] = None,
    clock: Callable[[], datetime] = utc_now,
) -> Services:
    """Wire every service around one store handle and one scheduler."""
    if database is None:
        database = Database(
            settings.database_url,
            echo=settings.debug,
            timeout_seconds=settings.store_timeout_seconds,
        )
    if scheduler is None:
        scheduler = TaskScheduler(drain_timeout_seconds=settings.scheduler_drain_timeout_seconds)

    leases = LeaseManager(
        database,
        scheduler=scheduler,
        lease_duration=ms_to_timedelta(settings.lease_duration_ms),
        clock=clock,
    )
    catalog = CatalogService(database, clock=clock)

    return Services(
        settings=settings,
        database=database,
        scheduler=scheduler,
        leases=leases,
        sweeper=LeaseSweeper(leases, interval_seconds=settings.sweep_interval_ms / 1000.0),
        gate=AccessGate(leases, catalog, anonymous_user_id=settings.anonymous_user_id),
        catalog=catalog,
        users=UserService(database, clock=clock),
        ads=AdsConfigService(database, settings.lease_duration_ms, clock=clock),
        uploads=UploadService(database, settings.upload_max_bytes, clock=clock),
    )


async def start_services(services: Services) -> None:
    """Connect the store (with retries), ensure tables, start the sweep."""
    settings = services.settings
    await services.database.connect(
        max_attempts=settings.store_connect_max_attempts,
        retry_delay_seconds=settings.store_connect_retry_delay_seconds,
    )
    await services.database.create_schema()
    services.sweeper.start(services.scheduler)


async def stop_services(services: Services) -> None:
    """Drain background jobs before the store they use goes away."""
    await services.scheduler.shutdown()
    await services.database.close()
