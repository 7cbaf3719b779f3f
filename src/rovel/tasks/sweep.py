"""Expired lease sweep background task."""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from rovel.observability.metrics import metrics
from rovel.tasks.scheduler import TaskScheduler

if TYPE_CHECKING:
    from rovel.engine.leases import LeaseManager

logger = logging.getLogger("rovel.sweep")


class LeaseSweeper:
    """Periodically deletes leases whose expiry has passed.

    Reads already treat expired leases as absent, so the sweep only bounds
    storage growth. It never removes a lease early: the cutoff is
    ``expires_at < now``, the complement of the read path's
    ``expires_at > now``.
    """

    def __init__(self, leases: "LeaseManager", interval_seconds: float = 60.0):
        self.leases = leases
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    async def run_once(self) -> int:
        """One sweep; returns how many leases were removed.

        Failures are logged and reported as zero so the next tick retries.
        """
        try:
            removed = await self.leases.expire()
        except Exception as e:
            metrics.inc_counter("leases.sweep_failed")
            logger.error(f"Lease sweep error: {e}", exc_info=True)
            return 0

        metrics.inc_counter("leases.swept", removed)
        if removed > 0:
            logger.info(f"Auto-cleaned {removed} expired chapter locks")
        return removed

    def start(self, scheduler: TaskScheduler) -> asyncio.Task:
        """Register the sweep loop with the process scheduler."""
        self._task = scheduler.run_periodic(
            self.interval_seconds,
            self.run_once,
            name="lease-sweep",
        )
        return self._task

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
