"""Process-wide owner of background jobs."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger("rovel.scheduler")

Job = Callable[[], Awaitable[Any]]


class SchedulerClosed(RuntimeError):
    """Raised when scheduling on a scheduler that has been shut down."""


class TaskScheduler:
    """Runs delayed one-shot jobs and periodic loops on the event loop.

    Shutdown contract:
    - periodic loops are signalled and finish their current iteration
    - delayed jobs still waiting out their delay are abandoned (cancelled)
    - delayed jobs already executing get ``drain_timeout_seconds`` to finish,
      then are cancelled

    Nothing is persisted; jobs scheduled before a process exit are lost.
    """

    def __init__(
        self,
        drain_timeout_seconds: float = 10.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.drain_timeout_seconds = drain_timeout_seconds
        self._sleep = sleep
        self._waiting: set[asyncio.Task] = set()
        self._running: set[asyncio.Task] = set()
        self._periodic: set[asyncio.Task] = set()
        self._shutdown_event = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        """Delayed jobs not yet finished (waiting or running)."""
        return len(self._waiting) + len(self._running)

    def schedule_after(self, delay_seconds: float, job: Job, name: str = "delayed-job") -> asyncio.Task:
        """Run `job` once after `delay_seconds`; returns without waiting."""
        if self._closed:
            raise SchedulerClosed(f"Cannot schedule {name}: scheduler is shut down")

        task = asyncio.create_task(self._run_delayed(delay_seconds, job, name), name=name)
        self._waiting.add(task)
        task.add_done_callback(self._forget)
        return task

    def run_periodic(self, interval_seconds: float, job: Job, name: str = "periodic-job") -> asyncio.Task:
        """Run `job` now and then every `interval_seconds` until shutdown."""
        if self._closed:
            raise SchedulerClosed(f"Cannot start {name}: scheduler is shut down")

        task = asyncio.create_task(self._run_periodic(interval_seconds, job, name), name=name)
        self._periodic.add(task)
        task.add_done_callback(self._forget)
        return task

    async def wait_idle(self, timeout: Optional[float] = None) -> None:
        """Wait until every delayed job scheduled so far has finished."""
        tasks = self._waiting | self._running
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)

    async def shutdown(self) -> None:
        """Stop periodic loops, abandon waiting jobs, drain running ones."""
        if self._closed:
            return
        self._closed = True
        self._shutdown_event.set()

        abandoned = list(self._waiting)
        for task in abandoned:
            task.cancel()
        if abandoned:
            logger.info(f"Abandoned {len(abandoned)} delayed jobs on shutdown")

        draining = self._running | self._periodic
        if draining:
            _, stragglers = await asyncio.wait(draining, timeout=self.drain_timeout_seconds)
            for task in stragglers:
                logger.warning(f"Background job {task.get_name()} did not stop gracefully, cancelling")
                task.cancel()

        await asyncio.gather(*abandoned, *draining, return_exceptions=True)
        logger.info("Scheduler stopped")

    async def _run_delayed(self, delay_seconds: float, job: Job, name: str) -> None:
        await self._sleep(delay_seconds)

        task = asyncio.current_task()
        self._waiting.discard(task)
        self._running.add(task)
        try:
            await job()
        except Exception as e:
            logger.error(f"Delayed job {name} failed: {e}", exc_info=True)

    async def _run_periodic(self, interval_seconds: float, job: Job, name: str) -> None:
        logger.info(f"{name} started (interval: {interval_seconds}s)")

        while not self._shutdown_event.is_set():
            try:
                await job()
            except Exception as e:
                logger.error(f"{name} error: {e}", exc_info=True)

            # Wait for next interval or shutdown
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=interval_seconds,
                )
            except asyncio.TimeoutError:
                pass

        logger.info(f"{name} stopped")

    def _forget(self, task: asyncio.Task) -> None:
        self._waiting.discard(task)
        self._running.discard(task)
        self._periodic.discard(task)
