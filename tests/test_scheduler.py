"""
Task scheduler tests: delayed grants, periodic loops and shutdown draining.
"""

import asyncio
from datetime import timedelta

import pytest

from rovel.engine import LeaseManager
from rovel.errors import BadInput
from rovel.tasks import SchedulerClosed, TaskScheduler


class ManualTimer:
    """Replaces asyncio.sleep so delays elapse only when the clock moves."""

    def __init__(self, clock):
        self.clock = clock
        self._sleepers: list[tuple] = []

    async def sleep(self, seconds: float) -> None:
        deadline = self.clock() + timedelta(seconds=seconds)
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append((deadline, future))
        await future

    async def advance(self, **kwargs) -> None:
        self.clock.advance(**kwargs)
        for deadline, future in list(self._sleepers):
            if deadline <= self.clock() and not future.done():
                future.set_result(None)
                self._sleepers.remove((deadline, future))
        # Let woken jobs start running
        for _ in range(5):
            await asyncio.sleep(0)


@pytest.fixture
def timer(clock):
    return ManualTimer(clock)


@pytest.fixture
async def timed_scheduler(timer):
    scheduler = TaskScheduler(drain_timeout_seconds=1.0, sleep=timer.sleep)
    yield scheduler
    await scheduler.shutdown()


@pytest.fixture
def leases(database, timed_scheduler, clock):
    return LeaseManager(
        database,
        scheduler=timed_scheduler,
        lease_duration=timedelta(minutes=10),
        clock=clock,
    )


@pytest.mark.asyncio
async def test_delayed_grant_fires_after_delay(leases, timed_scheduler, timer, clock):
    """Timer unlock at t0 with a 40s countdown: locked at 39.999s, unlocked at 40.001s."""
    start = clock()
    leases.schedule_delayed_grant("u1", 7, "3", delay=timedelta(milliseconds=40_000))
    assert timed_scheduler.pending_count == 1

    await timer.advance(milliseconds=39_999)
    assert await leases.is_active("u1", 7, "3") is False

    await timer.advance(milliseconds=2)
    await timed_scheduler.wait_idle(timeout=5)
    assert await leases.is_active("u1", 7, "3") is True

    (lease,) = await leases.list_active_for_user("u1")
    assert lease.granted_at == start + timedelta(milliseconds=40_001)
    assert timed_scheduler.pending_count == 0


@pytest.mark.asyncio
async def test_delayed_grant_returns_immediately(leases, timed_scheduler):
    leases.schedule_delayed_grant("u1", 7, "3", delay=timedelta(seconds=40))

    assert await leases.is_active("u1", 7, "3") is False
    assert timed_scheduler.pending_count == 1


@pytest.mark.asyncio
async def test_delayed_grant_validates_before_scheduling(leases, timed_scheduler):
    with pytest.raises(BadInput):
        leases.schedule_delayed_grant("", 7, "3", delay=timedelta(seconds=40))

    assert timed_scheduler.pending_count == 0


@pytest.mark.asyncio
async def test_delayed_grant_requires_scheduler(database):
    leases = LeaseManager(database)

    with pytest.raises(RuntimeError):
        leases.schedule_delayed_grant("u1", 7, "3", delay=timedelta(seconds=1))


@pytest.mark.asyncio
async def test_shutdown_abandons_waiting_jobs(leases, timed_scheduler, timer):
    leases.schedule_delayed_grant("u1", 7, "3", delay=timedelta(seconds=40))

    await timed_scheduler.shutdown()
    await timer.advance(seconds=60)

    assert timed_scheduler.pending_count == 0
    assert await leases.is_active("u1", 7, "3") is False


@pytest.mark.asyncio
async def test_schedule_after_shutdown_raises(leases, timed_scheduler):
    await timed_scheduler.shutdown()

    with pytest.raises(SchedulerClosed):
        leases.schedule_delayed_grant("u1", 7, "3", delay=timedelta(seconds=40))
    with pytest.raises(SchedulerClosed):
        timed_scheduler.run_periodic(1.0, lambda: asyncio.sleep(0))


@pytest.mark.asyncio
async def test_shutdown_drains_running_jobs():
    scheduler = TaskScheduler(drain_timeout_seconds=5.0)
    started = asyncio.Event()
    finished = []

    async def job():
        started.set()
        await asyncio.sleep(0.05)
        finished.append("done")

    scheduler.schedule_after(0, job, name="slow-job")
    await started.wait()

    await scheduler.shutdown()

    assert finished == ["done"]
    assert scheduler.closed is True


@pytest.mark.asyncio
async def test_shutdown_cancels_jobs_past_drain_timeout():
    scheduler = TaskScheduler(drain_timeout_seconds=0.05)
    started = asyncio.Event()
    finished = []

    async def job():
        started.set()
        await asyncio.sleep(10)
        finished.append("done")

    task = scheduler.schedule_after(0, job, name="stuck-job")
    await started.wait()

    await scheduler.shutdown()

    assert finished == []
    assert task.cancelled()


@pytest.mark.asyncio
async def test_failing_job_does_not_break_scheduler():
    scheduler = TaskScheduler()
    ran = []

    async def broken():
        raise ValueError("boom")

    async def healthy():
        ran.append("ok")

    scheduler.schedule_after(0, broken, name="broken")
    scheduler.schedule_after(0, healthy, name="healthy")
    await scheduler.wait_idle(timeout=5)

    assert ran == ["ok"]
    assert scheduler.pending_count == 0
    await scheduler.shutdown()


@pytest.mark.asyncio
async def test_periodic_job_repeats_until_shutdown():
    scheduler = TaskScheduler()
    calls = []

    async def tick():
        calls.append(len(calls))
        if len(calls) == 2:
            raise RuntimeError("transient")

    task = scheduler.run_periodic(0.01, tick, name="ticker")
    await asyncio.sleep(0.1)
    await scheduler.shutdown()

    assert len(calls) >= 3
    assert task.done()

    count = len(calls)
    await asyncio.sleep(0.05)
    assert len(calls) == count


@pytest.mark.asyncio
async def test_shutdown_is_idempotent():
    scheduler = TaskScheduler()

    await scheduler.shutdown()
    await scheduler.shutdown()

    assert scheduler.closed is True
