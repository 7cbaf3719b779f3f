"""Rovel background tasks."""

from rovel.tasks.scheduler import SchedulerClosed, TaskScheduler
from rovel.tasks.sweep import LeaseSweeper

__all__ = ["LeaseSweeper", "SchedulerClosed", "TaskScheduler"]
