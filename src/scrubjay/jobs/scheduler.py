"""Interval job scheduler.

Keeps per-job schedule state in memory and launches due jobs as asyncio
tasks. A job still running when it comes due again is not launched twice.

Example:
    >>> scheduler = JobScheduler()
    >>> scheduler.register("dispatch-ebird", timedelta(minutes=1), dispatch_job)
    >>> await scheduler.run_forever()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any

from scrubjay.core.exceptions import StorageUnavailableError
from scrubjay.models.base import utcnow

logger = logging.getLogger(__name__)

JobCallable = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class ScheduleInfo:
    """Schedule state of one job.

    Attributes:
        name: Unique job name.
        interval: Time between runs.
        last_run: When the job last finished (None if never).
        next_run: When the job should next start (None means now).
        enabled: Whether the schedule is active.
        run_count: Successful runs.
        consecutive_failures: Failures since the last success.
    """

    name: str
    interval: timedelta
    last_run: datetime | None = None
    next_run: datetime | None = None
    enabled: bool = True
    run_count: int = 0
    consecutive_failures: int = 0

    def is_due(self, now: datetime | None = None) -> bool:
        if not self.enabled:
            return False
        if self.next_run is None:
            return True
        return (now or utcnow()) >= self.next_run


class JobScheduler:
    """In-memory scheduler for the process's periodic jobs.

    Args:
        tick: Seconds between due-checks in :meth:`run_forever`.
    """

    def __init__(self, tick: float = 1.0) -> None:
        self._tick = tick
        self._schedules: dict[str, ScheduleInfo] = {}
        self._jobs: dict[str, JobCallable] = {}
        self._running: dict[str, asyncio.Task[Any]] = {}
        self._stopping = asyncio.Event()
        self._fatal: BaseException | None = None

    def register(
        self, name: str, interval: timedelta, job: JobCallable, *, enabled: bool = True
    ) -> ScheduleInfo:
        """Register a job.

        Raises:
            ValueError: If ``name`` is already registered.
        """
        if name in self._schedules:
            raise ValueError(f"Job '{name}' is already registered")
        info = ScheduleInfo(name=name, interval=interval, enabled=enabled)
        self._schedules[name] = info
        self._jobs[name] = job
        return info

    def get(self, name: str) -> ScheduleInfo | None:
        return self._schedules.get(name)

    def all(self) -> list[ScheduleInfo]:
        return list(self._schedules.values())

    def due(self, now: datetime | None = None) -> list[ScheduleInfo]:
        return [info for info in self._schedules.values() if info.is_due(now)]

    def enable(self, name: str) -> None:
        self._schedules[name] = replace(self._schedules[name], enabled=True)

    def disable(self, name: str) -> None:
        self._schedules[name] = replace(self._schedules[name], enabled=False)

    def mark_success(self, name: str) -> None:
        info = self._schedules[name]
        self._schedules[name] = replace(
            info,
            last_run=utcnow(),
            run_count=info.run_count + 1,
            consecutive_failures=0,
        )

    def mark_failure(self, name: str) -> None:
        info = self._schedules[name]
        self._schedules[name] = replace(
            info,
            last_run=utcnow(),
            consecutive_failures=info.consecutive_failures + 1,
        )

    async def _run_job(self, name: str) -> None:
        try:
            await self._jobs[name]()
        except StorageUnavailableError as e:
            logger.critical(f"Job {name} lost the database connection: {e}")
            self.mark_failure(name)
            self._fatal = e
            self._stopping.set()
        except Exception:
            logger.exception(f"Job {name} failed")
            self.mark_failure(name)
        else:
            self.mark_success(name)

    def run_pending(self, now: datetime | None = None) -> list[asyncio.Task[Any]]:
        """Launch every due job that is not already running."""
        now = now or utcnow()
        launched = []
        for info in self.due(now):
            task = self._running.get(info.name)
            if task is not None and not task.done():
                logger.debug(f"Job {info.name} still running; not launching again")
                continue
            self._schedules[info.name] = replace(info, next_run=now + info.interval)
            task = asyncio.create_task(self._run_job(info.name), name=info.name)
            self._running[info.name] = task
            launched.append(task)
        return launched

    async def run_forever(self) -> None:
        """Tick until :meth:`stop` is called.

        Re-raises :class:`StorageUnavailableError` from any job so the
        process exits instead of running degraded.
        """
        self._stopping.clear()
        while not self._stopping.is_set():
            self.run_pending()
            try:
                await asyncio.wait_for(self._stopping.wait(), self._tick)
            except TimeoutError:
                pass
        await self.shutdown()
        if self._fatal is not None:
            raise self._fatal

    def stop(self) -> None:
        self._stopping.set()

    async def shutdown(self) -> None:
        """Cancel running jobs and wait for them to finish."""
        tasks = [t for t in self._running.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._running.clear()
