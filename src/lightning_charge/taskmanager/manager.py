"""Periodic background jobs for the engine.

Each registered ``CronJob`` gets its own asyncio task that sleeps ``period``
seconds between runs. A run of a given job never overlaps another run of the
same job, whether it was scheduled or requested through ``run_now``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from lightning_charge.utils import clock

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from lightning_charge.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CronJob:
    """A recurring background job."""

    handler: Callable[[], Awaitable[None]]
    period: float  # seconds
    name: str = ""


@dataclass
class JobStats:
    """Run bookkeeping for one job."""

    runs: int = 0
    failures: int = 0
    last_run_at: int | None = None
    last_error: str | None = None


class TaskManager:
    """Schedules the engine's cron jobs.

    Usage::

        tm = TaskManager(metrics=engine_metrics)
        tm.register("delete_expired_invoices", CronJob(handler=..., period=3600))
        await tm.start()
        await tm.run_now("delete_expired_invoices")
        await tm.stop()
    """

    def __init__(self, *, metrics: EngineMetrics | None = None) -> None:
        self._metrics = metrics
        self._jobs: dict[str, CronJob] = {}
        self._stats: dict[str, JobStats] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._loops: dict[str, asyncio.Task[None]] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def jobs(self) -> dict[str, CronJob]:
        """Registered jobs by name."""
        return dict(self._jobs)

    def stats(self, name: str) -> JobStats:
        """Run bookkeeping for *name*.

        Raises:
            KeyError: If no job is registered under *name*.
        """
        return self._stats[name]

    def register(self, name: str, job: CronJob) -> None:
        """Add *job* under *name*; scheduled at once if the manager is running."""
        named = CronJob(handler=job.handler, period=job.period, name=name)
        self._jobs[name] = named
        self._stats.setdefault(name, JobStats())
        self._locks.setdefault(name, asyncio.Lock())
        if self._running:
            self._schedule(named)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for job in self._jobs.values():
            self._schedule(job)
        logger.info("TaskManager started: %s", ", ".join(self._jobs) or "no jobs")

    async def stop(self) -> None:
        """Cancel every job loop and wait for them to unwind."""
        if not self._running:
            return
        self._running = False
        loops = list(self._loops.values())
        self._loops.clear()
        for task in loops:
            task.cancel()
        for outcome in await asyncio.gather(*loops, return_exceptions=True):
            if isinstance(outcome, Exception):
                logger.error("Job loop ended with error during shutdown: %s", outcome)
        logger.info("TaskManager stopped")

    async def run_now(self, name: str) -> None:
        """Run *name* once, outside its schedule.

        Waits for a run already in progress. Handler errors propagate to the
        caller and are also counted in the job's stats.

        Raises:
            KeyError: If no job is registered under *name*.
        """
        await self._run(self._jobs[name])

    def _schedule(self, job: CronJob) -> None:
        self._loops[job.name] = asyncio.create_task(self._loop(job), name=f"cron:{job.name}")

    async def _loop(self, job: CronJob) -> None:
        while self._running:
            await asyncio.sleep(job.period)
            if not self._running:
                return
            try:
                await self._run(job)
            except Exception:
                logger.exception("Cron job %r failed", job.name)

    async def _run(self, job: CronJob) -> None:
        stats = self._stats[job.name]
        async with self._locks[job.name]:
            stats.last_run_at = clock.now()
            try:
                if self._metrics is not None:
                    with self._metrics.track_cron(job.name):
                        await job.handler()
                else:
                    await job.handler()
            except Exception as exc:
                stats.failures += 1
                stats.last_error = str(exc) or type(exc).__name__
                raise
            finally:
                stats.runs += 1
