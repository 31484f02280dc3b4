from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any, Awaitable, Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from mongodrop.core.errors import InvalidScheduleError


logger = logging.getLogger(__name__)

# Cron fields per interval; every run fires at midnight in the configured timezone.
INTERVAL_TRIGGERS: dict[str, dict[str, Any]] = {
    "daily": {"hour": 0, "minute": 0},
    "weekly": {"day_of_week": "sun", "hour": 0, "minute": 0},
    "monthly": {"day": 1, "hour": 0, "minute": 0},
}
JOB_ID_PREFIX = "scheduled_backup_"

BackupCallable = Callable[[], Awaitable[str]]


@dataclass(frozen=True)
class ScheduleState:
    # Snapshot of the single active recurring backup job.
    interval: str
    job_id: str
    next_run_time: datetime | None = None


class ScheduleController:
    """Own the one recurring backup job and replace it atomically.

    ``set_schedule`` is serialized by a lock and bumps a generation counter
    before registering the new job, so a tick still in flight from a replaced
    job sees a stale generation and returns without dumping.
    """

    def __init__(
        self,
        backup: BackupCallable,
        *,
        timezone: str = "UTC",
        misfire_grace_s: int = 300,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._backup = backup
        self._timezone = timezone
        self._misfire_grace_s = misfire_grace_s
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone)
        self._lock = asyncio.Lock()
        self._generation = 0
        self._state: ScheduleState | None = None

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    @property
    def state(self) -> ScheduleState | None:
        if self._state is None:
            return None
        job = self._scheduler.get_job(self._state.job_id)
        # Pending jobs (scheduler not started yet) have no computed next run time.
        next_run_time = getattr(job, "next_run_time", None) if job is not None else None
        return ScheduleState(
            interval=self._state.interval,
            job_id=self._state.job_id,
            next_run_time=next_run_time,
        )

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("scheduler_started timezone=%s", self._timezone)

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("scheduler_stopped")

    async def set_schedule(self, interval: object) -> ScheduleState:
        if not isinstance(interval, str) or interval not in INTERVAL_TRIGGERS:
            raise InvalidScheduleError("Invalid interval. Use daily, weekly, or monthly.")
        async with self._lock:
            self._remove_active_job()
            self._generation += 1
            generation = self._generation
            trigger = CronTrigger(timezone=self._timezone, **INTERVAL_TRIGGERS[interval])
            job = self._scheduler.add_job(
                self._run_scheduled_backup,
                trigger,
                args=[generation],
                id=f"{JOB_ID_PREFIX}{generation}",
                name=f"Scheduled {interval} backup",
                max_instances=1,
                coalesce=True,
                misfire_grace_time=self._misfire_grace_s,
            )
            self._state = ScheduleState(interval=interval, job_id=job.id)
            state = self.state
        logger.info("backup_schedule_set interval=%s job_id=%s", interval, job.id)
        return state

    async def clear(self) -> None:
        async with self._lock:
            self._remove_active_job()
            self._generation += 1
            self._state = None
        logger.info("backup_schedule_cleared")

    def _remove_active_job(self) -> None:
        # Stopping an already-removed job is a no-op.
        if self._state is None:
            return
        try:
            self._scheduler.remove_job(self._state.job_id)
        except JobLookupError:
            pass

    async def _run_scheduled_backup(self, generation: int) -> None:
        if generation != self._generation:
            logger.info("scheduled_backup_skipped_stale generation=%s", generation)
            return
        try:
            name = await self._backup()
        except Exception:  # noqa: BLE001 - scheduled failures must not stop the schedule
            logger.exception("scheduled_backup_failed generation=%s", generation)
            return
        logger.info("scheduled_backup_succeeded name=%s", name)
