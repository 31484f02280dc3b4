from __future__ import annotations

import asyncio
import logging

import pytest

from mongodrop.core.errors import InvalidScheduleError
from mongodrop.services.scheduler import INTERVAL_TRIGGERS, ScheduleController


class _CountingBackup:
    def __init__(self, *, fail: bool = False) -> None:
        self.calls = 0
        self.fail = fail

    async def __call__(self) -> str:
        self.calls += 1
        if self.fail:
            raise RuntimeError("dump exploded")
        return "backup_2024-01-01_00-00-00.gz"


@pytest.mark.asyncio
@pytest.mark.parametrize("first", sorted(INTERVAL_TRIGGERS))
@pytest.mark.parametrize("second", sorted(INTERVAL_TRIGGERS))
async def test_replacing_schedule_leaves_one_job(first: str, second: str) -> None:
    controller = ScheduleController(_CountingBackup())
    await controller.set_schedule(first)
    await controller.set_schedule(second)

    jobs = controller.scheduler.get_jobs()
    assert len(jobs) == 1
    assert controller.state is not None
    assert controller.state.interval == second
    assert jobs[0].id == controller.state.job_id


@pytest.mark.asyncio
async def test_invalid_interval_keeps_previous_state() -> None:
    controller = ScheduleController(_CountingBackup())
    await controller.set_schedule("weekly")
    before = controller.state

    with pytest.raises(InvalidScheduleError):
        await controller.set_schedule("hourly")
    with pytest.raises(InvalidScheduleError):
        await controller.set_schedule(None)
    for interval in (5, ["daily"], {"interval": "daily"}):
        with pytest.raises(InvalidScheduleError):
            await controller.set_schedule(interval)

    assert controller.state == before
    assert len(controller.scheduler.get_jobs()) == 1


@pytest.mark.asyncio
async def test_invalid_interval_from_idle_stays_idle() -> None:
    controller = ScheduleController(_CountingBackup())
    with pytest.raises(InvalidScheduleError):
        await controller.set_schedule("invalid")
    assert controller.state is None
    assert controller.scheduler.get_jobs() == []


@pytest.mark.asyncio
async def test_stale_tick_does_not_run_after_replacement() -> None:
    backup = _CountingBackup()
    controller = ScheduleController(backup)
    await controller.set_schedule("daily")
    old_job = controller.scheduler.get_job(controller.state.job_id)
    old_generation = old_job.args[0]
    await controller.set_schedule("monthly")

    await controller._run_scheduled_backup(old_generation)
    assert backup.calls == 0

    new_job = controller.scheduler.get_job(controller.state.job_id)
    await controller._run_scheduled_backup(new_job.args[0])
    assert backup.calls == 1


@pytest.mark.asyncio
async def test_failed_scheduled_run_is_logged_and_schedule_survives(caplog) -> None:
    backup = _CountingBackup(fail=True)
    controller = ScheduleController(backup)
    state = await controller.set_schedule("daily")
    job = controller.scheduler.get_job(state.job_id)

    with caplog.at_level(logging.ERROR, logger="mongodrop.services.scheduler"):
        await controller._run_scheduled_backup(job.args[0])

    assert backup.calls == 1
    assert any("scheduled_backup_failed" in record.getMessage() for record in caplog.records)
    assert controller.state is not None
    assert controller.scheduler.get_job(state.job_id) is not None


@pytest.mark.asyncio
async def test_started_scheduler_reports_next_run_time() -> None:
    controller = ScheduleController(_CountingBackup(), timezone="UTC")
    controller.start()
    try:
        state = await controller.set_schedule("monthly")
        assert state.next_run_time is not None
        assert state.next_run_time.day == 1
        assert (state.next_run_time.hour, state.next_run_time.minute) == (0, 0)
        await controller.set_schedule("weekly")
        assert len(controller.scheduler.get_jobs()) == 1
        # APScheduler numbers weekdays from Monday, so Sunday is 6.
        assert controller.state.next_run_time.weekday() == 6
    finally:
        controller.shutdown()


@pytest.mark.asyncio
async def test_clear_returns_to_idle() -> None:
    controller = ScheduleController(_CountingBackup())
    await controller.set_schedule("daily")
    await controller.clear()
    assert controller.state is None
    assert controller.scheduler.get_jobs() == []
    # Clearing twice is harmless.
    await controller.clear()


@pytest.mark.asyncio
async def test_overlapping_schedule_requests_leave_one_job() -> None:
    controller = ScheduleController(_CountingBackup())
    await controller.set_schedule("daily")

    states = await asyncio.gather(
        controller.set_schedule("weekly"),
        controller.set_schedule("monthly"),
        controller.set_schedule("daily"),
    )

    jobs = controller.scheduler.get_jobs()
    assert len(jobs) == 1
    assert jobs[0].id == controller.state.job_id
    assert controller.state.interval == states[-1].interval
    assert len({state.job_id for state in states}) == 3
