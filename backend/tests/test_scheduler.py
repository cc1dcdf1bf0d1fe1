"""Tests for the periodic task scheduler."""

import pytest
from datetime import datetime, timedelta, timezone

from pos_inventory.services.scheduler_service import TaskScheduler


class TestTaskScheduler:

    @pytest.mark.asyncio
    async def test_runs_only_due_tasks(self):
        calls = []
        scheduler = TaskScheduler()
        scheduler.add_task("sync_job", lambda: calls.append("sync"), interval_seconds=60, first_run_seconds=0)
        scheduler.add_task("later", lambda: calls.append("later"), interval_seconds=60, first_run_seconds=600)

        ran = await scheduler.run_due(datetime.now(timezone.utc) + timedelta(seconds=1))

        assert ran == 1
        assert calls == ["sync"]
        status = scheduler.get_status()
        assert status["sync_job"]["run_count"] == 1
        assert status["later"]["run_count"] == 0

    @pytest.mark.asyncio
    async def test_failure_is_recorded_and_rescheduled(self):
        async def broken():
            raise RuntimeError("outbox unavailable")

        scheduler = TaskScheduler()
        scheduler.add_task("broken", broken, interval_seconds=30, first_run_seconds=0)
        now = datetime.now(timezone.utc) + timedelta(seconds=1)

        await scheduler.run_due(now)

        status = scheduler.get_status()["broken"]
        assert status["last_error"] == "outbox unavailable"
        assert status["next_run"] == (now + timedelta(seconds=30)).isoformat()
        assert await scheduler.run_due(now) == 0

    def test_remove_task(self):
        scheduler = TaskScheduler()
        scheduler.add_task("job", lambda: None, interval_seconds=5)
        scheduler.remove_task("job")
        assert scheduler.get_status() == {}
