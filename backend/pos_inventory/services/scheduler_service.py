"""Background task scheduler for periodic jobs (usage outbox retries)."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class TaskScheduler:
    """Lightweight asyncio-based task scheduler.

    Runs registered tasks at fixed intervals. State is in memory only; work
    that must survive a restart lives in the database (the usage outbox).
    Synchronous jobs run in a worker thread so they never block the loop.
    """

    def __init__(self, tick_seconds: int = 5):
        self._tasks: Dict[str, Dict[str, Any]] = {}
        self._running = False
        self._task_handle: Optional[asyncio.Task] = None
        self.tick_seconds = tick_seconds

    async def run_due(self, now: Optional[datetime] = None) -> int:
        """Run every task whose next_run has passed; returns how many ran."""
        now = now or datetime.now(timezone.utc)
        ran = 0
        for name, task in list(self._tasks.items()):
            if now < task["next_run"]:
                continue
            try:
                if asyncio.iscoroutinefunction(task["func"]):
                    await task["func"]()
                else:
                    await asyncio.to_thread(task["func"])
                task["last_run"] = now
                task["run_count"] = task.get("run_count", 0) + 1
                task["last_error"] = None
                logger.debug(f"Scheduled task '{name}' completed")
            except Exception as e:
                task["last_error"] = str(e)
                logger.error(f"Scheduled task '{name}' failed: {e}")
            task["next_run"] = now + task["interval"]
            ran += 1
        return ran

    async def start(self):
        """Start the scheduler loop."""
        self._running = True
        logger.info("Task scheduler started")
        while self._running:
            await self.run_due()
            await asyncio.sleep(self.tick_seconds)

    def run_in_background(self) -> asyncio.Task:
        self._task_handle = asyncio.create_task(self.start())
        return self._task_handle

    def stop(self):
        self._running = False
        if self._task_handle:
            self._task_handle.cancel()
            self._task_handle = None
        logger.info("Task scheduler stopped")

    def add_task(self, name: str, func: Callable, interval_seconds: int, first_run_seconds: int = 10):
        self._tasks[name] = {
            "func": func,
            "interval": timedelta(seconds=interval_seconds),
            "next_run": datetime.now(timezone.utc) + timedelta(seconds=first_run_seconds),
            "last_run": None,
            "run_count": 0,
            "last_error": None,
        }
        logger.info(f"Scheduled task '{name}' every {interval_seconds}s")

    def remove_task(self, name: str):
        self._tasks.pop(name, None)

    def get_status(self) -> Dict[str, Any]:
        return {
            name: {
                "last_run": t["last_run"].isoformat() if t["last_run"] else None,
                "next_run": t["next_run"].isoformat(),
                "interval_seconds": int(t["interval"].total_seconds()),
                "run_count": t.get("run_count", 0),
                "last_error": t.get("last_error"),
            }
            for name, t in self._tasks.items()
        }


scheduler = TaskScheduler()
