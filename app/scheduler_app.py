"""APScheduler instance shared across the backend.

Reminder timers and session idle timers are one-shot ``DateTrigger`` jobs on
this scheduler. It runs on the web server's event loop, so it must be started
from inside that loop (FastAPI startup event).
"""

from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config import settings

_scheduler: AsyncIOScheduler | None = None


def get_scheduler() -> AsyncIOScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(
            timezone=settings.tz,
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": None},
        )
    return _scheduler


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
    _scheduler = None
