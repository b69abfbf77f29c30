"""Per-reminder one-shot timers: arm, re-arm, cancel and startup recovery.

The registry maps a reminder id to the APScheduler job that will deliver it.
There is never more than one entry per id: arming again cancels the previous
job first. Jobs carry their own id so a fire that was already in flight when
the reminder got cancelled or re-armed can tell it has been superseded.
"""

from __future__ import annotations

import functools
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional
from uuid import uuid4

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger
from sqlalchemy.exc import SQLAlchemyError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_random_exponential

from app.workers import reminder as reminder_worker
import db

_LOGGER = logging.getLogger(__name__)

FireCallback = Callable[[], Awaitable[None]]


class ReminderScheduler:
    def __init__(
        self,
        scheduler: BaseScheduler,
        deliver: Optional[Callable[[int], Awaitable[None]]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._scheduler = scheduler
        self._deliver = deliver or reminder_worker.deliver
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._jobs: Dict[int, Job] = {}

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def arm(self, reminder_id: int, at: Optional[datetime], callback: FireCallback) -> bool:
        """Schedule *callback* at *at*, replacing any timer for *reminder_id*.

        Past or missing times are skipped silently; returns whether a timer
        was armed.
        """
        if at is None or at <= self._clock():
            _LOGGER.debug("Not arming reminder %s: %s is not in the future", reminder_id, at)
            return False

        self.cancel(reminder_id)
        job_id = f"reminder-{reminder_id}-{uuid4().hex[:8]}"
        job = self._scheduler.add_job(
            self._fire,
            DateTrigger(run_date=at),
            id=job_id,
            name=f"reminder {reminder_id}",
            args=[reminder_id, job_id, callback],
        )
        self._jobs[reminder_id] = job
        _LOGGER.info("Armed reminder %s for %s", reminder_id, at.isoformat())
        return True

    def arm_reminder(self, reminder: db.Reminder) -> bool:
        return self.arm(
            reminder.id,
            reminder.scheduled_at,
            functools.partial(self._deliver, reminder.id),
        )

    def cancel(self, reminder_id: int) -> bool:
        job = self._jobs.pop(reminder_id, None)
        if job is None:
            return False
        try:
            job.remove()
        except JobLookupError:
            # already handed to the executor; _fire sees the missing entry
            pass
        _LOGGER.info("Cancelled timer for reminder %s", reminder_id)
        return True

    def is_armed(self, reminder_id: int) -> bool:
        return reminder_id in self._jobs

    def armed_ids(self) -> list[int]:
        return sorted(self._jobs)

    def shutdown(self) -> None:
        for reminder_id in list(self._jobs):
            self.cancel(reminder_id)

    # ------------------------------------------------------------------
    # Firing
    # ------------------------------------------------------------------

    async def _fire(self, reminder_id: int, job_id: str, callback: FireCallback) -> None:
        current = self._jobs.get(reminder_id)
        if current is None or current.id != job_id:
            _LOGGER.info("Timer %s for reminder %s was superseded", job_id, reminder_id)
            return
        try:
            await callback()
        except Exception:  # noqa: BLE001
            _LOGGER.exception("Delivering reminder %s failed", reminder_id)
        finally:
            current = self._jobs.get(reminder_id)
            if current is not None and current.id == job_id:
                del self._jobs[reminder_id]

    # ------------------------------------------------------------------
    # Startup recovery
    # ------------------------------------------------------------------

    @retry(
        wait=wait_random_exponential(multiplier=1, max=10),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(SQLAlchemyError),
        reraise=True,
    )
    async def _load_unfired(self) -> list[db.Reminder]:
        return await db.fetch_unfired_scheduled_reminders()

    async def recover(self) -> int:
        """Re-arm every stored reminder that is still due in the future.

        Reminders whose time passed while the process was down stay unfired.
        """
        try:
            rows = await self._load_unfired()
        except SQLAlchemyError:
            _LOGGER.exception("Could not load reminders for recovery")
            return 0
        armed = sum(1 for row in rows if self.arm_reminder(row))
        _LOGGER.info("Recovered %d of %d unfired reminders", armed, len(rows))
        return armed
