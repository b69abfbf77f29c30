"""Per-conversation wizard sessions with an idle timeout.

Each owner has at most one session and one expiry job. ``set`` replaces both;
the deadline always counts from the latest ``set``. Nothing here locks across
awaits: two handlers racing for the same owner end with whichever wrote last.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Optional
from uuid import uuid4

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger

from app.types.flow_contract import WizardState
from config import settings

_LOGGER = logging.getLogger(__name__)

ExpiryHandler = Callable[[str], Awaitable[None]]


class SessionManager:
    def __init__(
        self,
        scheduler: BaseScheduler,
        on_expire: Optional[ExpiryHandler] = None,
        timeout: timedelta = timedelta(seconds=settings.SESSION_TIMEOUT_SECONDS),
    ):
        self._scheduler = scheduler
        self._on_expire = on_expire
        self._timeout = timeout
        self._sessions: Dict[str, WizardState] = {}
        self._timers: Dict[str, Job] = {}

    def set_expiry_handler(self, handler: ExpiryHandler) -> None:
        self._on_expire = handler

    def get(self, owner: str) -> Optional[WizardState]:
        return self._sessions.get(owner)

    def deadline(self, owner: str) -> Optional[datetime]:
        job = self._timers.get(owner)
        return job.trigger.run_date if job is not None else None

    def __len__(self) -> int:
        return len(self._sessions)

    def set(self, owner: str, state: WizardState) -> None:
        self._sessions[owner] = state
        self._cancel_timer(owner)
        job_id = f"session-{owner}-{uuid4().hex[:8]}"
        self._timers[owner] = self._scheduler.add_job(
            self._expire,
            DateTrigger(run_date=datetime.now(timezone.utc) + self._timeout),
            id=job_id,
            name=f"session {owner}",
            args=[owner, job_id],
        )
        _LOGGER.debug("Session %s -> %s step %s", owner, state.mode, int(state.step))

    def clear(self, owner: str) -> None:
        self._cancel_timer(owner)
        if self._sessions.pop(owner, None) is not None:
            _LOGGER.debug("Session %s cleared", owner)

    def shutdown(self) -> None:
        for owner in list(self._sessions):
            self.clear(owner)

    def _cancel_timer(self, owner: str) -> None:
        job = self._timers.pop(owner, None)
        if job is None:
            return
        try:
            job.remove()
        except JobLookupError:
            pass

    async def _expire(self, owner: str, job_id: str) -> None:
        current = self._timers.get(owner)
        if current is None or current.id != job_id:
            return
        del self._timers[owner]
        self._sessions.pop(owner, None)
        _LOGGER.info("Session %s expired after %s of inactivity", owner, self._timeout)
        if self._on_expire is None:
            return
        try:
            await self._on_expire(owner)
        except Exception:  # noqa: BLE001
            _LOGGER.exception("Expiry notification for %s failed", owner)
