"""Inbound Telegram update routing.

`build_runtime` wires the session manager, reminder timers, flow and command
router onto one scheduler; `Runtime.handle_update` is what the webhook hands
each decoded update to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from apscheduler.schedulers.base import BaseScheduler
from telegram import Update

from app.services.commands import CommandRouter
from app.services.flow import FlowOrchestrator
from app.services.reminder_scheduler import ReminderScheduler
from app.services.sessions import SessionManager
from app.utils import messaging

_LOGGER = logging.getLogger(__name__)


@dataclass
class Runtime:
    sessions: SessionManager
    reminders: ReminderScheduler
    flow: FlowOrchestrator
    commands: CommandRouter

    async def handle_update(self, update: Update) -> None:
        query = update.callback_query
        if query is not None:
            owner = _owner_of_callback(update)
            await self.flow.handle_button(owner, query.id, query.data or "")
            return

        message = update.message
        if message is None or message.text is None:
            _LOGGER.debug("Ignoring update %s without text", update.update_id)
            return
        owner = str(message.chat.id)
        if await self.commands.dispatch(owner, message.text):
            return
        await self.flow.handle_text(owner, message.text)

    def shutdown(self) -> None:
        self.sessions.shutdown()
        self.reminders.shutdown()


def _owner_of_callback(update: Update) -> str:
    query = update.callback_query
    if query.message is not None:
        return str(query.message.chat.id)
    # inline-mode buttons carry no message; fall back to the presser
    return str(query.from_user.id)


def build_runtime(scheduler: BaseScheduler, gateway=messaging, clock=None, tz=None) -> Runtime:
    sessions = SessionManager(scheduler)
    reminders = ReminderScheduler(scheduler)
    flow = FlowOrchestrator(sessions, reminders, gateway=gateway, clock=clock, tz=tz)
    return Runtime(sessions, reminders, flow, CommandRouter(flow))


_runtime: Optional[Runtime] = None


def get_runtime() -> Runtime:
    if _runtime is None:
        raise RuntimeError("runtime not started")
    return _runtime


def set_runtime(runtime: Optional[Runtime]) -> Optional[Runtime]:
    """Install *runtime* and return the one it replaced."""
    global _runtime
    previous, _runtime = _runtime, runtime
    return previous
