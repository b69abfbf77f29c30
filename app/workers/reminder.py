"""Reminder delivery, run by the scheduler when a reminder's timer fires."""

from __future__ import annotations

import logging

from app.services.messages import md
from app.utils import messaging
import db

_LOGGER = logging.getLogger(__name__)


async def deliver(reminder_id: int) -> None:  # noqa: D401
    """Send a single reminder and mark it fired.

    The row is re-read so edits made after arming are honoured. Gateway
    errors propagate to the scheduler, which logs them; the row then stays
    unfired and is not retried.
    """
    reminder = await db.get_reminder_by_id(reminder_id)
    if reminder is None:
        _LOGGER.info("Reminder %s no longer exists – nothing to send", reminder_id)
        return

    await messaging.send_message(
        reminder.owner_id, f"🔔 *Pengingat:* {md(reminder.text)}", markdown=True
    )
    await db.mark_reminder_fired(reminder_id)
    _LOGGER.info("Reminder sent %s", reminder_id)
