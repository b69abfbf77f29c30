"""
Wizard state machine for reminders and work reports.

Inbound text is dispatched on ``(mode, step)`` of the owner's live session
through ``_text_handlers``; preset buttons go through `PRESET_FIELDS` and the
stamp-step table below. Every transition builds a fresh state and calls
``sessions.set``; finishing or abandoning a wizard calls ``sessions.clear``.

Scheduling side effects are limited to ``arm_reminder`` after a reminder time
is committed. Deleting a reminder (and cancelling its timer) lives in the
command surface.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Optional, Tuple

from app.services import messages
from app.services.reminder_scheduler import ReminderScheduler
from app.services.sessions import SessionManager
from app.services.time_resolver import (
    TimePassedToday,
    UnrecognizedTime,
    preset_datetime,
    resolve,
)
from app.types.flow_contract import (
    CONFIRM_CANCEL,
    CONFIRM_SAVE,
    PRESET_PREFIX,
    AwaitTimeState,
    ConfirmNextState,
    CreateReminderState,
    CreateReportState,
    EditNoteTextState,
    EditNoteTimeState,
    EditReportState,
    PresetSelection,
    ReminderStep,
    ReportDraft,
    ReportState,
    ReportStep,
    SingleStep,
    WizardState,
)
from app.utils import messaging
from config import settings
import db

_LOGGER = logging.getLogger(__name__)

_AFFIRMATIVE = re.compile(r"^y(?:es|a)?$", re.IGNORECASE)
_NATURAL_TRIGGER = re.compile(r"^(?:tolong ingatkan|ingatkan|ingat|remind)\b", re.IGNORECASE)
_NATURAL_PREFIX = re.compile(
    r"^(?:tolong ingatkan|ingatkan|ingat|remind)(?:\s+(?:saya|aku|me))?\b", re.IGNORECASE
)
_KEEP = "-"
_KEEP_STAMP = ("-", "skip")

# stamp step -> (draft attribute, step that follows it)
_STAMP_STEPS: Dict[ReportStep, Tuple[str, ReportStep]] = {
    ReportStep.REPORT_TIME: ("report_time", ReportStep.RECEIVE_TIME),
    ReportStep.RECEIVE_TIME: ("receive_time", ReportStep.DONE_TIME),
    ReportStep.DONE_TIME: ("done_time", ReportStep.NOTES),
}
_FIELD_STEPS = {attr: step for step, (attr, _) in _STAMP_STEPS.items()}

TextHandler = Callable[[str, WizardState, str], Awaitable[None]]


def _field_tag(attribute: str, edit: bool) -> str:
    return f"edit_{attribute}" if edit else attribute


class FlowOrchestrator:
    def __init__(
        self,
        sessions: SessionManager,
        reminders: ReminderScheduler,
        gateway=messaging,
        clock: Optional[Callable[[], datetime]] = None,
        tz=None,
    ):
        self.sessions = sessions
        self.reminders = reminders
        self.gateway = gateway
        self.tz = tz or settings.tz
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        sessions.set_expiry_handler(self.on_session_expired)

        self._text_handlers: Dict[Tuple[str, int], TextHandler] = {
            ("create_reminder", ReminderStep.TEXT): self._reminder_text,
            ("create_reminder", ReminderStep.TIME): self._reminder_time,
            ("confirm_next_for_reminder", SingleStep.REPLY): self._confirm_next,
            ("await_time_for_note", SingleStep.REPLY): self._stored_reminder_time,
            ("edit_note_time", SingleStep.REPLY): self._stored_reminder_time,
            ("edit_note_text", SingleStep.REPLY): self._edit_note_text,
            ("create_report", ReportStep.TITLE): self._report_title,
            ("create_report", ReportStep.COMPLETION): self._report_completion,
            ("create_report", ReportStep.REPORT_TIME): self._report_stamp,
            ("create_report", ReportStep.RECEIVE_TIME): self._report_stamp,
            ("create_report", ReportStep.DONE_TIME): self._report_stamp,
            ("create_report", ReportStep.NOTES): self._report_notes,
            ("create_report", ReportStep.PREVIEW): self._report_preview_text,
            ("edit_report", ReportStep.TITLE): self._report_title,
            ("edit_report", ReportStep.COMPLETION): self._report_completion,
            ("edit_report", ReportStep.REPORT_TIME): self._report_stamp,
            ("edit_report", ReportStep.RECEIVE_TIME): self._report_stamp,
            ("edit_report", ReportStep.DONE_TIME): self._report_stamp,
            ("edit_report", ReportStep.NOTES): self._edit_report_notes,
        }

    def now(self) -> datetime:
        return self._clock()

    async def _send(self, owner: str, text: str, **kwargs) -> None:
        await self.gateway.send_message(owner, text, **kwargs)

    # ------------------------------------------------------------------
    # Menu & lifecycle
    # ------------------------------------------------------------------

    async def show_main_menu(self, owner: str) -> None:
        await self._send(owner, messages.MAIN_MENU_PROMPT, keyboard=messages.MAIN_MENU)

    async def return_to_menu(self, owner: str) -> None:
        self.sessions.clear(owner)
        await self._send(owner, messages.FORMS_CANCELLED)
        await self.show_main_menu(owner)

    async def on_session_expired(self, owner: str) -> None:
        await self._send(owner, messages.SESSION_EXPIRED)
        await self.show_main_menu(owner)

    # ------------------------------------------------------------------
    # Wizard entry points
    # ------------------------------------------------------------------

    async def start_create_reminder(self, owner: str) -> None:
        self.sessions.set(owner, CreateReminderState())
        await self._send(owner, messages.ASK_REMINDER_TEXT)

    async def start_create_report(self, owner: str) -> None:
        self.sessions.set(owner, CreateReportState())
        await self._send(owner, messages.ASK_REPORT_TITLE, markdown=True)

    async def start_edit_note_text(self, owner: str, reminder_id: int) -> None:
        reminder = await db.get_reminder(reminder_id, owner)
        if reminder is None:
            await self._send(owner, messages.reminder_not_found(reminder_id))
            return
        self.sessions.set(owner, EditNoteTextState(reminder_id=reminder_id))
        await self._send(
            owner, f'Kirim teks baru untuk pengingat #{reminder_id} (sebelumnya: "{reminder.text}")'
        )

    async def start_edit_note_time(self, owner: str, reminder_id: int) -> None:
        reminder = await db.get_reminder(reminder_id, owner)
        if reminder is None:
            await self._send(owner, messages.reminder_not_found(reminder_id))
            return
        self.sessions.set(owner, EditNoteTimeState(reminder_id=reminder_id))
        await self._send(
            owner,
            f"Kirim waktu baru untuk pengingat #{reminder_id} (contoh: 'besok jam 9 pagi')",
        )

    async def start_edit_report(self, owner: str, report_id: int) -> None:
        report = await db.get_report(report_id, owner)
        if report is None:
            await self._send(owner, messages.report_not_found(report_id))
            return
        draft = ReportDraft(**{f: getattr(report, f) for f in db.REPORT_FIELDS})
        self.sessions.set(owner, EditReportState(report_id=report_id, data=draft))
        await self._send(
            owner, f"Mengedit Laporan #{report_id}. Kirim judul baru (atau ketik - untuk tetap):"
        )

    # ------------------------------------------------------------------
    # Inbound text
    # ------------------------------------------------------------------

    async def handle_text(self, owner: str, text: str) -> None:
        text = text.strip()
        state = self.sessions.get(owner)
        if state is None:
            await self._natural_reminder(owner, text)
            return
        handler = self._text_handlers.get((state.mode, state.step))
        if handler is None:
            _LOGGER.warning("No handler for %s step %s; dropping session", state.mode, state.step)
            await self.return_to_menu(owner)
            return
        await handler(owner, state, text)

    # -- reminders ------------------------------------------------------

    async def _reminder_text(self, owner: str, state: CreateReminderState, text: str) -> None:
        self.sessions.set(owner, state.model_copy(update={"text": text, "step": ReminderStep.TIME}))
        await self._send(owner, messages.ASK_REMINDER_TIME)

    async def _reminder_time(self, owner: str, state: CreateReminderState, text: str) -> None:
        await self._capture_reminder_time(owner, text, state.text or "", state.reminder_id)

    async def _confirm_next(self, owner: str, state: ConfirmNextState, text: str) -> None:
        if _AFFIRMATIVE.match(text):
            when = state.candidate + timedelta(days=1)
            await self._commit_reminder(owner, state.text, when, state.reminder_id)
            return
        self.sessions.set(
            owner,
            CreateReminderState(step=ReminderStep.TIME, text=state.text, reminder_id=state.reminder_id),
        )
        await self._send(owner, messages.ASK_NEW_TIME)

    async def _stored_reminder_time(self, owner: str, state, text: str) -> None:
        reminder = await db.get_reminder(state.reminder_id, owner)
        if reminder is None:
            await self._reminder_gone(owner, state.reminder_id)
            return
        await self._capture_reminder_time(owner, text, reminder.text, reminder.id)

    async def _edit_note_text(self, owner: str, state: EditNoteTextState, text: str) -> None:
        updated = await db.update_reminder_text(state.reminder_id, owner, text)
        self.sessions.clear(owner)
        if updated:
            await self._send(owner, f"✅ Teks pengingat #{state.reminder_id} diperbarui.")
        else:
            await self._send(owner, messages.reminder_not_found(state.reminder_id))
        await self.show_main_menu(owner)

    async def _capture_reminder_time(
        self, owner: str, phrase: str, note_text: str, reminder_id: Optional[int]
    ) -> None:
        try:
            result = resolve(phrase, self.now(), self.tz)
        except UnrecognizedTime:
            await self._send(owner, messages.TIME_UNRECOGNIZED)
            return
        if isinstance(result, TimePassedToday):
            await self._ask_next_day(owner, note_text, result, reminder_id)
            return
        await self._commit_reminder(owner, note_text, result, reminder_id)

    async def _ask_next_day(
        self, owner: str, note_text: str, result: TimePassedToday, reminder_id: Optional[int]
    ) -> None:
        state = ConfirmNextState(text=note_text, candidate=result.candidate, reminder_id=reminder_id)
        self.sessions.set(owner, state)
        await self._send(owner, messages.time_passed(state.hhmm))

    async def _commit_reminder(
        self, owner: str, note_text: str, when: datetime, reminder_id: Optional[int]
    ) -> None:
        if reminder_id is None:
            reminder = await db.insert_reminder(owner, note_text, when)
            confirmation = messages.reminder_saved(reminder.id, when, self.tz)
        else:
            reminder = None
            if await db.update_reminder_time(reminder_id, owner, when):
                reminder = await db.get_reminder(reminder_id, owner)
            if reminder is None:
                await self._reminder_gone(owner, reminder_id)
                return
            confirmation = messages.reminder_time_updated(reminder_id, when, self.tz)
        self.reminders.arm_reminder(reminder)
        self.sessions.clear(owner)
        await self._send(owner, confirmation)
        await self.show_main_menu(owner)

    async def _reminder_gone(self, owner: str, reminder_id: int) -> None:
        self.sessions.clear(owner)
        await self._send(owner, messages.reminder_not_found(reminder_id))
        await self.show_main_menu(owner)

    async def _natural_reminder(self, owner: str, text: str) -> None:
        """``ingatkan saya ... jam 9`` typed straight into the chat."""
        if not _NATURAL_TRIGGER.match(text):
            await self._send(owner, messages.NOT_UNDERSTOOD)
            return
        note_text = _NATURAL_PREFIX.sub("", text, count=1).strip()
        if not note_text:
            await self._send(owner, messages.ASK_WHAT_ABOUT)
            return

        try:
            result = resolve(text, self.now(), self.tz)
        except UnrecognizedTime:
            reminder = await db.insert_reminder(owner, note_text, None)
            self.sessions.set(owner, AwaitTimeState(reminder_id=reminder.id))
            await self._send(owner, messages.reminder_pending_time(reminder.id))
            return

        if isinstance(result, TimePassedToday):
            reminder = await db.insert_reminder(owner, note_text, None)
            await self._ask_next_day(owner, note_text, result, reminder.id)
            return
        await self._commit_reminder(owner, note_text, result, None)

    # -- reports --------------------------------------------------------

    async def _report_title(self, owner: str, state: ReportState, text: str) -> None:
        edit = isinstance(state, EditReportState)
        data = state.data
        if not (edit and text == _KEEP):
            data = data.model_copy(update={"title": text})
        self.sessions.set(owner, state.model_copy(update={"data": data, "step": ReportStep.COMPLETION}))
        await self._send(owner, messages.ASK_EDIT_COMPLETION if edit else messages.ASK_REPORT_COMPLETION)

    async def _report_completion(self, owner: str, state: ReportState, text: str) -> None:
        edit = isinstance(state, EditReportState)
        data = state.data
        if not (edit and text == _KEEP):
            data = data.model_copy(update={"completion_summary": text})
        self.sessions.set(owner, state.model_copy(update={"data": data, "step": ReportStep.REPORT_TIME}))
        await self._send(
            owner,
            messages.ask_stamp("report_time", edit),
            inline=messages.preset_keyboard(_field_tag("report_time", edit)),
        )

    async def _report_stamp(self, owner: str, state: ReportState, text: str) -> None:
        attribute = _STAMP_STEPS[state.step][0]
        if isinstance(state, EditReportState) and text.lower() in _KEEP_STAMP:
            await self._advance_after_stamp(owner, state, attribute, getattr(state.data, attribute))
            return
        try:
            value = resolve(text, self.now(), self.tz, mode="custom")
        except UnrecognizedTime:
            await self._send(owner, messages.STAMP_UNRECOGNIZED)
            return
        await self._advance_after_stamp(owner, state, attribute, value)

    async def _advance_after_stamp(
        self,
        owner: str,
        state: ReportState,
        attribute: str,
        value: Optional[datetime],
        announce: bool = False,
    ) -> None:
        edit = isinstance(state, EditReportState)
        next_step = _STAMP_STEPS[_FIELD_STEPS[attribute]][1]
        data = state.data.model_copy(update={attribute: value})
        self.sessions.set(
            owner,
            state.model_copy(update={"step": next_step, "data": data, "awaiting_custom": None}),
        )

        lines = [messages.stamp_set(attribute, value, self.tz)] if announce and value else []
        if next_step in _STAMP_STEPS:
            next_attribute = _STAMP_STEPS[next_step][0]
            lines.append(messages.ask_stamp(next_attribute, edit))
            await self._send(
                owner,
                "\n".join(lines),
                inline=messages.preset_keyboard(_field_tag(next_attribute, edit)),
            )
        else:
            lines.append(messages.ASK_EDIT_NOTES if edit else messages.ASK_REPORT_NOTES)
            await self._send(owner, "\n".join(lines))

    async def _report_notes(self, owner: str, state: CreateReportState, text: str) -> None:
        data = state.data.model_copy(update={"notes": text or "-"})
        self.sessions.set(owner, state.model_copy(update={"data": data, "step": ReportStep.PREVIEW}))
        await self._send(
            owner,
            messages.report_preview(data, self.tz),
            markdown=True,
            inline=messages.CONFIRM_KEYBOARD,
        )

    async def _report_preview_text(self, owner: str, state: CreateReportState, text: str) -> None:
        await self._send(owner, messages.USE_PREVIEW_BUTTONS)

    async def _edit_report_notes(self, owner: str, state: EditReportState, text: str) -> None:
        data = state.data
        if text != _KEEP:
            data = data.model_copy(update={"notes": text})
        updated = await db.update_report(state.report_id, owner, **data.model_dump())
        self.sessions.clear(owner)
        if updated:
            await self._send(owner, f"✅ Laporan #{state.report_id} diperbarui.")
        else:
            await self._send(owner, messages.report_not_found(state.report_id))
        await self.show_main_menu(owner)

    # ------------------------------------------------------------------
    # Inbound buttons
    # ------------------------------------------------------------------

    async def handle_button(self, owner: str, callback_id: str, data: str) -> None:
        """Handle an inline button press; always answers the callback once."""
        ack: Optional[str] = None
        try:
            if data.startswith(PRESET_PREFIX + "|"):
                ack = await self._on_preset(owner, data)
            elif data == CONFIRM_SAVE:
                ack = await self._on_confirm_save(owner)
            elif data == CONFIRM_CANCEL:
                ack = await self._on_confirm_cancel(owner)
        finally:
            await self.gateway.answer_callback(callback_id, ack)

    async def _on_preset(self, owner: str, data: str) -> Optional[str]:
        state = self.sessions.get(owner)
        if state is None:
            return messages.ACK_NO_SESSION
        try:
            selection = PresetSelection.from_callback(data)
        except ValueError:
            return messages.ACK_BAD_PRESET
        if state.mode != selection.mode:
            return messages.ACK_PRESET_IGNORED

        if selection.preset_tag == "custom":
            self.sessions.set(
                owner,
                state.model_copy(
                    update={
                        "step": _FIELD_STEPS[selection.attribute],
                        "awaiting_custom": selection.field_tag,
                    }
                ),
            )
            await self._send(owner, messages.ask_custom_stamp(selection.attribute), markdown=True)
            return None

        when = preset_datetime(selection.preset_tag, self.now(), self.tz)
        await self._advance_after_stamp(owner, state, selection.attribute, when, announce=True)
        return None

    async def _on_confirm_save(self, owner: str) -> str:
        state = self.sessions.get(owner)
        if not isinstance(state, CreateReportState) or state.step != ReportStep.PREVIEW:
            return messages.ACK_NOTHING_TO_SAVE
        report = await db.insert_report(owner, **state.data.model_dump())
        self.sessions.clear(owner)
        await self._send(owner, f"✅ Laporan tersimpan (ID: {report.id}).")
        await self.show_main_menu(owner)
        return messages.ACK_SAVED

    async def _on_confirm_cancel(self, owner: str) -> str:
        if not isinstance(self.sessions.get(owner), CreateReportState):
            return messages.ACK_NOTHING_TO_CANCEL
        self.sessions.clear(owner)
        await self._send(owner, messages.REPORT_CANCELLED)
        await self.show_main_menu(owner)
        return messages.ACK_CANCELLED
