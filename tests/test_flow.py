from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio

from app.services import messages
from app.services.flow import FlowOrchestrator
from app.services.sessions import SessionManager
from app.types.flow_contract import (
    CONFIRM_CANCEL,
    CONFIRM_SAVE,
    AwaitTimeState,
    ConfirmNextState,
    CreateReminderState,
    CreateReportState,
    EditNoteTextState,
    ReminderStep,
    ReportDraft,
    ReportStep,
)
import db
from tests.conftest import TZ, local

OWNER = "42"


@pytest_asyncio.fixture
async def flow(database, scheduler, gateway, reminders, clock):
    return FlowOrchestrator(SessionManager(scheduler), reminders, gateway=gateway, clock=clock, tz=TZ)


# ──────────────────────────────
# Reminder wizard
# ──────────────────────────────


@pytest.mark.asyncio
async def test_reminder_wizard_saves_and_arms(flow, gateway, reminders):
    await flow.start_create_reminder(OWNER)
    await flow.handle_text(OWNER, "Beli tinta printer")
    state = flow.sessions.get(OWNER)
    assert state.step == ReminderStep.TIME and state.text == "Beli tinta printer"

    await flow.handle_text(OWNER, "jam 9 pagi")

    rows = await db.list_reminders(OWNER)
    assert len(rows) == 1
    assert rows[0].text == "Beli tinta printer"
    assert rows[0].scheduled_at == local(2025, 10, 20, 9, 0)
    assert reminders.armed == {rows[0].id: local(2025, 10, 20, 9, 0)}
    assert flow.sessions.get(OWNER) is None
    assert gateway.sent[-1][1] == messages.MAIN_MENU_PROMPT


@pytest.mark.asyncio
async def test_unrecognized_time_reprompts_without_transition(flow, gateway, reminders):
    await flow.start_create_reminder(OWNER)
    await flow.handle_text(OWNER, "Beli tinta")
    before = flow.sessions.get(OWNER)

    await flow.handle_text(OWNER, "jam 25")

    assert gateway.last == messages.TIME_UNRECOGNIZED
    assert flow.sessions.get(OWNER) is before
    assert reminders.armed == {}


@pytest.mark.asyncio
async def test_passed_time_today_confirmed_moves_to_tomorrow(flow, clock, reminders):
    clock.now = local(2025, 10, 20, 10, 0)
    await flow.start_create_reminder(OWNER)
    await flow.handle_text(OWNER, "Rapat")
    await flow.handle_text(OWNER, "hari ini jam 9 pagi")

    state = flow.sessions.get(OWNER)
    assert isinstance(state, ConfirmNextState)
    assert state.candidate == local(2025, 10, 20, 9, 0)
    assert state.hhmm == "09:00"

    await flow.handle_text(OWNER, "Ya")

    rows = await db.list_reminders(OWNER)
    assert len(rows) == 1
    assert rows[0].scheduled_at == local(2025, 10, 21, 9, 0)
    assert list(reminders.armed.values()) == [local(2025, 10, 21, 9, 0)]
    assert flow.sessions.get(OWNER) is None


@pytest.mark.asyncio
async def test_passed_time_today_declined_asks_again(flow, clock, gateway, reminders):
    clock.now = local(2025, 10, 20, 10, 0)
    await flow.start_create_reminder(OWNER)
    await flow.handle_text(OWNER, "Rapat")
    await flow.handle_text(OWNER, "hari ini jam 9 pagi")
    await flow.handle_text(OWNER, "tidak")

    state = flow.sessions.get(OWNER)
    assert state == CreateReminderState(step=ReminderStep.TIME, text="Rapat")
    assert gateway.last == messages.ASK_NEW_TIME
    assert reminders.armed == {}
    assert await db.list_reminders(OWNER) == []


@pytest.mark.asyncio
async def test_natural_reminder_with_time(flow, reminders):
    await flow.handle_text(OWNER, "ingatkan saya beli tinta jam 9 pagi")

    rows = await db.list_reminders(OWNER)
    assert len(rows) == 1
    assert rows[0].text.startswith("beli tinta")
    assert reminders.armed == {rows[0].id: local(2025, 10, 20, 9, 0)}


@pytest.mark.asyncio
async def test_natural_reminder_passed_today_updates_stored_note(flow, clock, reminders):
    clock.now = local(2025, 10, 20, 10, 0)
    await flow.handle_text(OWNER, "ingatkan saya rapat hari ini jam 7 pagi")

    state = flow.sessions.get(OWNER)
    assert isinstance(state, ConfirmNextState)
    stored = await db.get_reminder(state.reminder_id, OWNER)
    assert stored.scheduled_at is None

    await flow.handle_text(OWNER, "y")

    rows = await db.list_reminders(OWNER)
    assert [r.id for r in rows] == [state.reminder_id]
    assert rows[0].scheduled_at == local(2025, 10, 21, 7, 0)
    assert reminders.armed == {state.reminder_id: local(2025, 10, 21, 7, 0)}


@pytest.mark.asyncio
async def test_natural_reminder_without_time_waits_for_one(flow, gateway, reminders):
    row = await db.insert_reminder(OWNER, "beli tinta", None)
    flow.sessions.set(OWNER, AwaitTimeState(reminder_id=row.id))

    await flow.handle_text(OWNER, "besok jam 8 pagi")

    assert (await db.get_reminder(row.id, OWNER)).scheduled_at == local(2025, 10, 21, 8, 0)
    assert reminders.armed == {row.id: local(2025, 10, 21, 8, 0)}
    assert messages.reminder_time_updated(row.id, local(2025, 10, 21, 8, 0), TZ) in gateway.texts()


@pytest.mark.asyncio
async def test_fallback_messages(flow, gateway):
    await flow.handle_text(OWNER, "ingatkan saya")
    assert gateway.last == messages.ASK_WHAT_ABOUT

    await flow.handle_text(OWNER, "halo bot")
    assert gateway.last == messages.NOT_UNDERSTOOD
    assert flow.sessions.get(OWNER) is None


@pytest.mark.asyncio
async def test_edit_note_text(flow):
    row = await db.insert_reminder(OWNER, "lama", None)
    await flow.start_edit_note_text(OWNER, row.id)
    assert isinstance(flow.sessions.get(OWNER), EditNoteTextState)

    await flow.handle_text(OWNER, "baru")

    assert (await db.get_reminder(row.id, OWNER)).text == "baru"
    assert flow.sessions.get(OWNER) is None


@pytest.mark.asyncio
async def test_edit_note_time_of_missing_reminder(flow, gateway):
    await flow.start_edit_note_time(OWNER, 999)

    assert gateway.last == messages.reminder_not_found(999)
    assert flow.sessions.get(OWNER) is None


@pytest.mark.asyncio
async def test_edit_note_time_passed_today_confirmed(flow, clock, gateway, reminders):
    clock.now = local(2025, 10, 20, 10, 0)
    row = await db.insert_reminder(OWNER, "Rapat", local(2025, 10, 20, 12, 0))
    await flow.start_edit_note_time(OWNER, row.id)

    await flow.handle_text(OWNER, "hari ini jam 9 pagi")

    state = flow.sessions.get(OWNER)
    assert isinstance(state, ConfirmNextState)
    assert state.reminder_id == row.id
    assert state.candidate == local(2025, 10, 20, 9, 0)
    assert gateway.last == messages.time_passed("09:00")

    await flow.handle_text(OWNER, "ya")

    rows = await db.list_reminders(OWNER)
    assert [r.id for r in rows] == [row.id]
    assert rows[0].scheduled_at == local(2025, 10, 21, 9, 0)
    assert reminders.armed == {row.id: local(2025, 10, 21, 9, 0)}
    assert messages.reminder_time_updated(row.id, local(2025, 10, 21, 9, 0), TZ) in gateway.texts()
    assert flow.sessions.get(OWNER) is None


@pytest.mark.asyncio
async def test_natural_reminder_with_bare_keyword_waits_for_time(flow, gateway, reminders):
    await flow.handle_text(OWNER, "ingatkan saya jam")

    rows = await db.list_reminders(OWNER)
    assert len(rows) == 1
    assert rows[0].scheduled_at is None
    assert isinstance(flow.sessions.get(OWNER), AwaitTimeState)
    assert gateway.last == messages.reminder_pending_time(rows[0].id)
    assert reminders.armed == {}


@pytest.mark.asyncio
async def test_confirmation_uses_the_bot_timezone(database, scheduler, gateway, reminders, clock):
    utc_flow = FlowOrchestrator(
        SessionManager(scheduler), reminders, gateway=gateway, clock=clock, tz=ZoneInfo("UTC")
    )
    await utc_flow.start_create_reminder(OWNER)
    await utc_flow.handle_text(OWNER, "Rapat")
    await utc_flow.handle_text(OWNER, "jam 9 pagi")

    row = (await db.list_reminders(OWNER))[0]
    assert row.scheduled_at == local(2025, 10, 20, 17, 0)
    saved = next(t for t in gateway.texts() if t.startswith("✅ Pengingat disimpan"))
    assert saved.endswith("20 Oct 2025 09:00")


@pytest.mark.asyncio
async def test_reminder_deleted_mid_wizard(flow, gateway, reminders):
    row = await db.insert_reminder(OWNER, "lama", None)
    await flow.start_edit_note_time(OWNER, row.id)
    await db.delete_reminder(row.id, OWNER)

    await flow.handle_text(OWNER, "jam 9 pagi")

    assert messages.reminder_not_found(row.id) in gateway.texts()
    assert reminders.armed == {}
    assert flow.sessions.get(OWNER) is None


# ──────────────────────────────
# Report wizard
# ──────────────────────────────


@pytest.mark.asyncio
async def test_report_wizard_saves_all_fields(flow, gateway, clock):
    await flow.start_create_report(OWNER)
    await flow.handle_text(OWNER, "Server down")
    await flow.handle_text(OWNER, "Restart service")
    await flow.handle_text(OWNER, "2025-10-20 07:00")
    assert flow.sessions.get(OWNER).step == ReportStep.RECEIVE_TIME

    await flow.handle_button(OWNER, "cb1", "preset|receive_time|today_08")
    await flow.handle_button(OWNER, "cb2", "preset|done_time|now")
    assert flow.sessions.get(OWNER).step == ReportStep.NOTES

    await flow.handle_text(OWNER, "")
    state = flow.sessions.get(OWNER)
    assert state.step == ReportStep.PREVIEW
    assert state.data.notes == "-"
    assert gateway.sent[-1][2]["inline"] == messages.CONFIRM_KEYBOARD

    await flow.handle_text(OWNER, "simpan dong")
    assert gateway.last == messages.USE_PREVIEW_BUTTONS

    await flow.handle_button(OWNER, "cb3", CONFIRM_SAVE)

    assert gateway.acks == [("cb1", None), ("cb2", None), ("cb3", messages.ACK_SAVED)]
    reports = await db.list_reports(OWNER)
    assert len(reports) == 1
    saved = reports[0]
    assert saved.title == "Server down"
    assert saved.completion_summary == "Restart service"
    assert saved.report_time == local(2025, 10, 20, 7, 0)
    assert saved.receive_time == local(2025, 10, 20, 8, 0)
    assert saved.done_time == clock.now
    assert saved.notes == "-"
    assert flow.sessions.get(OWNER) is None


@pytest.mark.asyncio
async def test_malformed_stamp_reprompts(flow, gateway):
    flow.sessions.set(OWNER, CreateReportState(step=ReportStep.REPORT_TIME))
    before = flow.sessions.get(OWNER)

    await flow.handle_text(OWNER, "qwertyuiop")

    assert gateway.last == messages.STAMP_UNRECOGNIZED
    assert flow.sessions.get(OWNER) is before


@pytest.mark.parametrize("stamp", ["2025-02-30 10:00", "2025-10-20 24:00"])
@pytest.mark.asyncio
async def test_impossible_stamp_reprompts(flow, gateway, stamp):
    flow.sessions.set(OWNER, CreateReportState(step=ReportStep.REPORT_TIME))
    before = flow.sessions.get(OWNER)

    await flow.handle_text(OWNER, stamp)

    assert gateway.last == messages.STAMP_UNRECOGNIZED
    assert flow.sessions.get(OWNER) is before


@pytest.mark.asyncio
async def test_cancel_at_preview_persists_nothing(flow, gateway):
    flow.sessions.set(OWNER, CreateReportState(step=ReportStep.PREVIEW, data=ReportDraft(title="x")))

    await flow.handle_button(OWNER, "cb", CONFIRM_CANCEL)

    assert gateway.acks == [("cb", messages.ACK_CANCELLED)]
    assert messages.REPORT_CANCELLED in gateway.texts()
    assert await db.list_reports(OWNER) == []
    assert flow.sessions.get(OWNER) is None


@pytest.mark.asyncio
async def test_save_before_preview_is_refused(flow, gateway):
    flow.sessions.set(OWNER, CreateReportState(step=ReportStep.NOTES))

    await flow.handle_button(OWNER, "cb", CONFIRM_SAVE)

    assert gateway.acks == [("cb", messages.ACK_NOTHING_TO_SAVE)]
    assert await db.list_reports(OWNER) == []
    assert flow.sessions.get(OWNER).step == ReportStep.NOTES


@pytest.mark.asyncio
async def test_button_without_session_is_acknowledged(flow, gateway):
    await flow.handle_button(OWNER, "a", "preset|report_time|now")
    await flow.handle_button(OWNER, "b", CONFIRM_CANCEL)
    await flow.handle_button(OWNER, "c", "something_else")

    assert gateway.acks == [
        ("a", messages.ACK_NO_SESSION),
        ("b", messages.ACK_NOTHING_TO_CANCEL),
        ("c", None),
    ]


@pytest.mark.asyncio
async def test_unknown_or_foreign_preset_leaves_state(flow, gateway):
    flow.sessions.set(OWNER, CreateReportState(step=ReportStep.REPORT_TIME))
    before = flow.sessions.get(OWNER)

    await flow.handle_button(OWNER, "a", "preset|report_time|noon")
    await flow.handle_button(OWNER, "b", "preset|edit_report_time|now")

    assert gateway.acks == [("a", messages.ACK_BAD_PRESET), ("b", messages.ACK_PRESET_IGNORED)]
    assert flow.sessions.get(OWNER) is before


@pytest.mark.asyncio
async def test_custom_preset_waits_for_typed_stamp(flow):
    flow.sessions.set(OWNER, CreateReportState(step=ReportStep.REPORT_TIME))

    await flow.handle_button(OWNER, "cb", "preset|done_time|custom")
    state = flow.sessions.get(OWNER)
    assert state.step == ReportStep.DONE_TIME
    assert state.awaiting_custom == "done_time"

    await flow.handle_text(OWNER, "2025-10-20 09:15")
    state = flow.sessions.get(OWNER)
    assert state.step == ReportStep.NOTES
    assert state.awaiting_custom is None
    assert state.data.done_time == local(2025, 10, 20, 9, 15)


@pytest.mark.asyncio
async def test_preset_uses_the_day_of_the_press(flow, clock):
    clock.now = local(2025, 10, 20, 23, 50)
    flow.sessions.set(OWNER, CreateReportState(step=ReportStep.REPORT_TIME))

    await flow.handle_button(OWNER, "cb", "preset|report_time|today_08")

    assert flow.sessions.get(OWNER).data.report_time == local(2025, 10, 20, 8, 0)


@pytest.mark.asyncio
async def test_edit_report_keeps_sentinel_fields(flow):
    report = await db.insert_report(
        OWNER,
        title="Judul",
        completion_summary="Lama",
        report_time=local(2025, 10, 20, 7, 0),
        receive_time=local(2025, 10, 20, 8, 0),
        done_time=local(2025, 10, 20, 9, 0),
        notes="catatan",
    )
    await flow.start_edit_report(OWNER, report.id)

    for reply in ("-", "Baru", "skip", "-", "2025-10-22 10:00", "-"):
        await flow.handle_text(OWNER, reply)

    saved = await db.get_report(report.id, OWNER)
    assert saved.title == "Judul"
    assert saved.completion_summary == "Baru"
    assert saved.report_time == local(2025, 10, 20, 7, 0)
    assert saved.receive_time == local(2025, 10, 20, 8, 0)
    assert saved.done_time == local(2025, 10, 22, 10, 0)
    assert saved.notes == "catatan"
    assert flow.sessions.get(OWNER) is None


@pytest.mark.asyncio
async def test_edit_report_preset_prompts_next_field(flow, gateway, clock):
    report = await db.insert_report(OWNER, title="Judul")
    await flow.start_edit_report(OWNER, report.id)
    await flow.handle_text(OWNER, "-")
    await flow.handle_text(OWNER, "-")

    await flow.handle_button(OWNER, "cb", "preset|edit_report_time|now")

    state = flow.sessions.get(OWNER)
    assert state.step == ReportStep.RECEIVE_TIME
    assert state.data.report_time == clock.now
    _, text, kwargs = gateway.sent[-1]
    assert text.startswith("✔️ Tanggal & Jam Laporan di-set")
    assert kwargs["inline"] == messages.preset_keyboard("edit_receive_time")


# ──────────────────────────────
# Menu & expiry
# ──────────────────────────────


@pytest.mark.asyncio
async def test_return_to_menu_clears_session(flow, gateway):
    await flow.start_create_report(OWNER)

    await flow.return_to_menu(OWNER)

    assert flow.sessions.get(OWNER) is None
    assert gateway.texts()[-2:] == [messages.FORMS_CANCELLED, messages.MAIN_MENU_PROMPT]
    assert gateway.sent[-1][2]["keyboard"] == messages.MAIN_MENU


@pytest.mark.asyncio
async def test_expiry_notifies_and_shows_menu(flow, gateway):
    await flow.on_session_expired(OWNER)

    assert gateway.texts() == [messages.SESSION_EXPIRED, messages.MAIN_MENU_PROMPT]
