from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import StatementError

import db
from tests.conftest import local


@pytest.mark.asyncio
async def test_insert_naive_datetime_raises(database):
    with pytest.raises((ValueError, StatementError), match="timezone-aware"):
        await db.insert_reminder("42", "test", datetime(2025, 4, 25, 15, 0, 0))  # Naive!


@pytest.mark.asyncio
async def test_aware_datetime_comes_back_as_utc(database):
    row = await db.insert_reminder("42", "test", local(2025, 10, 20, 9, 0))
    stored = await db.get_reminder(row.id, "42")
    assert stored.scheduled_at == local(2025, 10, 20, 9, 0)
    assert stored.scheduled_at.utcoffset() == timedelta(0)
    assert stored.status == "pending" and stored.fired is False


@pytest.mark.asyncio
async def test_rows_are_scoped_by_owner(database):
    row = await db.insert_reminder("alice", "secret", None)
    report = await db.insert_report("alice", title="Laporan")

    assert await db.get_reminder(row.id, "bob") is None
    assert not await db.update_reminder_text(row.id, "bob", "hacked")
    assert not await db.delete_reminder(row.id, "bob")
    assert await db.list_reminders("bob") == []
    assert await db.get_report(report.id, "bob") is None
    assert not await db.update_report(report.id, "bob", title="x")
    assert not await db.delete_report(report.id, "bob")

    assert (await db.get_reminder(row.id, "alice")).text == "secret"


@pytest.mark.asyncio
async def test_rescheduling_resets_fired(database):
    row = await db.insert_reminder("42", "test", datetime.now(timezone.utc))
    await db.mark_reminder_fired(row.id)
    assert (await db.get_reminder_by_id(row.id)).fired

    assert await db.update_reminder_time(row.id, "42", local(2025, 12, 1, 8, 0))
    stored = await db.get_reminder_by_id(row.id)
    assert stored.fired is False
    assert stored.scheduled_at == local(2025, 12, 1, 8, 0)


@pytest.mark.asyncio
async def test_reports_between_is_inclusive_and_ordered(database):
    await db.insert_report("42", title="late", report_time=local(2025, 10, 20, 23, 30))
    await db.insert_report("42", title="early", report_time=local(2025, 10, 20, 0, 0))
    await db.insert_report("42", title="next day", report_time=local(2025, 10, 21, 0, 10))

    rows = await db.list_reports_between(
        "42", local(2025, 10, 20, 0, 0), local(2025, 10, 20, 23, 59, 59, 999999)
    )
    assert [r.title for r in rows] == ["early", "late"]

    newest_first = await db.list_reports("42")
    assert [r.title for r in newest_first] == ["next day", "late", "early"]
