from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from apscheduler.schedulers.asyncio import AsyncIOScheduler

import db

TZ = ZoneInfo("Asia/Makassar")


def local(*args) -> datetime:
    return datetime(*args, tzinfo=TZ)


class FakeGateway:
    """Records outbound messages and callback answers."""

    def __init__(self):
        self.sent = []
        self.acks = []

    async def send_message(self, chat_id, text, **kwargs):
        self.sent.append((chat_id, text, kwargs))

    async def answer_callback(self, callback_id, text=None):
        self.acks.append((callback_id, text))

    def texts(self):
        return [text for _, text, _ in self.sent]

    @property
    def last(self):
        return self.sent[-1][1]


class FakeReminders:
    """Stands in for ReminderScheduler; records arm/cancel calls."""

    def __init__(self):
        self.armed = {}
        self.cancelled = []

    def arm_reminder(self, reminder):
        self.armed[reminder.id] = reminder.scheduled_at
        return True

    def cancel(self, reminder_id):
        self.cancelled.append(reminder_id)
        return self.armed.pop(reminder_id, None) is not None


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest_asyncio.fixture
async def database(tmp_path, monkeypatch):
    monkeypatch.delenv("DATABASE_PUBLIC_URL", raising=False)
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await db.dispose_engine()
    await db.create_all()
    yield
    await db.dispose_engine()


@pytest_asyncio.fixture
async def scheduler():
    sched = AsyncIOScheduler(timezone=timezone.utc)
    sched.start()
    yield sched
    sched.shutdown(wait=False)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def reminders():
    return FakeReminders()


@pytest.fixture
def clock():
    # Monday morning in Makassar
    return Clock(local(2025, 10, 20, 8, 0))
