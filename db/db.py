"""
Async DB helpers for reminders and work reports.
Uses SQLAlchemy 2.0 with asyncpg (Postgres) or aiosqlite (SQLite file).
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import AsyncGenerator

from sqlalchemy import DateTime, Integer, String, Text, TypeDecorator, delete, select, update
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


# ──────────────────────────────────────────────────────────────────────
# 1. Declarative metadata
# ──────────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    pass


class UTCDateTime(TypeDecorator):
    """Store aware datetimes as UTC; always hand back UTC-aware values.

    SQLite has no TIMESTAMPTZ, so naive values would silently lose their
    offset. Refuse them instead.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("datetime values must be timezone-aware")
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# ──────────────────────────────────────────────────────────────────────
# 2. Lazy engine / session factory
# ──────────────────────────────────────────────────────────────────────
_engine = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def _build_url() -> str:
    url = os.getenv("DATABASE_URL") or os.getenv("DATABASE_PUBLIC_URL")
    if not url:
        path = os.getenv("DATABASE_FILE", "notes.db")
        return f"sqlite+aiosqlite:///{path}"
    if url.startswith(("postgres://", "postgresql://")) and "+asyncpg" not in url:
        url = url.replace("postgres://", "postgresql+asyncpg://", 1).replace(
            "postgresql://", "postgresql+asyncpg://", 1
        )
    return url


def get_engine():
    global _engine
    if _engine is None:
        url = _build_url()
        if url.startswith("sqlite"):
            _engine = create_async_engine(url)
        else:
            _engine = create_async_engine(url, pool_size=5, max_overflow=5)
    return _engine


def get_session() -> AsyncGenerator[AsyncSession, None]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(get_engine(), expire_on_commit=False)
    async def _session_scope():
        async with _session_maker() as session:
            yield session
    return _session_scope()


# ──────────────────────────────────────────────────────────────────────
# 3. ORM models
# ──────────────────────────────────────────────────────────────────────

class Reminder(Base):
    __tablename__ = "reminders"

    id:           Mapped[int]  = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id:     Mapped[str]  = mapped_column(String, index=True)
    text:         Mapped[str]  = mapped_column(Text)
    scheduled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    fired:        Mapped[bool] = mapped_column(default=False)
    status:       Mapped[str]  = mapped_column(String, default="pending")
    created_at:   Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(timezone.utc)
    )


class Report(Base):
    __tablename__ = "reports"

    id:                 Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id:           Mapped[str] = mapped_column(String, index=True)
    title:              Mapped[str] = mapped_column(Text)
    completion_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    report_time:        Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    receive_time:       Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    done_time:          Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    notes:              Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at:         Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(timezone.utc)
    )


REPORT_FIELDS = (
    "title",
    "completion_summary",
    "report_time",
    "receive_time",
    "done_time",
    "notes",
)


# ──────────────────────────────────────────────────────────────────────
# 4. DDL helper (run once at startup or from Alembic)
# ──────────────────────────────────────────────────────────────────────
async def create_all():
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ──────────────────────────────────────────────────────────────────────
# 5. Reminder CRUD
# ──────────────────────────────────────────────────────────────────────

# 5.1 Insert -----------------------------------------------------------
async def insert_reminder(owner_id: str, text: str, scheduled_at: datetime | None) -> Reminder:
    reminder = Reminder(owner_id=owner_id, text=text, scheduled_at=scheduled_at)
    async for s in get_session():
        s.add(reminder)
        await s.commit()
    return reminder


# 5.2 Reads ------------------------------------------------------------
async def get_reminder(reminder_id: int, owner_id: str) -> Reminder | None:
    async for s in get_session():
        stmt = select(Reminder).where(
            Reminder.id == reminder_id, Reminder.owner_id == owner_id
        )
        res = await s.execute(stmt)
        return res.scalar_one_or_none()


async def get_reminder_by_id(reminder_id: int) -> Reminder | None:
    """Unscoped lookup, only for the scheduler's fire callback."""
    async for s in get_session():
        return await s.get(Reminder, reminder_id)


async def list_reminders(owner_id: str) -> list[Reminder]:
    async for s in get_session():
        stmt = (
            select(Reminder)
            .where(Reminder.owner_id == owner_id)
            .order_by(Reminder.created_at.desc(), Reminder.id.desc())
        )
        res = await s.execute(stmt)
        return list(res.scalars())


async def fetch_unfired_scheduled_reminders() -> list[Reminder]:
    async for s in get_session():
        stmt = select(Reminder).where(
            Reminder.scheduled_at.is_not(None),
            Reminder.fired.is_(False),
        )
        res = await s.execute(stmt)
        return list(res.scalars())


# 5.3 Updates ----------------------------------------------------------
async def _update_reminder(reminder_id: int, owner_id: str, **values) -> bool:
    async for s in get_session():
        res = await s.execute(
            update(Reminder)
            .where(Reminder.id == reminder_id, Reminder.owner_id == owner_id)
            .values(**values)
        )
        await s.commit()
        return res.rowcount > 0


async def update_reminder_text(reminder_id: int, owner_id: str, text: str) -> bool:
    return await _update_reminder(reminder_id, owner_id, text=text)


async def update_reminder_time(reminder_id: int, owner_id: str, scheduled_at: datetime) -> bool:
    return await _update_reminder(
        reminder_id, owner_id, scheduled_at=scheduled_at, fired=False
    )


async def update_reminder_status(reminder_id: int, owner_id: str, status: str) -> bool:
    return await _update_reminder(reminder_id, owner_id, status=status)


async def mark_reminder_fired(reminder_id: int):
    async for s in get_session():
        await s.execute(
            update(Reminder).where(Reminder.id == reminder_id).values(fired=True)
        )
        await s.commit()


# 5.4 Delete -----------------------------------------------------------
async def delete_reminder(reminder_id: int, owner_id: str) -> bool:
    async for s in get_session():
        res = await s.execute(
            delete(Reminder).where(
                Reminder.id == reminder_id, Reminder.owner_id == owner_id
            )
        )
        await s.commit()
        return res.rowcount > 0


# ──────────────────────────────────────────────────────────────────────
# 6. Report CRUD
# ──────────────────────────────────────────────────────────────────────

async def insert_report(owner_id: str, **fields) -> Report:
    report = Report(owner_id=owner_id, **{k: fields.get(k) for k in REPORT_FIELDS})
    async for s in get_session():
        s.add(report)
        await s.commit()
    return report


async def get_report(report_id: int, owner_id: str) -> Report | None:
    async for s in get_session():
        stmt = select(Report).where(Report.id == report_id, Report.owner_id == owner_id)
        res = await s.execute(stmt)
        return res.scalar_one_or_none()


async def list_reports(owner_id: str) -> list[Report]:
    async for s in get_session():
        stmt = (
            select(Report)
            .where(Report.owner_id == owner_id)
            .order_by(Report.report_time.desc(), Report.id.desc())
        )
        res = await s.execute(stmt)
        return list(res.scalars())


async def list_reports_between(owner_id: str, start: datetime, end: datetime) -> list[Report]:
    async for s in get_session():
        stmt = (
            select(Report)
            .where(
                Report.owner_id == owner_id,
                Report.report_time >= start,
                Report.report_time <= end,
            )
            .order_by(Report.report_time.asc())
        )
        res = await s.execute(stmt)
        return list(res.scalars())


async def update_report(report_id: int, owner_id: str, **fields) -> bool:
    values = {k: v for k, v in fields.items() if k in REPORT_FIELDS}
    async for s in get_session():
        res = await s.execute(
            update(Report)
            .where(Report.id == report_id, Report.owner_id == owner_id)
            .values(**values)
        )
        await s.commit()
        return res.rowcount > 0


async def delete_report(report_id: int, owner_id: str) -> bool:
    async for s in get_session():
        res = await s.execute(
            delete(Report).where(Report.id == report_id, Report.owner_id == owner_id)
        )
        await s.commit()
        return res.rowcount > 0


async def dispose_engine():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
    _session_maker = None
