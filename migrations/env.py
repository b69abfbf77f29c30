"""
Alembic environment for the reminders/reports schema.

The URL comes from ``db.db._build_url`` so migrations hit the same database
the bot does: DATABASE_URL, then DATABASE_PUBLIC_URL, then the local
``DATABASE_FILE`` SQLite file. ``sqlalchemy.url`` in alembic.ini, when set,
wins over all three.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from db.db import Base, _build_url

# ---------------------------------------------------------------------
# 1. Alembic config & logging
# ---------------------------------------------------------------------
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _url() -> str:
    return config.get_main_option("sqlalchemy.url") or _build_url()


# ---------------------------------------------------------------------
# 2. Offline: emit SQL only
# ---------------------------------------------------------------------
def run_migrations_offline() -> None:
    context.configure(
        url=_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=_url().startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()


# ---------------------------------------------------------------------
# 3. Online: async engine, sync migration body
# ---------------------------------------------------------------------
def _migrate(connection: Connection) -> None:
    # SQLite cannot ALTER most columns in place; batch mode copies the table
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(_url(), poolclass=pool.NullPool)
    async with engine.connect() as conn:
        await conn.run_sync(_migrate)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
