import sqlite3

import aiosqlite

from lecture_mate.config import settings

CREATE_LECTURES = """
CREATE TABLE IF NOT EXISTS lectures (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    presenter TEXT,
    date TEXT NOT NULL,
    duration INTEGER NOT NULL DEFAULT 0,
    transcript_json TEXT NOT NULL DEFAULT '[]',
    highlights_json TEXT NOT NULL DEFAULT '[]',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
)
"""

_DDL = [CREATE_LECTURES]


def _db_path() -> str:
    # read on every call so tests can point settings at a temp file
    return settings.database_path


async def init_db() -> None:
    """Create all tables. Called once at server startup via FastAPI lifespan."""
    async with aiosqlite.connect(_db_path()) as db:
        for stmt in _DDL:
            await db.execute(stmt)
        await db.commit()


def get_sync_conn() -> sqlite3.Connection:
    """Synchronous connection for recording threads (lecture sinks)."""
    conn = sqlite3.connect(_db_path())
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA busy_timeout = 5000")
    for stmt in _DDL:
        conn.execute(stmt)
    return conn


async def get_async_conn() -> aiosqlite.Connection:
    """Async connection for use in FastAPI route handlers."""
    conn = await aiosqlite.connect(_db_path())
    await conn.execute("PRAGMA busy_timeout = 5000")
    conn.row_factory = aiosqlite.Row
    return conn
