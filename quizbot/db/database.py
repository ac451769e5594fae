import asyncio
import logging
import os
import aiosqlite

from quizbot.config import settings

logger = logging.getLogger(__name__)

_db: aiosqlite.Connection | None = None

# One connection is shared by every coroutine; readers and writers take this
# lock so nobody sees an attempt header without its question rows.
_lock: asyncio.Lock | None = None


def db_lock() -> asyncio.Lock:
    global _lock
    if _lock is None:
        _lock = asyncio.Lock()
    return _lock


async def get_db() -> aiosqlite.Connection:
    """Get or create the database connection."""
    if _db is None:
        return await init_db(settings.DATABASE_PATH)
    return _db


async def init_db(path: str) -> aiosqlite.Connection:
    """Open the database at ``path`` and create the schema."""
    global _db, _lock
    if _db is not None:
        await close_db()

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    _db = await aiosqlite.connect(path)
    _lock = asyncio.Lock()
    _db.row_factory = aiosqlite.Row
    await _db.execute("PRAGMA foreign_keys = ON")
    await _create_tables(_db)
    logger.info("Database ready at %s", path)
    return _db


async def close_db():
    """Close the database connection."""
    global _db
    if _db:
        await _db.close()
        _db = None


async def _create_tables(db: aiosqlite.Connection):
    await db.executescript("""
        CREATE TABLE IF NOT EXISTS quiz_attempts (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id         INTEGER,
            timestamp       INTEGER NOT NULL,
            score           INTEGER NOT NULL,
            total_questions INTEGER NOT NULL,
            category        TEXT NOT NULL,
            difficulty      TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS quiz_questions (
            id                INTEGER PRIMARY KEY AUTOINCREMENT,
            attempt_id        INTEGER NOT NULL,
            position          INTEGER NOT NULL,
            question          TEXT NOT NULL,
            correct_answer    TEXT NOT NULL,
            incorrect_answers TEXT NOT NULL,
            selected_answer   TEXT,
            FOREIGN KEY (attempt_id) REFERENCES quiz_attempts(id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS idx_quiz_attempts_user_ts
            ON quiz_attempts (user_id, timestamp);
        CREATE INDEX IF NOT EXISTS idx_quiz_questions_attempt
            ON quiz_questions (attempt_id);
    """)
    await db.commit()
