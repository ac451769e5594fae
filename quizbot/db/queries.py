import json
import logging
import sqlite3
import time
from typing import Optional, Sequence

import aiosqlite

from quizbot.core.models import AttemptDraft, AttemptQuestionRecord, AttemptRecord
from quizbot.db.database import db_lock, get_db
from quizbot.db.exceptions import PersistenceError

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


async def insert_attempt(
    db: aiosqlite.Connection,
    *,
    timestamp: int,
    score: int,
    total_questions: int,
    category: str,
    difficulty: str,
    user_id: Optional[int] = None,
) -> int:
    """Insert an attempt header inside the caller's transaction and return its id."""
    cursor = await db.execute(
        """INSERT INTO quiz_attempts (user_id, timestamp, score, total_questions, category, difficulty)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (user_id, timestamp, score, total_questions, category, difficulty),
    )
    return cursor.lastrowid


async def insert_questions(db: aiosqlite.Connection, attempt_id: int, rows: Sequence[dict]) -> bool:
    """Insert the per-question results of an attempt inside the caller's transaction."""
    await db.executemany(
        """INSERT INTO quiz_questions
           (attempt_id, position, question, correct_answer, incorrect_answers, selected_answer)
           VALUES (?, ?, ?, ?, ?, ?)""",
        [
            (
                attempt_id,
                position,
                r["question"],
                r["correct_answer"],
                json.dumps(list(r.get("incorrect_answers", [])), ensure_ascii=False),
                r.get("selected_answer"),
            )
            for position, r in enumerate(rows)
        ],
    )
    return True


async def save_attempt(
    draft: AttemptDraft,
    user_id: Optional[int] = None,
    timestamp: Optional[int] = None,
) -> int:
    """Save a completed session header and its question results as one unit."""
    rows = [
        {
            "question": q.prompt,
            "correct_answer": q.correct_answer,
            "incorrect_answers": q.incorrect_answers,
            "selected_answer": selected,
        }
        for q, selected in zip(draft.questions, draft.selected_answers)
    ]

    try:
        db = await get_db()
    except Exception as e:
        # Closed connection, unwritable data directory
        logger.error("Database unavailable, attempt not saved: %s", e)
        raise PersistenceError(f"База данных недоступна: {e}") from e

    async with db_lock():
        try:
            attempt_id = await insert_attempt(
                db,
                timestamp=timestamp if timestamp is not None else _now_ms(),
                score=draft.score,
                total_questions=draft.total_questions,
                category=draft.category,
                difficulty=draft.difficulty,
                user_id=user_id,
            )
            await insert_questions(db, attempt_id, rows)
            await db.commit()
        except Exception as e:
            await _rollback_quietly(db)
            logger.error("Failed to save attempt: %s", e)
            raise PersistenceError(f"Не удалось сохранить попытку: {e}") from e

    logger.info("Saved attempt %s (score %s/%s)", attempt_id, draft.score, draft.total_questions)
    return attempt_id


async def list_attempts(user_id: Optional[int] = None, limit: Optional[int] = None) -> list[AttemptRecord]:
    """Get attempts newest first, all of them unless ``limit`` is given."""
    db = await get_db()
    query = "SELECT * FROM quiz_attempts"
    params: tuple = ()
    if user_id is not None:
        query += " WHERE user_id = ?"
        params = (user_id,)
    query += " ORDER BY timestamp DESC, id DESC"
    if limit is not None:
        query += " LIMIT ?"
        params += (limit,)

    async with db_lock():
        cursor = await db.execute(query, params)
        rows = await cursor.fetchall()
    return [_attempt_from_row(row) for row in rows]


async def get_attempt(attempt_id: int, user_id: Optional[int] = None) -> AttemptRecord | None:
    """Get one attempt header, optionally restricted to its owner."""
    db = await get_db()
    query = "SELECT * FROM quiz_attempts WHERE id = ?"
    params: tuple = (attempt_id,)
    if user_id is not None:
        query += " AND user_id = ?"
        params += (user_id,)

    async with db_lock():
        cursor = await db.execute(query, params)
        row = await cursor.fetchone()
    return _attempt_from_row(row) if row else None


async def get_questions(attempt_id: int) -> list[AttemptQuestionRecord]:
    """Get the question results of an attempt in the order they were asked."""
    db = await get_db()
    async with db_lock():
        cursor = await db.execute(
            """SELECT attempt_id, position, question, correct_answer, incorrect_answers, selected_answer
               FROM quiz_questions
               WHERE attempt_id = ?
               ORDER BY position, id""",
            (attempt_id,),
        )
        rows = await cursor.fetchall()
    return [_question_from_row(row) for row in rows]


async def delete_attempt(attempt_id: int, user_id: Optional[int] = None) -> bool:
    """Delete an attempt with its question rows. Returns False if it did not exist."""
    db = await get_db()
    async with db_lock():
        try:
            if user_id is not None:
                cursor = await db.execute(
                    "SELECT 1 FROM quiz_attempts WHERE id = ? AND user_id = ?",
                    (attempt_id, user_id),
                )
                if await cursor.fetchone() is None:
                    return False
            await db.execute("DELETE FROM quiz_questions WHERE attempt_id = ?", (attempt_id,))
            cursor = await db.execute("DELETE FROM quiz_attempts WHERE id = ?", (attempt_id,))
            deleted = cursor.rowcount > 0
            await db.commit()
        except sqlite3.Error as e:
            await _rollback_quietly(db)
            logger.error("Failed to delete attempt %s: %s", attempt_id, e)
            raise PersistenceError(f"Не удалось удалить попытку: {e}") from e

    if deleted:
        logger.info("Deleted attempt %s", attempt_id)
    return deleted


async def get_stats_summary(user_id: Optional[int] = None) -> dict:
    """Get overall stats for a user."""
    db = await get_db()
    query = """SELECT
                   COUNT(*) as total_tests,
                   AVG(score) as avg_score,
                   SUM(total_questions) as total_questions_answered,
                   SUM(score) as total_correct
               FROM quiz_attempts"""
    params: tuple = ()
    if user_id is not None:
        query += " WHERE user_id = ?"
        params = (user_id,)

    async with db_lock():
        cursor = await db.execute(query, params)
        row = await cursor.fetchone()
    return dict(row) if row else {}


async def _rollback_quietly(db: aiosqlite.Connection):
    # Failure here must not mask the error being reported
    try:
        await db.rollback()
    except (sqlite3.Error, ValueError) as e:
        logger.warning("Rollback failed: %s", e)


def _attempt_from_row(row: aiosqlite.Row) -> AttemptRecord:
    return AttemptRecord(
        id=row["id"],
        timestamp=row["timestamp"],
        score=row["score"],
        total_questions=row["total_questions"],
        category=row["category"],
        difficulty=row["difficulty"],
        user_id=row["user_id"],
    )


def _question_from_row(row: aiosqlite.Row) -> AttemptQuestionRecord:
    try:
        incorrect = tuple(json.loads(row["incorrect_answers"]) or ())
    except (TypeError, ValueError):
        incorrect = ()
    return AttemptQuestionRecord(
        attempt_id=row["attempt_id"],
        position=row["position"],
        question=row["question"],
        correct_answer=row["correct_answer"],
        incorrect_answers=incorrect,
        selected_answer=row["selected_answer"],
    )
