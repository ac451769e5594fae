"""Тесты хранилища попыток (реальная SQLite во временном каталоге)."""
import asyncio
from unittest.mock import AsyncMock

import pytest

from quizbot.core.models import AttemptDraft, Difficulty, Question
from quizbot.db.exceptions import PersistenceError
from quizbot.db.queries import (
    delete_attempt,
    get_attempt,
    get_questions,
    get_stats_summary,
    list_attempts,
    save_attempt,
)


def make_draft(questions, selected, score=None) -> AttemptDraft:
    if score is None:
        score = sum(1 for q, s in zip(questions, selected) if s == q.correct_answer)
    return AttemptDraft(
        score=score,
        category=questions[0].category if questions else "General Knowledge",
        difficulty="medium",
        questions=tuple(questions),
        selected_answers=tuple(selected),
    )


class TestSaveAttempt:
    """Запись попытки: заголовок и вопросы одной транзакцией."""

    async def test_save_and_read_back(self, db, questions):
        """Сохранённые ответы читаются ровно такими, какими были записаны."""
        selected = ["right 1", "wrong 2a", "right 3", None, "right 5"]
        attempt_id = await save_attempt(make_draft(questions, selected), user_id=7, timestamp=1000)

        attempt = await get_attempt(attempt_id)
        assert attempt is not None
        assert attempt.score == 3
        assert attempt.total_questions == 5
        assert attempt.category == "Science: Computers"
        assert attempt.difficulty == "medium"
        assert attempt.timestamp == 1000
        assert attempt.user_id == 7

        rows = await get_questions(attempt_id)
        assert [r.selected_answer for r in rows] == selected
        assert [r.position for r in rows] == [0, 1, 2, 3, 4]
        assert rows[1].question == "Question 2?"
        assert rows[1].correct_answer == "right 2"
        assert rows[1].incorrect_answers == ("wrong 2a", "wrong 2b", "wrong 2c")
        assert [r.is_correct for r in rows] == [True, False, True, False, True]

    async def test_unicode_answers_round_trip(self, db):
        """Неправильные ответы с не-ASCII символами хранятся без искажений."""
        q = Question(
            category="Music",
            difficulty=Difficulty.EASY,
            prompt="Who wrote “Für Elise”?",
            correct_answer="Beethoven",
            incorrect_answers=("Chopin", "Dvořák", "Grieg"),
        )
        attempt_id = await save_attempt(make_draft([q], ["Dvořák"]))

        rows = await get_questions(attempt_id)
        assert rows[0].incorrect_answers == ("Chopin", "Dvořák", "Grieg")
        assert rows[0].question == "Who wrote “Für Elise”?"

    async def test_failed_question_insert_rolls_back_header(self, db, questions):
        """Ошибка при записи вопросов — заголовок тоже не сохраняется."""
        broken = Question(
            category="Film",
            difficulty=Difficulty.EASY,
            prompt="Broken?",
            correct_answer=None,  # NOT NULL нарушен
            incorrect_answers=("a", "b", "c"),
        )
        draft = make_draft([questions[0], broken], ["right 1", "a"], score=1)

        with pytest.raises(PersistenceError):
            await save_attempt(draft)

        assert await list_attempts() == []

        # Соединение остаётся рабочим после отката
        attempt_id = await save_attempt(make_draft(questions, [None] * 5))
        assert len(await get_questions(attempt_id)) == 5

    async def test_unavailable_database_is_persistence_error(self, db, questions, monkeypatch):
        """Недоступная база (каталог, закрытое соединение) — тоже PersistenceError."""
        monkeypatch.setattr(
            "quizbot.db.queries.get_db",
            AsyncMock(side_effect=PermissionError("data directory is read-only")),
        )

        with pytest.raises(PersistenceError, match="read-only"):
            await save_attempt(make_draft(questions, [None] * 5))

    async def test_closed_connection_is_persistence_error(self, db, questions):
        await db.close()

        with pytest.raises(PersistenceError):
            await save_attempt(make_draft(questions, [None] * 5))

    async def test_default_timestamp_is_now(self, db, questions):
        attempt_id = await save_attempt(make_draft(questions, [None] * 5))

        attempt = await get_attempt(attempt_id)
        assert attempt.timestamp > 1_600_000_000_000


class TestListAttempts:
    """Список попыток."""

    async def test_newest_first(self, db, questions):
        """Метки времени [100, 300, 200] — порядок [300, 200, 100]."""
        for ts in (100, 300, 200):
            await save_attempt(make_draft(questions, [None] * 5), timestamp=ts)

        attempts = await list_attempts()

        assert [a.timestamp for a in attempts] == [300, 200, 100]

    async def test_limit_keeps_newest(self, db, questions):
        for ts in range(1, 16):
            await save_attempt(make_draft(questions, [None] * 5), timestamp=ts)

        assert [a.timestamp for a in await list_attempts(limit=3)] == [15, 14, 13]
        assert len(await list_attempts()) == 15

    async def test_filtered_by_user(self, db, questions):
        await save_attempt(make_draft(questions, [None] * 5), user_id=1, timestamp=10)
        await save_attempt(make_draft(questions, [None] * 5), user_id=2, timestamp=20)

        attempts = await list_attempts(user_id=1)

        assert [a.user_id for a in attempts] == [1]

    async def test_get_attempt_other_user(self, db, questions):
        """Чужая попытка не отдаётся."""
        attempt_id = await save_attempt(make_draft(questions, [None] * 5), user_id=1)

        assert await get_attempt(attempt_id, user_id=2) is None
        assert await get_attempt(attempt_id, user_id=1) is not None

    async def test_get_missing_attempt(self, db):
        assert await get_attempt(12345) is None
        assert await get_questions(12345) == []

    async def test_stats_summary(self, db, questions):
        await save_attempt(make_draft(questions, ["right 1", "right 2", None, None, None]), user_id=5)
        await save_attempt(make_draft(questions, ["right 1", None, None, None, None]), user_id=5)

        stats = await get_stats_summary(5)

        assert stats["total_tests"] == 2
        assert stats["total_correct"] == 3
        assert stats["total_questions_answered"] == 10
        assert stats["avg_score"] == pytest.approx(1.5)


class TestDeleteAttempt:
    """Удаление попытки вместе с вопросами."""

    async def test_delete_removes_header_and_rows(self, db, questions):
        keep = await save_attempt(make_draft(questions, [None] * 5), timestamp=1)
        gone = await save_attempt(make_draft(questions, [None] * 5), timestamp=2)

        assert await delete_attempt(gone) is True

        assert [a.id for a in await list_attempts()] == [keep]
        assert await get_questions(gone) == []
        assert len(await get_questions(keep)) == 5

    async def test_delete_missing_is_noop(self, db, questions):
        """Удаление несуществующей попытки — не ошибка."""
        await save_attempt(make_draft(questions, [None] * 5))

        assert await delete_attempt(999) is False
        assert len(await list_attempts()) == 1

    async def test_delete_other_user_is_noop(self, db, questions):
        attempt_id = await save_attempt(make_draft(questions, [None] * 5), user_id=1)

        assert await delete_attempt(attempt_id, user_id=2) is False
        assert await get_attempt(attempt_id) is not None

    async def test_reader_never_sees_partial_attempt(self, db, questions):
        """Параллельное чтение во время записи видит попытку только целиком."""
        drafts = [make_draft(questions, [None] * 5) for _ in range(10)]

        async def reader():
            seen = []
            for _ in range(20):
                for attempt in await list_attempts():
                    seen.append(len(await get_questions(attempt.id)))
                await asyncio.sleep(0)
            return seen

        results = await asyncio.gather(
            reader(),
            *(save_attempt(d, timestamp=i) for i, d in enumerate(drafts)),
        )

        assert all(count == 5 for count in results[0])
        assert len(await list_attempts()) == 10
