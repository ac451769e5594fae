"""Общие фикстуры для тестов викторины."""
import random

import pytest

from quizbot.core.models import Difficulty, Question
from quizbot.db import database


def make_question(n: int, category: str = "Science: Computers", difficulty: Difficulty = Difficulty.MEDIUM) -> Question:
    return Question(
        category=category,
        difficulty=difficulty,
        prompt=f"Question {n}?",
        correct_answer=f"right {n}",
        incorrect_answers=(f"wrong {n}a", f"wrong {n}b", f"wrong {n}c"),
    )


@pytest.fixture
def questions():
    """Пять вопросов одной категории."""
    return tuple(make_question(n) for n in range(1, 6))


@pytest.fixture
def rng():
    """Детерминированный генератор для перемешивания ответов."""
    return random.Random(42)


@pytest.fixture
async def db(tmp_path):
    """Чистая SQLite-база во временном каталоге."""
    conn = await database.init_db(str(tmp_path / "quiz.db"))
    yield conn
    await database.close_db()
