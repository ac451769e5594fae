"""Тесты асинхронного раннера сессии (моки источника вопросов и хранилища)."""
import asyncio
import random
from unittest.mock import AsyncMock

from quizbot.core.models import Difficulty
from quizbot.core.session import (
    Abandon,
    Advance,
    Check,
    ConfirmSelection,
    Phase,
    Retry,
    RetrySave,
    SelectAnswer,
    Start,
)
from quizbot.db.exceptions import PersistenceError
from quizbot.services.quiz_session import QuizSession, SessionRegistry
from quizbot.trivia.exceptions import NetworkError


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def make_session(fetch=None, save=None, **kwargs) -> QuizSession:
    kwargs.setdefault("tick_seconds", 3600)  # таймер не срабатывает сам
    kwargs.setdefault("reveal_seconds", 3600)
    kwargs.setdefault("rng", random.Random(1))
    return QuizSession(
        fetch_questions=fetch or AsyncMock(return_value=[]),
        save_attempt=save or AsyncMock(return_value=1),
        **kwargs,
    )


async def start_quiz(session: QuizSession):
    await session.dispatch(Start())
    await session.dispatch(ConfirmSelection(18, Difficulty.MEDIUM))
    await session.pending_fetch
    return session.state


class TestQuizSessionRunner:
    """Выполнение эффектов автомата."""

    async def test_fetch_runs_and_starts_quiz(self, questions):
        fetch = AsyncMock(return_value=list(questions))
        session = make_session(fetch)

        state = await start_quiz(session)

        fetch.assert_awaited_once_with(18, Difficulty.MEDIUM, 5)
        assert state.phase is Phase.IN_PROGRESS
        assert session._countdown_task is not None
        await session.close()

    async def test_fetch_error_becomes_load_error(self):
        """Исключение источника — LoadError, а не необработанная ошибка."""
        fetch = AsyncMock(side_effect=NetworkError("no route to host"))
        session = make_session(fetch)

        state = await start_quiz(session)

        assert state.phase is Phase.LOAD_ERROR
        assert "no route to host" in state.error

    async def test_retry_fetches_again(self, questions):
        fetch = AsyncMock(side_effect=[NetworkError("down"), list(questions)])
        session = make_session(fetch)
        await start_quiz(session)

        await session.dispatch(Retry())
        await session.pending_fetch

        assert session.state.phase is Phase.IN_PROGRESS
        assert fetch.await_count == 2
        await session.close()

    async def test_late_fetch_after_abandon_is_dropped(self, questions):
        """Ответ, пришедший после отмены, не возвращает сессию в игру."""
        release = asyncio.Event()

        async def slow_fetch(*args):
            await release.wait()
            return list(questions)

        session = make_session(slow_fetch)
        await session.dispatch(Start())
        await session.dispatch(ConfirmSelection(9, Difficulty.EASY))
        await session.dispatch(Abandon())

        release.set()
        await session.pending_fetch

        assert session.state.phase is Phase.IDLE
        assert session._countdown_task is None

    async def test_completion_persists_once(self, questions):
        """Последний переход сохраняет попытку и останавливает таймер."""
        save = AsyncMock(return_value=42)
        session = make_session(AsyncMock(return_value=list(questions)), save)
        await start_quiz(session)

        for n in range(1, 6):
            await session.dispatch(SelectAnswer(f"right {n}" if n % 2 else f"wrong {n}a"))
            await session.dispatch(Advance())

        assert session.state.phase is Phase.COMPLETED
        assert session.state.score == 3
        assert session.state.attempt_id == 42
        save.assert_awaited_once()
        draft = save.await_args.args[0]
        assert draft.selected_answers == ("right 1", "wrong 2a", "right 3", "wrong 4a", "right 5")
        assert session._countdown_task is None

    async def test_persist_failure_is_reported(self, questions):
        """Ошибка записи не теряется: она в состоянии, попытку можно сохранить снова."""
        save = AsyncMock(side_effect=[PersistenceError("disk I/O error"), 7])
        session = make_session(AsyncMock(return_value=list(questions)), save)
        await start_quiz(session)
        for _ in range(5):
            await session.dispatch(Advance())

        assert session.state.phase is Phase.COMPLETED
        assert session.state.attempt_id is None
        assert "disk I/O error" in session.state.error

        await session.dispatch(RetrySave())

        assert session.state.attempt_id == 7
        assert session.state.error is None

    async def test_unexpected_save_error_is_reported(self, questions):
        """Любая ошибка записи после паузы показа видна пользователю и повторяема."""
        save = AsyncMock(side_effect=[ValueError("no active connection"), 11])
        listener = AsyncMock()
        session = make_session(
            AsyncMock(return_value=list(questions[:1])), save,
            on_change=listener, reveal_seconds=0.01,
        )
        await start_quiz(session)

        await session.dispatch(SelectAnswer("right 1"))
        await session.dispatch(Check())
        await session._reveal_task

        assert session.state.phase is Phase.COMPLETED
        assert session.state.attempt_id is None
        assert "no active connection" in session.state.error
        old, new = listener.await_args.args
        assert new.phase is Phase.COMPLETED and new.error

        await session.dispatch(RetrySave())

        assert save.await_count == 2
        assert session.state.attempt_id == 11
        assert session.state.error is None

    async def test_passed_deadline_beats_final_advance(self, questions):
        """Дедлайн прошёл к моменту последнего перехода — TimedOut, без записи."""
        clock = FakeClock()
        save = AsyncMock(return_value=1)
        session = make_session(AsyncMock(return_value=list(questions)), save, tick_seconds=1, clock=clock)
        await start_quiz(session)
        for _ in range(4):
            await session.dispatch(Advance())

        clock.now = 300.0
        await session.dispatch(Advance())

        assert session.state.phase is Phase.TIMED_OUT
        save.assert_not_awaited()

    async def test_countdown_times_out(self, questions):
        """Реальный таймер с коротким тиком доводит сессию до TimedOut."""
        save = AsyncMock(return_value=1)
        session = make_session(AsyncMock(return_value=list(questions)), save, tick_seconds=0.001)
        await start_quiz(session)

        for _ in range(200):
            if session.state.phase is Phase.TIMED_OUT:
                break
            await asyncio.sleep(0.01)

        assert session.state.phase is Phase.TIMED_OUT
        assert session.state.remaining_seconds == 0
        save.assert_not_awaited()

    async def test_reveal_auto_advances(self, questions):
        """После проверки ответа пауза показа сама переводит к следующему вопросу."""
        session = make_session(AsyncMock(return_value=list(questions)), reveal_seconds=0.01)
        await start_quiz(session)

        await session.dispatch(SelectAnswer("right 1"))
        await session.dispatch(Check())
        assert session.state.checked

        await session._reveal_task

        assert session.state.current_index == 1
        assert not session.state.checked
        await session.close()

    async def test_listener_gets_old_and_new(self, questions):
        listener = AsyncMock()
        session = make_session(on_change=listener)

        await session.dispatch(Start())

        old, new = listener.await_args.args
        assert old.phase is Phase.IDLE
        assert new.phase is Phase.SELECTING_CATEGORY

    async def test_listener_error_does_not_break_session(self):
        listener = AsyncMock(side_effect=RuntimeError("telegram down"))
        session = make_session(on_change=listener)

        state = await session.dispatch(Start())

        assert state.phase is Phase.SELECTING_CATEGORY

    async def test_ignored_event_does_not_notify(self):
        listener = AsyncMock()
        session = make_session(on_change=listener)

        await session.dispatch(Advance())

        listener.assert_not_awaited()


class TestSessionRegistry:
    async def test_drop_closes_session(self, questions):
        registry = SessionRegistry()
        session = make_session(AsyncMock(return_value=list(questions)))
        registry.set(1, session)
        await start_quiz(session)
        task = session._countdown_task

        await registry.drop(1)
        await asyncio.gather(task, return_exceptions=True)

        assert registry.get(1) is None
        assert task.cancelled()
