"""Async runner around the pure session state machine.

``QuizSession`` owns the state of one chat's quiz and carries out the effects
``transition`` asks for: it spawns the question fetch, runs the one-second
countdown and the reveal delay as cancellable tasks, and writes completed
attempts through the injected store function.
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, Sequence

from quizbot.core.models import AttemptDraft, Difficulty, Question
from quizbot.core.session import (
    CancelReveal,
    Effect,
    Event,
    Expire,
    FetchFailed,
    FetchQuestions,
    FetchSucceeded,
    Persisted,
    PersistAttempt,
    PersistFailed,
    Phase,
    RevealElapsed,
    SessionState,
    StartCountdown,
    StartReveal,
    StopCountdown,
    Tick,
    transition,
)
from quizbot.db.exceptions import PersistenceError
from quizbot.trivia.exceptions import TriviaAPIError

logger = logging.getLogger(__name__)

FetchFn = Callable[[int, Difficulty, int], Awaitable[Sequence[Question]]]
SaveFn = Callable[[AttemptDraft], Awaitable[int]]
Listener = Callable[[SessionState, SessionState], Awaitable[None]]


class QuizSession:
    """One quiz session bound to a question source and an attempt store."""

    def __init__(
        self,
        fetch_questions: FetchFn,
        save_attempt: SaveFn,
        on_change: Optional[Listener] = None,
        *,
        tick_seconds: float = 1.0,
        reveal_seconds: float = 2.0,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._fetch_questions = fetch_questions
        self._save_attempt = save_attempt
        self._on_change = on_change
        self.tick_seconds = tick_seconds
        self.reveal_seconds = reveal_seconds
        self._rng = rng
        self._clock = clock

        self.state = SessionState()
        self._lock = asyncio.Lock()
        self._countdown_task: Optional[asyncio.Task] = None
        self._reveal_task: Optional[asyncio.Task] = None
        self._fetch_task: Optional[asyncio.Task] = None
        self._deadline: Optional[float] = None

    @property
    def pending_fetch(self) -> Optional[asyncio.Task]:
        return self._fetch_task

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    async def dispatch(self, event: Event) -> SessionState:
        """Apply an event, run its effects and notify the listener."""
        async with self._lock:
            old = self.state
            # A passed deadline wins over whatever arrived in the same instant
            if self._deadline_passed() and not isinstance(event, (Tick, Expire)):
                await self._apply(Expire())
            await self._apply(event)
            new = self.state

        if new is not old and self._on_change is not None:
            try:
                await self._on_change(old, new)
            except Exception:
                logger.exception("Session listener failed")
        return new

    def _deadline_passed(self) -> bool:
        return (
            self.state.phase is Phase.IN_PROGRESS
            and self._deadline is not None
            and self._now() >= self._deadline
        )

    async def _apply(self, event: Event):
        new_state, effects = transition(self.state, event, self._rng)
        if new_state.phase is not self.state.phase:
            logger.info("Session %s -> %s", self.state.phase.value, new_state.phase.value)
        self.state = new_state
        for effect in effects:
            await self._run_effect(effect)

    async def _run_effect(self, effect: Effect):
        if isinstance(effect, FetchQuestions):
            self._fetch_task = asyncio.create_task(self._fetch(effect))
        elif isinstance(effect, StartCountdown):
            self._cancel_countdown()
            self._deadline = self._now() + effect.seconds * self.tick_seconds
            self._countdown_task = asyncio.create_task(self._countdown())
        elif isinstance(effect, StopCountdown):
            self._cancel_countdown()
        elif isinstance(effect, StartReveal):
            self._cancel_reveal()
            self._reveal_task = asyncio.create_task(self._reveal())
        elif isinstance(effect, CancelReveal):
            self._cancel_reveal()
        elif isinstance(effect, PersistAttempt):
            await self._persist(effect.draft)

    async def _persist(self, draft: AttemptDraft):
        try:
            attempt_id = await self._save_attempt(draft)
        except PersistenceError as e:
            logger.error("Attempt was not saved: %s", e)
            await self._apply(PersistFailed(str(e)))
            return
        except Exception as e:
            logger.exception("Unexpected error while saving the attempt")
            await self._apply(PersistFailed(str(e) or type(e).__name__))
            return
        await self._apply(Persisted(attempt_id))

    async def _fetch(self, effect: FetchQuestions):
        try:
            questions = await self._fetch_questions(effect.category_id, effect.difficulty, effect.count)
        except TriviaAPIError as e:
            logger.warning("Question fetch failed: %s", e)
            await self.dispatch(FetchFailed(effect.request_id, str(e)))
            return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Unexpected error while fetching questions")
            await self.dispatch(FetchFailed(effect.request_id, str(e)))
            return
        await self.dispatch(FetchSucceeded(effect.request_id, tuple(questions)))

    async def _countdown(self):
        while True:
            await asyncio.sleep(self.tick_seconds)
            state = await self.dispatch(Tick())
            if state.phase is not Phase.IN_PROGRESS:
                return

    async def _reveal(self):
        await asyncio.sleep(self.reveal_seconds)
        await self.dispatch(RevealElapsed())

    def _cancel_countdown(self):
        self._deadline = None
        _cancel(self._countdown_task)
        self._countdown_task = None

    def _cancel_reveal(self):
        _cancel(self._reveal_task)
        self._reveal_task = None

    async def close(self):
        """Stop every timer and drop any in-flight fetch."""
        self._cancel_countdown()
        self._cancel_reveal()
        _cancel(self._fetch_task)
        self._fetch_task = None


def _cancel(task: Optional[asyncio.Task]):
    # A task may end up cancelling itself (a tick that times the quiz out);
    # it finishes on its own instead.
    if task is None or task.done() or task is asyncio.current_task():
        return
    task.cancel()


class SessionRegistry:
    """Active sessions keyed by chat id."""

    def __init__(self):
        self._sessions: dict[int, QuizSession] = {}

    def get(self, chat_id: int) -> Optional[QuizSession]:
        return self._sessions.get(chat_id)

    def set(self, chat_id: int, session: QuizSession):
        self._sessions[chat_id] = session

    async def drop(self, chat_id: int):
        session = self._sessions.pop(chat_id, None)
        if session is not None:
            await session.close()

    async def close_all(self):
        for chat_id in list(self._sessions):
            await self.drop(chat_id)


registry = SessionRegistry()
