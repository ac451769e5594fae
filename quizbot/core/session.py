"""Quiz session state machine.

The whole lifecycle of one quiz lives in a single immutable ``SessionState``.
``transition`` is a pure function: it takes the current state and an event and
returns the next state together with a list of effects (fetch questions,
start/stop timers, persist the attempt) that the caller has to carry out.
Events that do not apply to the current phase return the state unchanged and
no effects.
"""
import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple, Union

from .models import (
    DEFAULT_CATEGORY,
    DEFAULT_DIFFICULTY,
    QUESTION_COUNT,
    QUIZ_DURATION_SECONDS,
    AttemptDraft,
    ChoiceSet,
    Difficulty,
    Question,
    build_choice_set,
    compute_score,
)


class Phase(str, Enum):
    IDLE = "idle"
    SELECTING_CATEGORY = "selecting_category"
    LOADING = "loading"
    LOAD_ERROR = "load_error"
    IN_PROGRESS = "in_progress"
    TIMED_OUT = "timed_out"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SessionState:
    phase: Phase = Phase.IDLE
    questions: Tuple[Question, ...] = ()
    choice_sets: Tuple[ChoiceSet, ...] = ()
    selected_answers: Tuple[Optional[str], ...] = ()
    current_index: int = 0
    score: int = 0
    remaining_seconds: int = QUIZ_DURATION_SECONDS
    checked: bool = False
    category_id: Optional[int] = None
    difficulty: Optional[Difficulty] = None
    request_id: int = 0
    attempt_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def current_question(self) -> Optional[Question]:
        if self.phase is Phase.IN_PROGRESS and self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    @property
    def is_last_question(self) -> bool:
        return self.current_index == len(self.questions) - 1


# --- Events ---

@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class Back:
    pass


@dataclass(frozen=True)
class ConfirmSelection:
    category_id: int
    difficulty: Difficulty


@dataclass(frozen=True)
class FetchSucceeded:
    request_id: int
    questions: Tuple[Question, ...]


@dataclass(frozen=True)
class FetchFailed:
    request_id: int
    reason: str = ""


@dataclass(frozen=True)
class Retry:
    category_id: Optional[int] = None
    difficulty: Optional[Difficulty] = None


@dataclass(frozen=True)
class SelectAnswer:
    answer: str


@dataclass(frozen=True)
class SelectChoice:
    """A pressed answer button: the question it was drawn for and the button index."""
    question_index: int
    choice_index: int


@dataclass(frozen=True)
class Check:
    pass


@dataclass(frozen=True)
class RevealElapsed:
    pass


@dataclass(frozen=True)
class Advance:
    """User moves on: skips the rest of the reveal pause, or leaves an unchecked question."""


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class Expire:
    pass


@dataclass(frozen=True)
class Persisted:
    attempt_id: int


@dataclass(frozen=True)
class PersistFailed:
    reason: str = ""


@dataclass(frozen=True)
class RetrySave:
    pass


@dataclass(frozen=True)
class StartAgain:
    pass


@dataclass(frozen=True)
class Acknowledge:
    pass


@dataclass(frozen=True)
class Abandon:
    pass


Event = Union[
    Start, Back, ConfirmSelection, FetchSucceeded, FetchFailed, Retry,
    SelectAnswer, SelectChoice, Check, RevealElapsed, Advance, Tick, Expire,
    Persisted, PersistFailed, RetrySave, StartAgain, Acknowledge, Abandon,
]


# --- Effects ---

@dataclass(frozen=True)
class FetchQuestions:
    request_id: int
    category_id: int
    difficulty: Difficulty
    count: int = QUESTION_COUNT


@dataclass(frozen=True)
class StartCountdown:
    seconds: int


@dataclass(frozen=True)
class StopCountdown:
    pass


@dataclass(frozen=True)
class StartReveal:
    pass


@dataclass(frozen=True)
class CancelReveal:
    pass


@dataclass(frozen=True)
class PersistAttempt:
    draft: AttemptDraft


Effect = Union[FetchQuestions, StartCountdown, StopCountdown, StartReveal, CancelReveal, PersistAttempt]

Result = Tuple[SessionState, List[Effect]]


def transition(state: SessionState, event: Event, rng: Optional[random.Random] = None) -> Result:
    """Apply ``event`` to ``state``."""
    phase = state.phase

    if isinstance(event, Abandon):
        effects: List[Effect] = []
        if phase is Phase.IN_PROGRESS:
            effects = [StopCountdown(), CancelReveal()]
        return _reset(state), effects

    if phase is Phase.IDLE:
        if isinstance(event, Start):
            return replace(state, phase=Phase.SELECTING_CATEGORY), []

    elif phase is Phase.SELECTING_CATEGORY:
        if isinstance(event, ConfirmSelection):
            return _begin_loading(state, event.category_id, event.difficulty)
        if isinstance(event, Back):
            return _reset(state), []

    elif phase is Phase.LOADING:
        if isinstance(event, FetchSucceeded) and event.request_id == state.request_id:
            if not event.questions:
                return replace(state, phase=Phase.LOAD_ERROR, error="empty result"), []
            return _begin_quiz(state, event.questions, rng)
        if isinstance(event, FetchFailed) and event.request_id == state.request_id:
            return replace(state, phase=Phase.LOAD_ERROR, error=event.reason or None), []

    elif phase is Phase.LOAD_ERROR:
        if isinstance(event, Retry):
            category_id = event.category_id if event.category_id is not None else state.category_id
            difficulty = event.difficulty or state.difficulty or DEFAULT_DIFFICULTY
            if category_id is None:
                return replace(state, phase=Phase.SELECTING_CATEGORY, error=None), []
            return _begin_loading(state, category_id, difficulty)
        if isinstance(event, Back):
            return _reset(state), []

    elif phase is Phase.IN_PROGRESS:
        return _in_progress(state, event)

    elif phase is Phase.COMPLETED:
        if isinstance(event, Persisted) and state.attempt_id is None:
            return replace(state, attempt_id=event.attempt_id, error=None), []
        if isinstance(event, PersistFailed) and state.attempt_id is None:
            return replace(state, error=event.reason or "persistence failed"), []
        if isinstance(event, RetrySave) and state.attempt_id is None and state.error:
            return replace(state, error=None), [PersistAttempt(_draft(state))]
        if isinstance(event, StartAgain):
            return _reset(state), []

    elif phase is Phase.TIMED_OUT:
        if isinstance(event, (Acknowledge, StartAgain)):
            return _reset(state), []

    return state, []


def _in_progress(state: SessionState, event: Event) -> Result:
    if isinstance(event, SelectChoice):
        # Buttons of an earlier question must not answer the current one
        choices = state.choice_sets[state.current_index]
        if event.question_index != state.current_index or not 0 <= event.choice_index < len(choices):
            return state, []
        event = SelectAnswer(choices[event.choice_index])

    if isinstance(event, SelectAnswer):
        if state.checked or event.answer not in state.choice_sets[state.current_index]:
            return state, []
        selected = list(state.selected_answers)
        selected[state.current_index] = event.answer
        selected = tuple(selected)
        return replace(state, selected_answers=selected,
                       score=compute_score(state.questions, selected)), []

    if isinstance(event, Check):
        if state.checked or state.selected_answers[state.current_index] is None:
            return state, []
        return replace(state, checked=True), [StartReveal()]

    if isinstance(event, RevealElapsed):
        if not state.checked:
            return state, []
        return _advance(state, [])

    if isinstance(event, Advance):
        effects: List[Effect] = [CancelReveal()] if state.checked else []
        return _advance(state, effects)

    if isinstance(event, Tick):
        remaining = max(state.remaining_seconds - 1, 0)
        if remaining == 0:
            return _time_out(state)
        return replace(state, remaining_seconds=remaining), []

    if isinstance(event, Expire):
        return _time_out(state)

    return state, []


def _advance(state: SessionState, effects: List[Effect]) -> Result:
    # Expiry takes precedence over the final advance
    if state.remaining_seconds <= 0:
        return _time_out(state)

    if not state.is_last_question:
        return replace(state, current_index=state.current_index + 1, checked=False), effects

    completed = replace(
        state,
        phase=Phase.COMPLETED,
        checked=False,
        score=compute_score(state.questions, state.selected_answers),
    )
    return completed, effects + [StopCountdown(), PersistAttempt(_draft(completed))]


def _time_out(state: SessionState) -> Result:
    timed_out = replace(state, phase=Phase.TIMED_OUT, remaining_seconds=0, checked=False)
    return timed_out, [StopCountdown(), CancelReveal()]


def _begin_loading(state: SessionState, category_id: int, difficulty: Difficulty) -> Result:
    request_id = state.request_id + 1
    loading = replace(
        _reset(state),
        phase=Phase.LOADING,
        category_id=category_id,
        difficulty=difficulty,
        request_id=request_id,
    )
    return loading, [FetchQuestions(request_id, category_id, difficulty)]


def _begin_quiz(state: SessionState, questions: Tuple[Question, ...], rng: Optional[random.Random]) -> Result:
    questions = tuple(questions)
    started = replace(
        state,
        phase=Phase.IN_PROGRESS,
        questions=questions,
        choice_sets=tuple(build_choice_set(q, rng) for q in questions),
        selected_answers=(None,) * len(questions),
        current_index=0,
        score=0,
        remaining_seconds=QUIZ_DURATION_SECONDS,
        checked=False,
        attempt_id=None,
        error=None,
    )
    return started, [StartCountdown(QUIZ_DURATION_SECONDS)]


def _draft(state: SessionState) -> AttemptDraft:
    first = state.questions[0] if state.questions else None
    return AttemptDraft(
        score=compute_score(state.questions, state.selected_answers),
        category=first.category if first else DEFAULT_CATEGORY,
        difficulty=(first.difficulty if first else DEFAULT_DIFFICULTY).value,
        questions=state.questions,
        selected_answers=state.selected_answers,
    )


def _reset(state: SessionState) -> SessionState:
    """Clear every session field but keep the request counter monotonic."""
    return SessionState(request_id=state.request_id)
