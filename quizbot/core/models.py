"""Domain records shared by the session, the question source and the store."""
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple


QUESTION_COUNT = 5
QUIZ_DURATION_SECONDS = 300

DEFAULT_CATEGORY = "General Knowledge"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


DEFAULT_DIFFICULTY = Difficulty.EASY


@dataclass(frozen=True)
class Question:
    """Single multiple-choice question, already decoded."""
    category: str
    difficulty: Difficulty
    prompt: str
    correct_answer: str
    incorrect_answers: Tuple[str, ...] = ()

    def all_answers(self) -> Tuple[str, ...]:
        return self.incorrect_answers + (self.correct_answer,)


# Fixed on-screen order of a question's answers
ChoiceSet = Tuple[str, ...]


def build_choice_set(question: Question, rng: Optional[random.Random] = None) -> ChoiceSet:
    """Return a random permutation of the question's answers."""
    answers = list(question.all_answers())
    (rng or random).shuffle(answers)
    return tuple(answers)


def compute_score(questions: Sequence[Question], selected: Sequence[Optional[str]]) -> int:
    """Count the positions where the final selection equals the correct answer."""
    return sum(
        1 for q, answer in zip(questions, selected)
        if answer is not None and answer == q.correct_answer
    )


@dataclass(frozen=True)
class AttemptDraft:
    """Everything needed to persist a completed session."""
    score: int
    category: str
    difficulty: str
    questions: Tuple[Question, ...]
    selected_answers: Tuple[Optional[str], ...]

    @property
    def total_questions(self) -> int:
        return len(self.questions)


@dataclass(frozen=True)
class AttemptRecord:
    """Persisted attempt header."""
    id: int
    timestamp: int  # epoch milliseconds
    score: int
    total_questions: int
    category: str
    difficulty: str
    user_id: Optional[int] = None


@dataclass(frozen=True)
class AttemptQuestionRecord:
    """Persisted result of one question inside an attempt."""
    attempt_id: int
    position: int
    question: str
    correct_answer: str
    incorrect_answers: Tuple[str, ...] = field(default_factory=tuple)
    selected_answer: Optional[str] = None

    @property
    def is_correct(self) -> bool:
        return self.selected_answer is not None and self.selected_answer == self.correct_answer
