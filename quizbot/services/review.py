import random
from dataclasses import dataclass
from typing import Optional

from quizbot.core.models import AttemptQuestionRecord, AttemptRecord
from quizbot.db.queries import get_attempt, get_questions


@dataclass(frozen=True)
class ReviewItem:
    record: AttemptQuestionRecord
    choices: tuple[str, ...]


@dataclass(frozen=True)
class AttemptReview:
    attempt: AttemptRecord
    items: tuple[ReviewItem, ...]


async def load_review(
    attempt_id: int,
    user_id: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> AttemptReview | None:
    """Load an attempt for review.

    The answer order is shuffled again here; the record keeps correct and
    selected answers by value, so it need not match what was shown in play.
    """
    attempt = await get_attempt(attempt_id, user_id)
    if attempt is None:
        return None

    shuffle = (rng or random).shuffle
    items = []
    for record in await get_questions(attempt_id):
        choices = list(record.incorrect_answers) + [record.correct_answer]
        shuffle(choices)
        items.append(ReviewItem(record=record, choices=tuple(choices)))

    return AttemptReview(attempt=attempt, items=tuple(items))
