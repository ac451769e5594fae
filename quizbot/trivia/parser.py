import logging
from typing import Any
from urllib.parse import unquote

from quizbot.core.models import Difficulty, Question

from .endpoints import (
    RESPONSE_NO_RESULTS,
    RESPONSE_OK,
    RESPONSE_RATE_LIMIT,
)
from .exceptions import InvalidResponseError, NoResultsError, RateLimitError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {"category", "difficulty", "question", "correct_answer", "incorrect_answers"}


def parse_questions(payload: Any) -> list[Question]:
    """Turn an api.php response body into decoded questions.

    Raises a TriviaAPIError subclass when the API reports an error code or the
    body does not look like a question list.
    """
    if not isinstance(payload, dict):
        raise InvalidResponseError(f"Unexpected payload type: {type(payload).__name__}")

    code = payload.get("response_code")
    if code == RESPONSE_NO_RESULTS:
        raise NoResultsError("Not enough questions for this category and difficulty")
    if code == RESPONSE_RATE_LIMIT:
        raise RateLimitError("Too many requests, try again in a few seconds")
    if code != RESPONSE_OK:
        raise InvalidResponseError(f"API returned response_code={code!r}")

    results = payload.get("results")
    if not isinstance(results, list):
        raise InvalidResponseError("Missing 'results' list")

    questions = []
    for item in results:
        question = _parse_question(item)
        if question is not None:
            questions.append(question)
        else:
            logger.warning(f"Skipping invalid question: {item}")

    return questions


def _parse_question(item: Any) -> Question | None:
    if not isinstance(item, dict) or not REQUIRED_FIELDS.issubset(item):
        return None

    incorrect = item["incorrect_answers"]
    if not isinstance(incorrect, list):
        return None

    try:
        difficulty = Difficulty(_decode(item["difficulty"]))
    except ValueError:
        return None

    correct = _decode(item["correct_answer"])
    prompt = _decode(item["question"])
    if not correct or not prompt:
        return None

    return Question(
        category=_decode(item["category"]),
        difficulty=difficulty,
        prompt=prompt,
        correct_answer=correct,
        incorrect_answers=tuple(_decode(a) for a in incorrect),
    )


def _decode(value: Any) -> str:
    return unquote(str(value)).strip()
