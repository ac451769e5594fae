"""Async client for the Open Trivia DB API."""
import asyncio
import logging
from typing import List, Optional

import aiohttp

from quizbot.config import settings
from quizbot.core.models import QUESTION_COUNT, Difficulty, Question

from .endpoints import DEFAULT_HEADERS, ENCODING, QUESTION_TYPE, QUESTIONS_PATH
from .exceptions import InvalidResponseError, NetworkError
from .parser import parse_questions

logger = logging.getLogger(__name__)


class TriviaClient:
    """Fetches multiple-choice questions over HTTP."""

    def __init__(self, base_url: str, timeout: float = 10.0, session: Optional[aiohttp.ClientSession] = None):
        """
        Args:
            base_url: API root, e.g. https://opentdb.com
            timeout: total request timeout in seconds
            session: externally owned aiohttp session (tests, connection reuse)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=DEFAULT_HEADERS, timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def fetch_questions(
        self,
        category_id: int,
        difficulty: Difficulty,
        count: int = QUESTION_COUNT,
    ) -> List[Question]:
        """
        Получить вопросы для викторины.

        Args:
            category_id: Open Trivia DB category id
            difficulty: easy / medium / hard
            count: number of questions

        Returns:
            Decoded questions in API order (may be empty)
        """
        params = {
            "amount": count,
            "type": QUESTION_TYPE,
            "category": category_id,
            "difficulty": Difficulty(difficulty).value,
            "encode": ENCODING,
        }
        url = f"{self.base_url}{QUESTIONS_PATH}"
        session = await self._get_session()

        try:
            async with session.get(url, params=params, timeout=self.timeout) as resp:
                if resp.status != 200:
                    raise NetworkError(f"HTTP {resp.status} from {url}")
                payload = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Ошибка загрузки вопросов: %s", e)
            raise NetworkError(f"Ошибка загрузки вопросов: {e}") from e
        except ValueError as e:
            raise InvalidResponseError(f"Response is not JSON: {e}") from e

        questions = parse_questions(payload)
        logger.info(
            "Fetched %d questions (category=%s, difficulty=%s)",
            len(questions), category_id, params["difficulty"],
        )
        return questions

    async def close(self):
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None


trivia_client = TriviaClient(settings.TRIVIA_BASE_URL, settings.TRIVIA_TIMEOUT)
