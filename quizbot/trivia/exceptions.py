"""Custom exceptions for Open Trivia DB errors."""


class TriviaAPIError(Exception):
    """Base exception for question source errors."""
    pass


class NetworkError(TriviaAPIError):
    """Connection failure, timeout or non-200 HTTP status."""
    pass


class RateLimitError(TriviaAPIError):
    """API rate limit exceeded (one request per 5 seconds per IP)."""
    pass


class NoResultsError(TriviaAPIError):
    """Not enough questions for the requested category and difficulty."""
    pass


class InvalidResponseError(TriviaAPIError):
    """API returned unexpected response format."""
    pass
