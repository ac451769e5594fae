"""Configuration settings using pydantic-settings."""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Telegram Bot
    BOT_TOKEN: str = Field(default="", description="Telegram Bot API token")

    # Database
    DATABASE_PATH: str = Field(
        default="data/daily_quiz.db",
        description="Path to SQLite database file"
    )

    # Open Trivia DB
    TRIVIA_BASE_URL: str = Field(
        default="https://opentdb.com",
        description="Question source base URL"
    )
    TRIVIA_TIMEOUT: float = Field(default=10.0, description="API request timeout in seconds")

    # Quiz pacing
    REVEAL_DELAY_SECONDS: float = Field(
        default=2.0,
        description="Pause after an answer is checked before moving on"
    )

    # Logging
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    class Config:
        """Pydantic config."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()


CATEGORIES = {
    9: "General Knowledge",
    10: "Books",
    11: "Film",
    12: "Music",
    17: "Science & Nature",
    18: "Science: Computers",
    21: "Sports",
    22: "Geography",
    23: "History",
}

DEFAULT_CATEGORY_ID = 9
