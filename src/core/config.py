"""
Application settings.

Values are read from environment variables prefixed with `CHESS_` (ex. CHESS_LOG_LEVEL=DEBUG), or from a `.env` file.
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.shared_types import PromotionChoice

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CHESS_", env_file=".env", extra="ignore"
    )

    log_level: str = "INFO"
    log_json: bool = False
    default_promotion: PromotionChoice = PromotionChoice.QUEEN
    # in-memory repository refuses to open more rooms than this
    max_games: int = 1000

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level


@lru_cache
def get_settings() -> Settings:
    return Settings()
