"""Environment configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Settings loaded from environment variables and .env file.

    Only the calling service reads these. The engine receives a
    HealthScoringPolicy explicitly and never touches the environment.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Predictor
    HEALTH_TRAJECTORY_SEED: int | None = None  # None = derive seed from deal id
    HEALTH_TRAJECTORY_PERIODS: int = 4


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
