"""
Application configuration management with environment-based settings.
"""
from functools import lru_cache
from typing import List

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Main application settings."""

    # ============= Application Settings =============
    APP_NAME: str = "Architecture Catalogue Exams"
    APP_VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/v1"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    # ============= Database Settings =============
    DATABASE_URL: str = Field(default="sqlite:///./archexam.db")
    DATABASE_ECHO: bool = False

    # ============= Security Settings =============
    SECRET_KEY: SecretStr = Field(default="dev-secret-change-me")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Exam session signing, independent of SECRET_KEY.
    EXAM_SIGNING_KEY: SecretStr = Field(default="dev-exam-key-change-me")
    # Retired keys still accepted for verification during a rotation.
    EXAM_SIGNING_KEYS_PREVIOUS: List[SecretStr] = []
    EXAM_TOKEN_TTL_SECONDS: int = Field(default=900, gt=0)

    # ============= Exam Settings =============
    QUALIFICATION_QUESTION_COUNT: int = Field(default=20, ge=1)
    QUALIFICATION_PASS_PERCENTAGE: float = Field(default=60.0, ge=0, le=100)
    PRACTICE_SINGLE_COUNT: int = Field(default=6, ge=0)
    PRACTICE_MULTIPLE_COUNT: int = Field(default=4, ge=0)

    # Grading
    GRADING_CASE_SENSITIVE: bool = True
    GRADING_TRIM_WHITESPACE: bool = True
    SCORE_DECIMALS: int = Field(default=2, ge=0)

    # Results
    LEADERBOARD_LIMIT: int = Field(default=5, ge=1)
    PERSIST_RETRY_ATTEMPTS: int = Field(default=3, ge=1)
    PERSIST_RETRY_WAIT_SECONDS: float = Field(default=0.2, ge=0)

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
