"""
Planalytics Configuration Management

Uses Pydantic Settings for type-safe configuration from environment variables.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine configuration loaded from environment variables."""

    # =========================================================================
    # APPLICATION
    # =========================================================================
    APP_NAME: str = "Planalytics"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "info"
    VERSION: str = "0.1.0"

    # =========================================================================
    # CONFIDENCE SCORING
    # =========================================================================
    CONFIDENCE_WARNING_THRESHOLD: int = 70
    CONFIDENCE_ERROR_THRESHOLD: int = 50

    # =========================================================================
    # DEPENDENCY ANALYSIS
    # =========================================================================
    IMPLICIT_DEPENDENCY_THRESHOLD: float = 0.5

    # =========================================================================
    # ESTIMATION CALIBRATION
    # =========================================================================
    CALIBRATION_MIN_SAMPLES: int = 3

    # =========================================================================
    # SPRINT CAPACITY
    # =========================================================================
    DEFAULT_VELOCITY: int = 20
    DEFAULT_BUFFER_PERCENTAGE: float = 0.20
    LOW_AVAILABILITY_THRESHOLD: float = 0.3
    DEFAULT_ITEM_POINTS: float = 3

    # =========================================================================
    # RISK RULES
    # =========================================================================
    LARGE_ITEM_POINTS: int = 13
    MIN_DESCRIPTION_LENGTH: int = 20
    UNCLEAR_SCOPE_RATIO: float = 0.3

    # =========================================================================
    # FEATURE FLAGS
    # =========================================================================
    FEATURE_IMPLICIT_DEPENDENCIES: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton instance for easy import
settings = get_settings()
