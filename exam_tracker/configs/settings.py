"""
Unified client settings.

Aggregates all configuration modules into a single Settings class.

Dependencies: All config modules
System role: Central configuration aggregator for the tracker
"""

from functools import lru_cache

from pydantic import Field

from exam_tracker.configs.base import BaseSettings
from exam_tracker.configs.grading_api import GradingApiSettings
from exam_tracker.configs.polling import PollingSettings


class Settings(BaseSettings):
    """Unified client settings aggregating all config modules."""

    # Aggregated settings
    grading_api: GradingApiSettings = Field(default_factory=GradingApiSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)


@lru_cache
def get_settings() -> Settings:
    """
    Get client settings singleton.

    Environment variables are loaded once, on first call.

    Returns:
        Settings: Client settings instance

    Usage:
        from exam_tracker.configs import get_settings
        settings = get_settings()
    """
    return Settings()
