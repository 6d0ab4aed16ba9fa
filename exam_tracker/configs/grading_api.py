"""
Grading backend API configuration.

Base URL and transport timeouts for the status/history/reprocess endpoints.

Dependencies: pydantic, pydantic_settings
System role: HTTP boundary configuration for the status fetcher
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from exam_tracker.configs.base import BaseSettings


class GradingApiSettings(BaseSettings):
    """Grading backend connection configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GRADING_API_",
        case_sensitive=False,
        extra="ignore",
    )

    base_url: str = Field(
        default="http://localhost:8000/api",
        description="Base URL of the grading backend API",
    )
    request_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Upper bound for a single request; exceeding it counts as a network failure",
    )
    connect_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Connection establishment timeout",
    )
