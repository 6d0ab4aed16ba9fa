"""
Polling configuration settings.

Cadence and back-off tunables for the job poll scheduler. None of these
are correctness properties; they only shape backend load and latency.

Dependencies: pydantic, pydantic_settings
System role: Poll scheduler tuning
"""

from pydantic import Field, model_validator
from pydantic_settings import SettingsConfigDict

from exam_tracker.configs.base import BaseSettings


class PollingSettings(BaseSettings):
    """Poll cadence and failure back-off configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="POLLING_",
        case_sensitive=False,
        extra="ignore",
    )

    interval_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Delay between successful polls of a non-terminal job",
    )
    backoff_base_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Delay after the first consecutive failure; doubles per failure",
    )
    backoff_max_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Cap for the exponential back-off delay",
    )
    max_consecutive_failures: int = Field(
        default=5,
        ge=1,
        description="Consecutive failures after which polling gives up",
    )

    @model_validator(mode="after")
    def _check_backoff_bounds(self) -> "PollingSettings":
        if self.backoff_max_seconds < self.backoff_base_seconds:
            raise ValueError("backoff_max_seconds must be >= backoff_base_seconds")
        return self
