"""
Upload Reminder Engine - Configuration

Pydantic Settings for environment-based configuration.
Every tunable threshold of the pattern and reminder pipeline lives here.
"""
from functools import lru_cache
from typing import Dict, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """
    Settings loaded from environment variables (prefix UPLOAD_REMINDERS_).
    Use .env file for local development, env vars for production.
    """

    model_config = SettingsConfigDict(
        env_prefix="UPLOAD_REMINDERS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Storage / API
    # ==========================================================================
    database_url: str = "sqlite:///./upload_reminders.db"
    internal_api_key: str = "scheduler-internal-key-change-in-production"
    log_level: str = "INFO"

    # ==========================================================================
    # Pattern classification
    # ==========================================================================
    # frequency -> (target interval days, tolerance days)
    frequency_bands: Dict[str, Tuple[int, int]] = Field(
        default_factory=lambda: {
            "monthly": (30, 10),
            "quarterly": (91, 15),
            "half_yearly": (182, 20),
            "yearly": (365, 20),
        }
    )
    stable_cv_threshold: float = 0.15
    volatile_cv_threshold: float = 0.40
    # Relative shift between history halves that counts as a pattern change
    pattern_shift_ratio: float = 0.3

    # ==========================================================================
    # Missing document detection
    # ==========================================================================
    grace_period_days: Dict[str, int] = Field(
        default_factory=lambda: {
            "bank_statement": 5,
            "dividend_statement": 10,
            "payg_summary": 21,
            "other": 7,
        }
    )
    default_grace_period_days: int = 7
    look_ahead_days: int = 7

    # ==========================================================================
    # Reminder classification
    # ==========================================================================
    overdue_threshold_days: int = 7
    follow_up_threshold_days: int = 14
    snooze_days: int = 3

    @field_validator("volatile_cv_threshold")
    @classmethod
    def validate_cv_thresholds(cls, v: float, info) -> float:
        stable = info.data.get("stable_cv_threshold", 0.15)
        if v <= stable:
            raise ValueError("volatile_cv_threshold must exceed stable_cv_threshold")
        return v

    @field_validator("follow_up_threshold_days")
    @classmethod
    def validate_reminder_thresholds(cls, v: int, info) -> int:
        overdue = info.data.get("overdue_threshold_days", 7)
        if v < overdue:
            raise ValueError("follow_up_threshold_days must be >= overdue_threshold_days")
        return v

    def grace_period_for(self, document_type: str) -> int:
        """Grace period in days for a document type value."""
        return self.grace_period_days.get(document_type, self.default_grace_period_days)


@lru_cache()
def get_settings() -> EngineSettings:
    """Cached settings instance."""
    return EngineSettings()


def resolve_settings(settings: Optional[EngineSettings]) -> EngineSettings:
    return settings if settings is not None else get_settings()
