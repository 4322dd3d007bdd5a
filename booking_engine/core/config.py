# booking_engine/core/config.py
"""
Runtime configuration for the booking engine.

Values come from the environment (prefix ``BOOKING_``) or a local ``.env``
file. Callers that need non-default settings construct ``Settings``
directly and pass it to the components they build.
"""

from functools import lru_cache
import logging
from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Engine settings."""

    environment: str = Field(default="development", description="Deployment environment name")
    log_level: str = Field(default="INFO")

    database_url: str = Field(default="sqlite:///./booking_engine.db")
    database_echo: bool = False

    redis_url: str = Field(default="redis://localhost:6379/0")
    lock_namespace: str = Field(default="booking")
    lock_ttl_seconds: int = Field(default=30, ge=1, le=600)
    lock_max_attempts: int = Field(default=5, ge=1, le=50)
    lock_backoff_base_ms: int = Field(default=50, ge=1)
    lock_backoff_max_ms: int = Field(default=1000, ge=1)

    min_duration_minutes: int = Field(default=15, ge=1)
    notes_max_length: int = Field(default=1000, ge=0)

    default_currency: str = Field(default="EUR", min_length=3, max_length=3)
    supported_currencies: List[str] = Field(default_factory=lambda: ["EUR", "USD", "GBP", "CHF"])
    default_timezone: str = Field(default="UTC")

    model_config = SettingsConfigDict(
        env_prefix="BOOKING_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("supported_currencies")
    @classmethod
    def _upper_currencies(cls, value: List[str]) -> List[str]:
        return [code.strip().upper() for code in value if code.strip()]

    @field_validator("default_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        if value not in pytz.all_timezones_set:
            raise ValueError(f"Unknown timezone: {value}")
        return value

    @model_validator(mode="after")
    def _check_consistency(self) -> "Settings":
        if self.default_currency not in self.supported_currencies:
            raise ValueError("default_currency must be one of supported_currencies")
        if self.lock_backoff_max_ms < self.lock_backoff_base_ms:
            raise ValueError("lock_backoff_max_ms must be >= lock_backoff_base_ms")
        return self


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    logger.debug(
        "[CONFIG] environment=%s lock_ttl=%ss lock_attempts=%s",
        settings.environment,
        settings.lock_ttl_seconds,
        settings.lock_max_attempts,
    )
    return settings
