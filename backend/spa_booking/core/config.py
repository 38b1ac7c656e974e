# backend/spa_booking/core/config.py
import logging
import os
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

from .constants import (
    BRAND_NAME,
    DEFAULT_CLEANUP_INTERVAL_SECONDS,
    DEFAULT_MIN_CANCELLATION_NOTICE_HOURS,
    DEFAULT_RESERVATION_TIMEOUT_MINUTES,
    MAX_CANCELLATION_NOTICE_HOURS,
    MAX_CLEANUP_INTERVAL_SECONDS,
    MAX_RESERVATION_TIMEOUT_MINUTES,
    MIN_CANCELLATION_NOTICE_HOURS,
    MIN_CLEANUP_INTERVAL_SECONDS,
    MIN_RESERVATION_TIMEOUT_MINUTES,
)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    load_dotenv(env_path)


def parse_int_clamped(value: Any, default: int, minimum: int, maximum: int) -> int:
    """
    Parse an integer setting and clamp it into [minimum, maximum].

    Unparsable values fall back to ``default`` instead of failing start-up.

    Examples:
        parse_int_clamped("10", 5, 0, 100) -> 10
        parse_int_clamped("invalid", 5, 0, 100) -> 5
        parse_int_clamped("200", 5, 0, 100) -> 100
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        logger.warning("Invalid integer setting %r; defaulting to %s", value, default)
        return default
    return max(minimum, min(maximum, parsed))


class Settings(BaseSettings):
    """Runtime configuration for the booking backend."""

    environment: str = Field(default="development", description="Deployment environment name")
    is_testing: bool = Field(default=False, description="Set by the test suite")

    database_url: str = Field(
        default="sqlite:///./spa_booking.db",
        description="SQLAlchemy database URL for the booking store",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements to the log")

    # Reservation lifecycle
    reservation_timeout_minutes: int = Field(
        default=DEFAULT_RESERVATION_TIMEOUT_MINUTES,
        description="How long a pending hold reserves its slot before the sweeper reclaims it",
    )
    min_cancellation_notice_hours: int = Field(
        default=DEFAULT_MIN_CANCELLATION_NOTICE_HOURS,
        description="Minimum hours before start for customer cancellation of confirmed bookings (0 disables)",
    )
    cleanup_job_interval_seconds: int = Field(
        default=DEFAULT_CLEANUP_INTERVAL_SECONDS,
        description="Interval between expiry sweeps",
    )
    timezone: str = Field(
        default="UTC",
        description="Timezone used to interpret slot dates/times and schedule jobs",
    )
    scheduler_enabled: bool = Field(
        default=True,
        description="Run the in-process expiry sweeper (disabled automatically during tests)",
    )
    reminder_hour: int = Field(
        default=9,
        ge=0,
        le=23,
        description="Local hour at which the daily reminder job runs",
    )

    # Email
    email_provider: Literal["console", "resend"] = Field(
        default="console",
        description="Outbound email transport",
    )
    resend_api_key: SecretStr | None = Field(default=None, description="Resend API key")
    email_from_address: str = Field(
        default="bookings@serenityspa.example",
        description="Sender address for booking notifications",
    )
    email_from_name: str = Field(default=BRAND_NAME, description="Sender display name")
    support_phone: str = Field(default="(555) 123-4567", description="Phone number shown in emails")

    # Celery
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    celery_broker_url: str | None = Field(default=None, description="Overrides redis_url for Celery")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("reservation_timeout_minutes", mode="before")
    @classmethod
    def _clamp_reservation_timeout(cls, value: object) -> int:
        return parse_int_clamped(
            value,
            DEFAULT_RESERVATION_TIMEOUT_MINUTES,
            MIN_RESERVATION_TIMEOUT_MINUTES,
            MAX_RESERVATION_TIMEOUT_MINUTES,
        )

    @field_validator("min_cancellation_notice_hours", mode="before")
    @classmethod
    def _clamp_cancellation_notice(cls, value: object) -> int:
        return parse_int_clamped(
            value,
            DEFAULT_MIN_CANCELLATION_NOTICE_HOURS,
            MIN_CANCELLATION_NOTICE_HOURS,
            MAX_CANCELLATION_NOTICE_HOURS,
        )

    @field_validator("cleanup_job_interval_seconds", mode="before")
    @classmethod
    def _clamp_cleanup_interval(cls, value: object) -> int:
        return parse_int_clamped(
            value,
            DEFAULT_CLEANUP_INTERVAL_SECONDS,
            MIN_CLEANUP_INTERVAL_SECONDS,
            MAX_CLEANUP_INTERVAL_SECONDS,
        )

    @field_validator("timezone", mode="before")
    @classmethod
    def _validate_timezone(cls, value: object) -> str:
        candidate = str(value or "").strip() or "UTC"
        if candidate not in pytz.all_timezones_set:
            raise ValueError(f"TIMEZONE must be a valid IANA timezone, got {candidate!r}")
        return candidate

    @property
    def broker_url(self) -> str:
        return self.celery_broker_url or self.redis_url

    @property
    def hold_ttl_seconds(self) -> int:
        return self.reservation_timeout_minutes * 60


settings = Settings()
