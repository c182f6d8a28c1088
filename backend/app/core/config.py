# backend/app/core/config.py
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


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
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")
    is_testing: bool = False  # Set to True when running tests

    # Storage
    database_url: str = Field(
        default="postgresql://localhost/slotback",
        description="SQLAlchemy URL of the relational store",
    )
    redis_url: str = "redis://localhost:6379"
    redis_namespace: str = Field(
        default="slotback",
        description="Prefix for job lock keys in the cooldown & lock store",
    )

    # Scheduler / trigger
    app_url: Optional[str] = Field(
        default=None,
        description="Public base URL used to trigger the offer-loop job over HTTP",
    )
    internal_secret: Optional[SecretStr] = Field(
        default=None,
        description="Shared secret expected in X-Internal-Secret for the offer-loop job",
    )
    cron_secret: Optional[SecretStr] = Field(
        default=None,
        description="Shared secret expected in X-Cron-Secret for scheduled jobs",
    )
    trigger_timeout_seconds: float = Field(default=10.0, gt=0)

    # Messaging provider
    sms_enabled: bool = True
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[SecretStr] = None
    twilio_phone_number: Optional[str] = None
    twilio_messaging_service_sid: Optional[str] = None

    # Slot recovery
    offer_expiry_minutes: int = Field(
        default=15,
        ge=1,
        description="How long a customer has to reply to a slot offer",
    )
    offer_cooldown_seconds: int = Field(
        default=24 * 60 * 60,
        ge=1,
        description="Minimum gap before the same customer is offered another slot",
    )
    offer_candidate_limit: int = Field(default=50, ge=1)
    expire_offers_batch_size: int = Field(default=25, ge=1)
    slot_lock_ttl_seconds: int = Field(default=30, ge=1)

    # Scheduled jobs
    job_lock_ttl_seconds: int = Field(
        default=300,
        ge=1,
        description="TTL of named job locks; a crashed run frees its lock after this",
    )
    recompute_scores_batch_size: int = Field(default=50, ge=1)
    score_window_days: int = Field(default=180, ge=1)
    resolve_outcomes_limit: int = Field(default=200, ge=1)
    resolve_outcomes_max_limit: int = Field(default=1000, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("app_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip().rstrip("/")
        return cleaned or None

    @field_validator("twilio_account_sid", "twilio_phone_number", mode="after")
    @classmethod
    def _strip_twilio(cls, value: Optional[str]) -> Optional[str]:
        return (value or "").strip() or None

    def secret_value(self, name: str) -> Optional[str]:
        """Return the plain value of a SecretStr setting, or None when unset/blank."""
        secret = getattr(self, name)
        if secret is None:
            return None
        value = secret.get_secret_value().strip()
        return value or None


settings = Settings()
