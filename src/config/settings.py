"""Application settings using Pydantic Settings.

Centralized configuration for the partner referral backend. Each concern has
its own settings class with an environment prefix; ``Settings`` exposes them
as nested properties.
"""

import logging
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database import DatabaseSettings

logger = logging.getLogger(__name__)


class ResilienceSettings(BaseSettings):
    """Retry and timeout budget for every data-access call."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_",
        extra="ignore",
    )

    # Retries after the first attempt; total attempts are max_attempts + 1.
    max_attempts: int = Field(default=2, ge=0, le=10, description="Retries for transient faults")
    initial_delay: float = Field(default=0.2, ge=0, description="First backoff delay in seconds")
    attempt_timeout: float = Field(default=4.0, gt=0, description="Per-attempt timeout in seconds")

    @property
    def worst_case_latency(self) -> float:
        """Upper bound on wall-clock time spent by one resilient call."""
        attempts = self.max_attempts + 1
        delays = sum(self.initial_delay * (2 ** i) for i in range(self.max_attempts))
        return attempts * self.attempt_timeout + delays


class CredentialSettings(BaseSettings):
    """Password hashing and temporary credential configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CREDENTIAL_",
        extra="ignore",
    )

    bcrypt_rounds: int = Field(default=10, ge=4, le=16, description="bcrypt work factor")
    temporary_length: int = Field(default=8, ge=6, le=32, description="Temporary credential length")
    persist_temporary: bool = Field(
        default=False,
        description="Keep the plaintext temporary credential on the partner row for admin display"
    )


class LifecycleSettings(BaseSettings):
    """Business switches for the pre-registration and operation lifecycles."""

    model_config = SettingsConfigDict(
        env_prefix="LIFECYCLE_",
        extra="ignore",
    )

    allow_rejected_promotion: bool = Field(
        default=True,
        description="Allow administrators to promote pre-registrations that were rejected"
    )
    commission_rate: float = Field(
        default=0.02,
        ge=0,
        le=1,
        description="Partner commission as a fraction of the requested amount of approved operations"
    )


class LoggingSettings(BaseSettings):
    """Logging output configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        extra="ignore",
    )

    level: str = Field(default="INFO", description="Root log level")
    json_output: bool = Field(default=False, description="Emit JSON log lines")

    @model_validator(mode="after")
    def _normalize_level(self) -> "LoggingSettings":
        level = self.level.upper()
        if level not in logging.getLevelNamesMapping():
            logger.warning(f"Unknown log level {self.level!r}, using INFO")
            level = "INFO"
        self.level = level
        return self


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    name: str = Field(default="Partner Referral Backend", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def resilience(self) -> ResilienceSettings:
        return ResilienceSettings()

    @property
    def credentials(self) -> CredentialSettings:
        return CredentialSettings()

    @property
    def lifecycle(self) -> LifecycleSettings:
        return LifecycleSettings()

    @property
    def logging(self) -> LoggingSettings:
        return LoggingSettings()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment in ("production", "prod", "staging")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Cached settings loaded from environment.
    """
    return Settings()
