"""
Centralized configuration management for the ERM service.

Settings are grouped per concern and loaded from environment variables
or a ``.env`` file using pydantic-settings:

- Storage key prefix and retention caps for the activity and analytics logs
- Redis connection for the shared key-value backend
- Upgrade analytics delivery endpoint
- Logging, Sentry and security (CORS/environment)

Usage:
    from erm.config import get_settings

    settings = get_settings()
    if settings.is_redis_configured:
        ...
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Storage Settings
# =============================================================================


class StorageSettings(BaseSettings):
    """Key naming and retention for persisted workspace data."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    erm_storage_prefix: str = Field(
        default="erm_",
        min_length=1,
        description="Prefix applied to every persisted key",
    )
    activity_log_max_entries: int = Field(
        default=500,
        ge=1,
        description="Maximum activity records retained per workspace",
    )
    upgrade_events_max: int = Field(
        default=100,
        ge=1,
        description="Maximum upgrade analytics events retained per workspace",
    )
    default_workspace_id: str = Field(
        default="default",
        min_length=1,
        description="Workspace used when a request carries no workspace header",
    )


# =============================================================================
# Redis Settings
# =============================================================================


class RedisSettings(BaseSettings):
    """Configuration for the Redis key-value backend."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL (in-memory store is used when unset)",
    )
    redis_update_max_retries: int = Field(
        default=10,
        ge=1,
        description="Optimistic-lock retries for read-modify-write updates",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Redis is configured."""
        return bool(self.redis_url)


# =============================================================================
# Analytics Settings
# =============================================================================


class AnalyticsSettings(BaseSettings):
    """Configuration for best-effort upgrade analytics delivery."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    analytics_endpoint_url: Optional[str] = Field(
        default=None,
        description="Endpoint receiving upgrade funnel events as JSON",
    )
    analytics_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        le=60,
        description="Timeout for a single analytics delivery",
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.analytics_endpoint_url)


# =============================================================================
# Security Settings
# =============================================================================


class SecuritySettings(BaseSettings):
    """Configuration for the HTTP surface."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def origins_list(self) -> List[str]:
        """Parse allowed origins into a list."""
        return [
            origin.strip()
            for origin in self.allowed_origins.split(",")
            if origin.strip()
        ]


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingSettings(BaseSettings):
    """Configuration for logging."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format_json: bool = Field(
        default=False,
        description="Force JSON log format in development",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_level(cls, value):
        if isinstance(value, str):
            return value.upper()
        return value


# =============================================================================
# Monitoring Settings (Sentry)
# =============================================================================


class SentrySettings(BaseSettings):
    """Configuration for Sentry error tracking."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking",
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment name",
    )
    sentry_traces_sample_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry traces sample rate",
    )
    sentry_release: Optional[str] = Field(
        default=None,
        description="Release version reported to Sentry",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Sentry is configured."""
        return bool(self.sentry_dsn)


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """
    Aggregates every configuration group.

    Each group reads its own variables, so ``Settings()`` is the single
    entry point used by the service wiring.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    storage: StorageSettings = Field(default_factory=StorageSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    @property
    def is_redis_configured(self) -> bool:
        return self.redis.is_configured

    @property
    def is_sentry_configured(self) -> bool:
        return self.sentry.is_configured

    @property
    def is_analytics_configured(self) -> bool:
        return self.analytics.is_configured

    @property
    def is_production(self) -> bool:
        return self.security.is_production

    def get_config_summary(self) -> dict:
        """
        Get a summary of configuration status for logging.

        Never includes connection strings or DSNs.
        """
        return {
            "environment": self.security.environment,
            "storage_prefix": self.storage.erm_storage_prefix,
            "activity_log_max_entries": self.storage.activity_log_max_entries,
            "upgrade_events_max": self.storage.upgrade_events_max,
            "redis_configured": self.is_redis_configured,
            "analytics_configured": self.is_analytics_configured,
            "sentry_configured": self.is_sentry_configured,
            "allowed_origins": self.security.origins_list,
            "log_level": self.logging.log_level,
        }


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Call ``reload_settings()`` (or ``get_settings.cache_clear()``) after
    changing the environment.

    Raises:
        pydantic.ValidationError: If configuration values are invalid
    """
    return Settings()


def reload_settings() -> Settings:
    """Clear the cached settings and load them again from the environment."""
    get_settings.cache_clear()
    return get_settings()
