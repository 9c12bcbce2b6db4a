# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for EduCenter.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
There is no cached global instance: call load_settings() once at process
start (API lifespan, worker boot) and pass the result to whatever needs it.

Example:
    >>> from educenter.core.config.settings import load_settings
    >>> settings = load_settings()
    >>> print(settings.environment)
    'development'
"""

from typing import Literal, Self

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration for the billing store.

    Every center (tenant) shares this database; rows are scoped by
    center_id.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        url_override: Full async URL, used instead of the components when set.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
        populate_by_name=True,
    )

    user: str = "educenter"
    password: SecretStr = SecretStr("educenter_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "educenter"
    url_override: str | None = Field(default=None, validation_alias="DATABASE_URL")
    pool_size: int = 10
    max_overflow: int = 20

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def sync_url(self) -> str:
        """Build the sync database URL for migrations."""
        pwd = self.password.get_secret_value()
        return f"postgresql://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class RedisSettings(BaseSettings):
    """Redis configuration for the Dramatiq broker.

    Attributes:
        host: Redis server host.
        port: Redis server port.
        password: Redis password.
        database: Redis database number.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 6379
    password: SecretStr = SecretStr("")
    database: int = 0

    @property
    def url(self) -> str:
        """Build the Redis connection URL."""
        pwd = self.password.get_secret_value()
        if pwd:
            return f"redis://:{pwd}@{self.host}:{self.port}/{self.database}"
        return f"redis://{self.host}:{self.port}/{self.database}"


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        host: Host to bind to.
        port: Port to listen on.
        workers: Number of worker processes.
        reload: Whether to enable auto-reload.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 2
    reload: bool = False


class WorkerSettings(BaseSettings):
    """Background worker configuration.

    Attributes:
        broker: Broker backend; "stub" keeps messages in memory (tests).
        processes: Number of worker processes.
        threads: Number of threads per process.
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKER_",
        extra="ignore",
    )

    broker: Literal["redis", "stub"] = "redis"
    processes: int = 2
    threads: int = 4


class BillingSettings(BaseSettings):
    """Monthly billing configuration.

    Attributes:
        default_due_day: Due day applied to new profiles that omit one.
        scheduler_enabled: Whether the API process runs the cron scheduler.
        generation_cron: Cron expression for the cycle generator job.
        status_refresh_cron: Cron expression for the status refresh job.
        default_page_size: Page size for ledger listings.
        max_page_size: Upper bound accepted for page sizes.
    """

    model_config = SettingsConfigDict(
        env_prefix="BILLING_",
        extra="ignore",
    )

    default_due_day: int = 10
    scheduler_enabled: bool = True
    # Daily so profiles created mid-month still get their row
    generation_cron: str = "10 0 * * *"
    status_refresh_cron: str = "30 0 * * *"
    default_page_size: int = 20
    max_page_size: int = 100

    @field_validator("default_due_day")
    @classmethod
    def validate_due_day(cls, value: int) -> int:
        """Ensure the default due day is a valid day of month."""
        if not 1 <= value <= 31:
            raise ValueError("default_due_day must be between 1 and 31")
        return value


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        redis: Redis settings.
        api: API server settings.
        worker: Background worker settings.
        billing: Billing policy settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Subsettings - loaded with their own env prefixes
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    api: APISettings = Field(default_factory=APISettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    billing: BillingSettings = Field(default_factory=BillingSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            if self.database.password.get_secret_value() == "educenter_password":
                raise ValueError(
                    "Database password must be changed from default in production. "
                    "Set DB_PASSWORD environment variable."
                )
            if self.worker.broker == "stub":
                raise ValueError("The stub broker cannot be used in production.")
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


def load_settings() -> Settings:
    """Load settings from the environment.

    Each call builds a fresh instance; callers own the result and pass it on.

    Returns:
        Settings instance.
    """
    return Settings()
