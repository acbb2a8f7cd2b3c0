#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
broker/cache service layer. The core never reads the environment itself:
components receive a Settings instance, and get_settings() exists for the
process that bootstraps them.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Mode-dependent connection profiles (development vs production)
- Easy testing: construct Settings(...) with overrides

Author: System Architect
Date: 2026-02-11
"""

from dataclasses import dataclass
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from narad.core.config.constants import (
    POST_LOGOUT_TTL_SECONDS,
    RECENT_ACTIVITY_MAX_ENTRIES,
    RECENT_ACTIVITY_TTL_SECONDS,
    SESSION_TTL_SECONDS,
    STATS_RETENTION_DAYS,
    TOPIC_USER_EVENTS,
    TOPIC_WEBSOCKET,
    Backend,
    Environment,
)
from narad.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class ConnectionProfile:
    """
    Connection establishment policy for one backend in the current mode.

    Attributes:
        timeout: Seconds a single connect attempt may take
        attempts: Total connect attempts before giving up
        initial_backoff: First retry delay in seconds (exponential + jitter)
        max_backoff: Upper bound for the retry delay
        fail_fast: Raise on failure instead of entering DEGRADED
    """

    timeout: float
    attempts: int
    initial_backoff: float
    max_backoff: float
    fail_fast: bool


class Settings(BaseSettings):
    """
    Main settings class for the service layer.

    STAGE-0: Centralized configuration initialization

    Usage:
        settings = Settings()                      # from env / .env
        settings = Settings(ENVIRONMENT="production", REDIS_HOST="cache")

        profile = settings.connection_profile(Backend.CACHE)
        brokers = settings.kafka_brokers
    """

    # Application settings
    ENVIRONMENT: Literal["development", "production"] = Field(
        default="development",
        description="Runtime mode: development degrades on failure, production fails fast",
    )
    APP_NAME: str = Field(default="narad", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    # Kafka settings
    KAFKA_CLIENT_ID: str = Field(default="narad", description="Kafka client id")
    KAFKA_BROKERS: str = Field(
        default="localhost:9092", description="Comma-separated Kafka bootstrap servers"
    )
    KAFKA_CONSUMER_GROUP: str = Field(default="narad-group", description="Default consumer group")
    KAFKA_SSL: bool = Field(default=False, description="Use TLS for Kafka connections")
    KAFKA_SASL_MECHANISM: str = Field(default="PLAIN", description="SASL mechanism")
    KAFKA_SASL_USERNAME: str | None = Field(default=None, description="SASL username")
    KAFKA_SASL_PASSWORD: str | None = Field(default=None, description="SASL password")

    KAFKA_CONNECTION_TIMEOUT_DEV: float = Field(default=3.0, description="Dev connect timeout (s)")
    KAFKA_CONNECTION_TIMEOUT_PROD: float = Field(default=10.0, description="Prod connect timeout (s)")
    KAFKA_RETRIES_DEV: int = Field(default=3, ge=1, description="Dev connect attempts")
    KAFKA_RETRIES_PROD: int = Field(default=8, ge=1, description="Prod connect attempts")
    KAFKA_INITIAL_RETRY_TIME_DEV: float = Field(default=0.1, description="Dev first retry delay (s)")
    KAFKA_INITIAL_RETRY_TIME_PROD: float = Field(default=0.3, description="Prod first retry delay (s)")

    # Redis settings
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_TLS: bool = Field(default=False, description="Use TLS for Redis connections")

    REDIS_CONNECT_TIMEOUT_DEV: float = Field(default=5.0, description="Dev connect timeout (s)")
    REDIS_CONNECT_TIMEOUT_PROD: float = Field(default=10.0, description="Prod connect timeout (s)")
    REDIS_RETRIES_DEV: int = Field(default=1, ge=1, description="Dev connect attempts")
    REDIS_RETRIES_PROD: int = Field(default=3, ge=1, description="Prod connect attempts")
    REDIS_INITIAL_RETRY_TIME_DEV: float = Field(default=0.1, description="Dev first retry delay (s)")
    REDIS_INITIAL_RETRY_TIME_PROD: float = Field(default=0.3, description="Prod first retry delay (s)")

    RETRY_MAX_DELAY: float = Field(default=5.0, description="Upper bound for connect retry delay (s)")

    # Session settings
    SESSION_TTL: int = Field(default=SESSION_TTL_SECONDS, description="Active session TTL (s)")
    SESSION_POST_LOGOUT_TTL: int = Field(
        default=POST_LOGOUT_TTL_SECONDS, description="Closed session TTL (s)"
    )
    RECENT_ACTIVITY_MAX: int = Field(
        default=RECENT_ACTIVITY_MAX_ENTRIES, ge=1, description="Recent activity entries kept per user"
    )
    RECENT_ACTIVITY_TTL: int = Field(
        default=RECENT_ACTIVITY_TTL_SECONDS, description="Recent activity list TTL (s)"
    )
    STATS_RETENTION_DAYS: int = Field(
        default=STATS_RETENTION_DAYS, ge=1, description="Days of daily stats kept"
    )

    # Topics
    USER_EVENTS_TOPIC: str = Field(default=TOPIC_USER_EVENTS, description="User events topic")
    WEBSOCKET_TOPIC: str = Field(default=TOPIC_WEBSOCKET, description="Realtime channel topic")

    # Coordination settings
    LOCK_DEFAULT_TTL: int = Field(default=30, ge=1, description="Default lock TTL (s)")
    RATE_LIMIT_DEFAULT: int = Field(default=100, ge=1, description="Requests per window")
    RATE_LIMIT_WINDOW: int = Field(default=3600, ge=1, description="Rate limit window (s)")

    # Realtime channel settings
    HEARTBEAT_INTERVAL: float = Field(default=1.0, gt=0, description="Heartbeat interval (s)")

    # Logging settings
    LOG_LEVEL: str | None = Field(
        default=None, description="Logging level (defaults to DEBUG in development, INFO in production)"
    )
    LOG_FORMAT: Literal["json", "console"] | None = Field(
        default=None, description="Log output format (defaults to console in development)"
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        if v is None:
            return v
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("KAFKA_BROKERS")
    @classmethod
    def validate_brokers(cls, v):
        """Reject an empty broker list."""
        brokers = [b.strip() for b in v.split(",") if b.strip()]
        if not brokers:
            raise ValueError("KAFKA_BROKERS must name at least one broker")
        return ",".join(brokers)

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == Environment.PRODUCTION

    @property
    def kafka_brokers(self) -> list[str]:
        """Bootstrap servers as a list."""
        return self.KAFKA_BROKERS.split(",")

    @property
    def kafka_security_protocol(self) -> str:
        """Map TLS/SASL flags to the Kafka security protocol name."""
        sasl = self.KAFKA_SASL_USERNAME is not None and self.KAFKA_SASL_PASSWORD is not None
        if sasl:
            return "SASL_SSL" if self.KAFKA_SSL else "SASL_PLAINTEXT"
        return "SSL" if self.KAFKA_SSL else "PLAINTEXT"

    @property
    def log_level(self) -> str:
        return self.LOG_LEVEL or ("DEBUG" if self.is_development else "INFO")

    @property
    def log_format(self) -> str:
        return self.LOG_FORMAT or ("console" if self.is_development else "json")

    def connection_profile(self, backend: Backend) -> ConnectionProfile:
        """
        Build the connection profile for a backend in the current mode.

        Development: short timeout, few attempts, degrade on failure.
        Production: longer timeout, more attempts, raise on failure.
        """
        dev = self.is_development
        if backend is Backend.CACHE:
            timeout = self.REDIS_CONNECT_TIMEOUT_DEV if dev else self.REDIS_CONNECT_TIMEOUT_PROD
            attempts = self.REDIS_RETRIES_DEV if dev else self.REDIS_RETRIES_PROD
            backoff = self.REDIS_INITIAL_RETRY_TIME_DEV if dev else self.REDIS_INITIAL_RETRY_TIME_PROD
        else:
            timeout = self.KAFKA_CONNECTION_TIMEOUT_DEV if dev else self.KAFKA_CONNECTION_TIMEOUT_PROD
            attempts = self.KAFKA_RETRIES_DEV if dev else self.KAFKA_RETRIES_PROD
            backoff = self.KAFKA_INITIAL_RETRY_TIME_DEV if dev else self.KAFKA_INITIAL_RETRY_TIME_PROD

        return ConnectionProfile(
            timeout=timeout,
            attempts=attempts,
            initial_backoff=backoff,
            max_backoff=self.RETRY_MAX_DELAY,
            fail_fast=not dev,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables
    )


# Process-level settings instance for the bootstrap code
_settings: Settings | None = None


def _load() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError.from_exception(
            e, message=f"Invalid configuration: {e.error_count()} error(s)", errors=e.errors(include_url=False)
        ) from e


def get_settings() -> Settings:
    """
    Get the process-level settings instance.

    STAGE-0.1: Settings initialization

    Components never call this themselves; the bootstrap passes the result
    into ServiceContainer (or directly into each component).

    Raises:
        ConfigurationError: Environment or .env values are invalid
    """
    global _settings

    if _settings is None:
        _settings = _load()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = _load()
    return _settings
