"""Application settings powered by Pydantic BaseSettings."""

import logging
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fedifetch.fetch.config import FetchConfig
from fedifetch.fetch.constants import (
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_USER_AGENT,
)
from fedifetch.fetch.models import RetryPolicy


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        min_length=1,
        max_length=500,
        validation_alias="USER_AGENT",
    )
    request_timeout_ms: int = Field(
        default=DEFAULT_TIMEOUT_MS,
        ge=100,
        le=300_000,
        validation_alias="REQUEST_TIMEOUT",
    )
    max_response_size: int = Field(
        default=DEFAULT_MAX_RESPONSE_SIZE_BYTES,
        ge=1024,
        le=100 * 1024 * 1024,
        validation_alias="MAX_RESPONSE_SIZE",
    )
    max_retries: int = Field(default=3, ge=1, le=10, validation_alias="MAX_RETRIES")
    retry_base_delay_ms: int = Field(
        default=1000, ge=0, le=60_000, validation_alias="RETRY_BASE_DELAY"
    )
    retry_max_delay_ms: int = Field(
        default=30_000, ge=0, le=300_000, validation_alias="RETRY_MAX_DELAY"
    )
    cache_ttl_ms: int = Field(default=300_000, ge=0, validation_alias="CACHE_TTL")
    cache_max_size: int = Field(
        default=1000, ge=1, le=1_000_000, validation_alias="CACHE_MAX_SIZE"
    )
    blocklist_enabled: bool = Field(default=True, validation_alias="BLOCKLIST_ENABLED")
    blocked_instances_raw: str = Field(default="", validation_alias="BLOCKED_INSTANCES")
    batch_concurrency: int = Field(
        default=5, ge=1, le=50, validation_alias="BATCH_CONCURRENCY"
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: Literal["json", "console"] = Field(
        default="json", validation_alias="LOG_FORMAT"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept standard logging level names in any case."""
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            msg = f"Unknown log level '{v}'"
            raise ValueError(msg)
        return level

    @property
    def blocked_instances(self) -> list[str]:
        """Hostnames from the comma-separated ``BLOCKED_INSTANCES``."""
        return [
            domain.strip().lower()
            for domain in self.blocked_instances_raw.split(",")
            if domain.strip()
        ]

    @property
    def log_level_number(self) -> int:
        """Numeric logging level."""
        return logging.getLevelNamesMapping()[self.log_level]

    def to_retry_policy(self) -> RetryPolicy:
        """Build the retry policy."""
        return RetryPolicy(
            max_attempts=self.max_retries,
            base_delay_ms=self.retry_base_delay_ms,
            max_delay_ms=self.retry_max_delay_ms,
        )

    def to_fetch_config(self) -> FetchConfig:
        """Build the fetch configuration."""
        return FetchConfig(
            user_agent=self.user_agent,
            timeout_ms=self.request_timeout_ms,
            max_response_size_bytes=self.max_response_size,
            retry_policy=self.to_retry_policy(),
            cache_ttl_ms=self.cache_ttl_ms,
            cache_max_size=self.cache_max_size,
        )


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
