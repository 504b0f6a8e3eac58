"""Configuration model for the HTTP fetch layer."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fedifetch.fetch.constants import (
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_USER_AGENT,
)
from fedifetch.fetch.models import RetryPolicy
from fedifetch.fetch.redact import SENSITIVE_HEADERS


class FetchConfig(BaseModel):
    """Configuration for outbound requests.

    Central configuration for every remote fetch: deadline, body ceiling,
    retry policy, cache sizing and extra static headers.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        DEFAULT_USER_AGENT
    )
    timeout_ms: Annotated[int, Field(ge=100, le=300_000)] = DEFAULT_TIMEOUT_MS
    max_response_size_bytes: Annotated[
        int, Field(ge=1024, le=100 * 1024 * 1024)
    ] = DEFAULT_MAX_RESPONSE_SIZE_BYTES
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    cache_ttl_ms: Annotated[int, Field(ge=0)] = 300_000
    cache_max_size: Annotated[int, Field(ge=1, le=1_000_000)] = 1000
    extra_headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("extra_headers")
    @classmethod
    def validate_no_auth_headers(cls, v: dict[str, str]) -> dict[str, str]:
        """Ensure no credentials are stored in config."""
        for key in v:
            if key.lower() in SENSITIVE_HEADERS:
                msg = f"Header '{key}' must not be stored in fetch config"
                raise ValueError(msg)
        return v

    @property
    def timeout_seconds(self) -> float:
        """Deadline in seconds."""
        return self.timeout_ms / 1000.0

    @property
    def cache_ttl_seconds(self) -> float:
        """Cache TTL in seconds."""
        return self.cache_ttl_ms / 1000.0
