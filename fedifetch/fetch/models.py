"""Data models for the HTTP fetch layer."""

import random
from collections.abc import Callable
from typing import Annotated, Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from fedifetch.errors import RETRYABLE_ERROR_CLASSES, FediFetchError


T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    ``max_attempts`` counts the first attempt. The delay before attempt
    ``n + 1`` is ``min(base_delay_ms * 2 ** (n - 1) + jitter, max_delay_ms)``
    where jitter is uniform in ``[0, jitter_factor]`` of the exponential term.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: Annotated[int, Field(ge=1, le=10)] = 3
    base_delay_ms: Annotated[int, Field(ge=0, le=60000)] = 1000
    max_delay_ms: Annotated[int, Field(ge=0, le=300000)] = 30000
    jitter_factor: Annotated[float, Field(ge=0.0, le=1.0)] = 0.1

    def should_retry(self, error: FediFetchError, attempt: int) -> bool:
        """Determine if a failed attempt should be retried.

        Args:
            error: The error raised by the attempt.
            attempt: Attempt number that failed (1-indexed).

        Returns:
            True if another attempt is allowed and the error is transient.
        """
        if attempt >= self.max_attempts:
            return False
        return error.error_class in RETRYABLE_ERROR_CLASSES

    def get_delay_ms(
        self,
        attempt: int,
        rand: Callable[[], float] = random.random,
    ) -> float:
        """Calculate the delay after a failed attempt.

        Args:
            attempt: Attempt number that failed (1-indexed).
            rand: Source of uniform values in [0, 1).

        Returns:
            Delay in milliseconds, never above ``max_delay_ms``.
        """
        exponential = self.base_delay_ms * (2 ** (attempt - 1))
        jitter = exponential * self.jitter_factor * rand()
        return min(exponential + jitter, float(self.max_delay_ms))


class ConditionalCacheRecord(BaseModel):
    """Revalidation state stored for a previously fetched URL."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    payload: Any
    etag: str | None = None
    last_modified: str | None = None
    cached_at: float = Field(description="Monotonic time the record was stored")

    @property
    def conditional_headers(self) -> dict[str, str]:
        """Headers that ask the server to confirm the payload is unchanged."""
        headers: dict[str, str] = {}
        if self.etag:
            headers["If-None-Match"] = self.etag
        if self.last_modified:
            headers["If-Modified-Since"] = self.last_modified
        return headers


class FetchedDocument(BaseModel, Generic[T]):
    """A validated remote document with fetch provenance."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    url: str = Field(description="Final URL after redirects")
    value: T
    status_code: int = Field(ge=100, le=599)
    revalidated: bool = Field(
        default=False, description="Served from the conditional cache after a 304"
    )
    attempts: int = Field(default=1, ge=1)
