"""Error types for the remote fetch layer."""

from enum import Enum
from typing import Any


class FetchErrorClass(str, Enum):
    """Classification of fetch-layer errors for retry decisions and metrics.

    - INVALID_INPUT: Malformed handle, domain, or parameter (never retried)
    - UNSAFE_TARGET: URL points at non-public network space (never retried)
    - BLOCKED_INSTANCE: Host is on the configured blocklist (never retried)
    - NETWORK_TIMEOUT: Request exceeded its deadline
    - CONNECTION_ERROR: Transport failure (DNS, refused, reset, TLS)
    - HTTP_STATUS: Non-2xx/304 response status
    - RESPONSE_SIZE_EXCEEDED: Body larger than the configured ceiling
    - SCHEMA_VALIDATION: Remote payload does not match the expected shape
    - MISSING_FACET: Remote actor lacks the requested link or collection
    - INSTANCE_UNAVAILABLE: Every instance metadata endpoint failed
    """

    INVALID_INPUT = "INVALID_INPUT"
    UNSAFE_TARGET = "UNSAFE_TARGET"
    BLOCKED_INSTANCE = "BLOCKED_INSTANCE"
    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    HTTP_STATUS = "HTTP_STATUS"
    RESPONSE_SIZE_EXCEEDED = "RESPONSE_SIZE_EXCEEDED"
    SCHEMA_VALIDATION = "SCHEMA_VALIDATION"
    MISSING_FACET = "MISSING_FACET"
    INSTANCE_UNAVAILABLE = "INSTANCE_UNAVAILABLE"


class FediFetchError(Exception):
    """Base exception for the fetch layer.

    Provides structured error information for logging and for the
    presentation layer that consumes this package.
    """

    error_class: FetchErrorClass = FetchErrorClass.CONNECTION_ERROR

    def __init__(
        self,
        message: str,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            url: URL being fetched when the error occurred, if any.
            details: Additional structured error details.
        """
        super().__init__(message)
        self.message = message
        self.url = url
        self.details = details or {}

    @property
    def hint(self) -> str | None:
        """User-facing suggestion for resolving this error."""
        from fedifetch.hints import get_error_hint

        return get_error_hint(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "error_class": self.error_class.value,
            "message": self.message,
            "url": self.url,
            "details": self.details,
        }


class InvalidIdentifierError(FediFetchError):
    """Actor handle is not of the form ``user@domain``."""

    error_class = FetchErrorClass.INVALID_INPUT


class InvalidDomainError(FediFetchError):
    """Instance domain is malformed."""

    error_class = FetchErrorClass.INVALID_INPUT


class InvalidParameterError(FediFetchError):
    """A numeric or enumerated argument is out of range."""

    error_class = FetchErrorClass.INVALID_INPUT


class UnsafeTargetError(FediFetchError):
    """URL resolves to, or names, a non-public network target."""

    error_class = FetchErrorClass.UNSAFE_TARGET


class CursorOriginError(UnsafeTargetError):
    """Pagination cursor points outside the origin of the collection."""


class BlockedInstanceError(FediFetchError):
    """Host is on the instance blocklist."""

    error_class = FetchErrorClass.BLOCKED_INSTANCE

    def __init__(self, domain: str, reason: str, url: str | None = None) -> None:
        super().__init__(
            f'Access to instance "{domain}" is blocked: {reason}',
            url=url,
            details={"domain": domain, "reason": reason},
        )
        self.domain = domain
        self.reason = reason


class TransportError(FediFetchError):
    """Connection-level failure (DNS, refused, reset, TLS)."""

    error_class = FetchErrorClass.CONNECTION_ERROR


class FetchTimeoutError(TransportError, TimeoutError):
    """Request exceeded its deadline."""

    error_class = FetchErrorClass.NETWORK_TIMEOUT


class HttpStatusError(FediFetchError):
    """Response carried a status other than 2xx or a usable 304."""

    error_class = FetchErrorClass.HTTP_STATUS

    def __init__(
        self,
        status_code: int,
        url: str | None = None,
        retry_after: int | None = None,
    ) -> None:
        super().__init__(
            f"HTTP {status_code}",
            url=url,
            details={"status_code": status_code, "retry_after": retry_after},
        )
        self.status_code = status_code
        self.retry_after = retry_after


class ResponseTooLargeError(FediFetchError):
    """Response body exceeds the configured size ceiling."""

    error_class = FetchErrorClass.RESPONSE_SIZE_EXCEEDED

    def __init__(self, size: int, limit: int, url: str | None = None) -> None:
        super().__init__(
            f"Response too large: {size} bytes (max: {limit} bytes)",
            url=url,
            details={"size": size, "limit": limit},
        )
        self.size = size
        self.limit = limit


class SchemaValidationError(FediFetchError):
    """Remote payload failed deserialization or validation.

    Attributes:
        errors: Structured validation errors as reported by pydantic.
    """

    error_class = FetchErrorClass.SCHEMA_VALIDATION

    def __init__(
        self,
        message: str,
        url: str | None = None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        self.errors = errors or []
        super().__init__(
            message,
            url=url,
            details={"error_count": len(self.errors)},
        )


class NoActorLinkError(FediFetchError):
    """Discovery document has no ActivityPub ``self`` link."""

    error_class = FetchErrorClass.MISSING_FACET


class MissingCollectionError(FediFetchError):
    """Actor does not advertise the requested collection."""

    error_class = FetchErrorClass.MISSING_FACET


class InstanceUnavailableError(FediFetchError):
    """No instance metadata endpoint produced a usable document.

    Attributes:
        failures: Mapping of endpoint URL to the error it raised.
    """

    error_class = FetchErrorClass.INSTANCE_UNAVAILABLE

    def __init__(self, domain: str, failures: dict[str, FediFetchError]) -> None:
        super().__init__(
            f"Failed to fetch instance information for {domain}",
            details={
                "domain": domain,
                "failures": {
                    endpoint: error.error_class.value
                    for endpoint, error in failures.items()
                },
            },
        )
        self.domain = domain
        self.failures = failures


RETRYABLE_ERROR_CLASSES = frozenset(
    {
        FetchErrorClass.NETWORK_TIMEOUT,
        FetchErrorClass.CONNECTION_ERROR,
        FetchErrorClass.HTTP_STATUS,
    }
)
