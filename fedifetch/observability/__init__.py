"""Observability: structured logging."""

from fedifetch.observability.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
    redact_urls,
)


__all__ = [
    "bind_request_context",
    "clear_request_context",
    "configure_logging",
    "get_logger",
    "redact_urls",
]
