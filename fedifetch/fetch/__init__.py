"""Resilient HTTP fetch layer.

Provides the outbound GET path used by every remote lookup:
- URL safety validation and blocklist checks before each attempt
- Retry with exponential backoff and jitter
- ETag/Last-Modified revalidation
- Response size and deadline enforcement
- Coalescing of concurrent identical requests
"""

from fedifetch.fetch.cache import ConditionalCache
from fedifetch.fetch.client import HttpInvoker, parse_retry_after
from fedifetch.fetch.config import FetchConfig
from fedifetch.fetch.dedup import InFlightDeduplicator
from fedifetch.fetch.metrics import FetchMetrics
from fedifetch.fetch.models import ConditionalCacheRecord, FetchedDocument, RetryPolicy
from fedifetch.fetch.redact import redact_headers, redact_url_credentials


__all__ = [
    "ConditionalCache",
    "ConditionalCacheRecord",
    "FetchConfig",
    "FetchMetrics",
    "FetchedDocument",
    "HttpInvoker",
    "InFlightDeduplicator",
    "RetryPolicy",
    "parse_retry_after",
    "redact_headers",
    "redact_url_credentials",
]
