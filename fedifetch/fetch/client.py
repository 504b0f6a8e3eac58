"""Resilient HTTP invoker with SSRF checks, retries and revalidation."""

import json
import random
import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from io import BytesIO
from typing import Any, TypeVar
from urllib.parse import urljoin

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from fedifetch.errors import (
    FediFetchError,
    FetchTimeoutError,
    HttpStatusError,
    ResponseTooLargeError,
    SchemaValidationError,
    TransportError,
    UnsafeTargetError,
)
from fedifetch.fetch.cache import ConditionalCache
from fedifetch.fetch.config import FetchConfig
from fedifetch.fetch.constants import (
    ACCEPT_ACTIVITYPUB,
    DEFAULT_CHUNK_SIZE,
    HTTP_STATUS_NOT_MODIFIED,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    MAX_REDIRECTS,
    REDIRECT_STATUSES,
)
from fedifetch.fetch.metrics import FetchMetrics
from fedifetch.fetch.models import ConditionalCacheRecord, FetchedDocument
from fedifetch.fetch.redact import redact_headers, redact_url_credentials
from fedifetch.safety.blocklist import InstanceBlocklist
from fedifetch.safety.validator import UrlSafetyValidator


logger = structlog.get_logger()

T = TypeVar("T")


def parse_retry_after(value: str | None) -> int | None:
    """Parse a Retry-After header value.

    Args:
        value: Header value (seconds or HTTP date).

    Returns:
        Seconds to wait, or None if not parseable.
    """
    if not value:
        return None

    value = value.strip()
    if value.isdigit():
        return int(value)

    try:
        dt = parsedate_to_datetime(value)
    except (ValueError, TypeError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return max(0, int((dt - datetime.now(UTC)).total_seconds()))


class _Response:
    """Status, headers and body of one HTTP exchange."""

    __slots__ = ("body", "headers", "status_code")

    def __init__(self, status_code: int, headers: httpx.Headers, body: bytes) -> None:
        self.status_code = status_code
        self.headers = headers
        self.body = body


class HttpInvoker:
    """Outbound GET with safety checks, retries and conditional caching.

    Every attempt, and every redirect hop within an attempt:
    - validates the URL against non-public network space
    - checks the instance blocklist
    - sends stored ETag/Last-Modified tokens for the URL
    - enforces the deadline and the response size ceiling

    Transient failures (timeouts, transport errors, non-2xx statuses) are
    retried with exponential backoff and jitter. Policy, size and schema
    failures surface immediately.
    """

    def __init__(
        self,
        config: FetchConfig,
        validator: UrlSafetyValidator,
        blocklist: InstanceBlocklist,
        *,
        cache: ConditionalCache | None = None,
        metrics: FetchMetrics | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        rand: Callable[[], float] = random.random,
    ) -> None:
        """Initialize the invoker.

        Args:
            config: Fetch configuration.
            validator: URL safety validator run before every attempt.
            blocklist: Instance blocklist checked before every attempt.
            cache: Conditional cache; a private one is created if omitted.
            metrics: Metrics sink; a private one is created if omitted.
            transport: httpx transport override (tests use MockTransport).
            sleep: Called with the backoff delay in seconds.
            clock: Monotonic clock for the body-streaming deadline.
            rand: Jitter source.
        """
        self._config = config
        self._validator = validator
        self._blocklist = blocklist
        self._cache = cache or ConditionalCache(max_size=config.cache_max_size)
        self._metrics = metrics or FetchMetrics()
        self._sleep = sleep
        self._clock = clock
        self._rand = rand
        self._adapters: dict[Any, TypeAdapter[Any]] = {}
        self._client = httpx.Client(
            transport=transport,
            timeout=httpx.Timeout(config.timeout_seconds),
            follow_redirects=False,
        )
        self._log = logger.bind(component="fetch")

    @property
    def config(self) -> FetchConfig:
        """The fetch configuration."""
        return self._config

    @property
    def metrics(self) -> FetchMetrics:
        """Metrics collected by this invoker."""
        return self._metrics

    @property
    def cache(self) -> ConditionalCache:
        """The conditional cache."""
        return self._cache

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def invoke(
        self,
        url: str,
        schema: type[T] | Any,
        *,
        accept: str = ACCEPT_ACTIVITYPUB,
        headers: Mapping[str, str] | None = None,
    ) -> T:
        """Fetch a URL and return the validated payload.

        Args:
            url: Absolute URL.
            schema: Any type pydantic can validate against.
            accept: Accept header value.
            headers: Additional request headers.

        Returns:
            The validated payload.
        """
        return self.fetch(url, schema, accept=accept, headers=headers).value

    def fetch(
        self,
        url: str,
        schema: type[T] | Any,
        *,
        accept: str = ACCEPT_ACTIVITYPUB,
        headers: Mapping[str, str] | None = None,
    ) -> FetchedDocument[T]:
        """Fetch a URL with retries and return the payload with provenance.

        Args:
            url: Absolute URL.
            schema: Any type pydantic can validate against.
            accept: Accept header value.
            headers: Additional request headers.

        Returns:
            The validated document.

        Raises:
            FediFetchError: The last error once retries are exhausted, or the
                first non-retryable error.
        """
        start_time_ns = time.perf_counter_ns()
        adapter = self._get_adapter(schema)
        policy = self._config.retry_policy
        log = self._log.bind(url=redact_url_credentials(url))

        attempt = 0
        while True:
            attempt += 1
            try:
                document = self._execute_single(
                    url=url,
                    adapter=adapter,
                    accept=accept,
                    extra_headers=headers,
                    attempt=attempt,
                    log=log,
                )
            except FediFetchError as e:
                if not policy.should_retry(e, attempt):
                    self._metrics.record_failure(e.error_class)
                    log.warning(
                        "fetch_failed",
                        attempts=attempt,
                        error_class=e.error_class.value,
                        error=e.message,
                    )
                    raise

                delay_ms = self._get_delay_ms(e, attempt)
                self._metrics.record_retry()
                log.debug(
                    "retry_attempt",
                    attempt=attempt,
                    delay_ms=round(delay_ms, 2),
                    max_attempts=policy.max_attempts,
                    error_class=e.error_class.value,
                )
                self._sleep(delay_ms / 1000.0)
                continue

            duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
            self._metrics.record_duration(duration_ms)
            log.info(
                "fetch_complete",
                status_code=document.status_code,
                revalidated=document.revalidated,
                attempts=attempt,
                duration_ms=round(duration_ms, 2),
            )
            return document

    def _get_adapter(self, schema: Any) -> TypeAdapter[Any]:
        try:
            return self._adapters[schema]
        except KeyError:
            adapter: TypeAdapter[Any] = TypeAdapter(schema)
            self._adapters[schema] = adapter
            return adapter
        except TypeError:
            # unhashable schema
            return TypeAdapter(schema)

    def _get_delay_ms(self, error: FediFetchError, attempt: int) -> float:
        """Backoff delay, stretched to honor Retry-After within the cap."""
        policy = self._config.retry_policy
        delay_ms = policy.get_delay_ms(attempt, self._rand)
        if isinstance(error, HttpStatusError) and error.retry_after:
            requested = min(error.retry_after * 1000.0, float(policy.max_delay_ms))
            delay_ms = max(delay_ms, requested)
        return delay_ms

    def _build_headers(
        self,
        accept: str,
        extra_headers: Mapping[str, str] | None,
        record: ConditionalCacheRecord | None,
    ) -> dict[str, str]:
        headers: dict[str, str] = {
            "User-Agent": self._config.user_agent,
            "Accept": accept,
        }
        headers.update(self._config.extra_headers)
        if extra_headers:
            headers.update(extra_headers)
        if record is not None:
            headers.update(record.conditional_headers)
        return headers

    def _execute_single(
        self,
        url: str,
        adapter: TypeAdapter[Any],
        accept: str,
        extra_headers: Mapping[str, str] | None,
        attempt: int,
        log: structlog.stdlib.BoundLogger,
    ) -> FetchedDocument[Any]:
        """Run one attempt, following redirects manually.

        Args:
            url: URL requested by the caller.
            adapter: Validator for the payload.
            accept: Accept header value.
            extra_headers: Caller-provided headers.
            attempt: Attempt number (1-indexed).
            log: Bound logger.

        Returns:
            The validated document.
        """
        current = url
        for hop in range(MAX_REDIRECTS + 1):
            target = self._validator.validate(current)
            self._blocklist.assert_not_blocked(target.hostname, url=current)

            record = self._cache.get(current)
            headers = self._build_headers(accept, extra_headers, record)
            log.debug(
                "request_start",
                attempt=attempt,
                hop=hop,
                target=redact_url_credentials(current),
                headers=redact_headers(headers),
            )

            response = self._send(current, headers)
            status = response.status_code

            if status in REDIRECT_STATUSES:
                location = response.headers.get("location")
                if not location:
                    raise HttpStatusError(status, url=current)
                current = urljoin(current, location)
                continue

            if status == HTTP_STATUS_NOT_MODIFIED:
                if record is None:
                    raise HttpStatusError(status, url=current)
                self._metrics.record_revalidated()
                return FetchedDocument(
                    url=current,
                    value=self._validate(adapter, record.payload, current),
                    status_code=status,
                    revalidated=True,
                    attempts=attempt,
                )

            if not HTTP_STATUS_OK_MIN <= status < HTTP_STATUS_OK_MAX:
                raise HttpStatusError(
                    status,
                    url=current,
                    retry_after=parse_retry_after(response.headers.get("retry-after")),
                )

            payload = self._decode(response.body, current)
            value = self._validate(adapter, payload, current)
            if self._cache.store(current, payload, response.headers) is None:
                # A record older than this payload must not answer a later 304
                self._cache.invalidate(current)
            return FetchedDocument(
                url=current,
                value=value,
                status_code=status,
                attempts=attempt,
            )

        raise HttpStatusError(status, url=current)

    def _send(self, url: str, headers: dict[str, str]) -> _Response:
        """Send one GET request under the deadline.

        httpx applies its timeout to each socket operation, so a server
        trickling bytes can hold the connection open past the deadline.
        The deadline is checked once the headers arrive and after every
        body chunk; a request is abandoned at the first check it misses.

        Raises:
            FetchTimeoutError: If the deadline passes.
            TransportError: On connection-level failures.
            ResponseTooLargeError: If the body exceeds the ceiling.
            UnsafeTargetError: If httpx cannot parse the URL.
        """
        deadline = self._clock() + self._config.timeout_seconds
        try:
            with self._client.stream("GET", url, headers=headers) as response:
                status = response.status_code
                if self._clock() > deadline:
                    msg = (
                        f"Request timeout after {self._config.timeout_ms}ms "
                        "(headers)"
                    )
                    raise FetchTimeoutError(msg, url=url)
                self._check_declared_size(response, url)

                body = b""
                if HTTP_STATUS_OK_MIN <= status < HTTP_STATUS_OK_MAX:
                    body = self._read_body_with_limit(response, url, deadline)

                self._metrics.record_request(status, len(body))
                return _Response(status, response.headers, body)

        except httpx.TimeoutException as e:
            msg = (
                f"Request timeout after {self._config.timeout_ms}ms "
                f"({type(e).__name__})"
            )
            raise FetchTimeoutError(msg, url=url) from e

        except httpx.InvalidURL as e:
            raise UnsafeTargetError(f"Malformed URL: {e}", url=url) from e

        except httpx.HTTPError as e:
            msg = f"Connection failed: {type(e).__name__}: {e}"
            raise TransportError(msg, url=url) from e

    def _check_declared_size(self, response: httpx.Response, url: str) -> None:
        content_length = response.headers.get("content-length")
        if not content_length or not content_length.strip().isdigit():
            return
        size = int(content_length)
        limit = self._config.max_response_size_bytes
        if size > limit:
            raise ResponseTooLargeError(size, limit, url=url)

    def _read_body_with_limit(
        self,
        response: httpx.Response,
        url: str,
        deadline: float,
    ) -> bytes:
        """Read response body under the size ceiling and the deadline.

        Args:
            response: Streaming HTTP response.
            url: Request URL, for error context.
            deadline: Monotonic time by which the body must be read.

        Returns:
            Response body bytes.
        """
        buffer = BytesIO()
        total_read = 0
        max_size = self._config.max_response_size_bytes

        for chunk in response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
            total_read += len(chunk)
            if total_read > max_size:
                raise ResponseTooLargeError(total_read, max_size, url=url)
            if self._clock() > deadline:
                msg = f"Request timeout after {self._config.timeout_ms}ms (body)"
                raise FetchTimeoutError(msg, url=url)
            buffer.write(chunk)

        return buffer.getvalue()

    @staticmethod
    def _decode(body: bytes, url: str) -> Any:
        try:
            return json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            msg = f"Response is not valid JSON: {e}"
            raise SchemaValidationError(msg, url=url) from e

    @staticmethod
    def _validate(adapter: TypeAdapter[Any], payload: Any, url: str) -> Any:
        try:
            return adapter.validate_python(payload)
        except ValidationError as e:
            errors = e.errors(include_url=False, include_context=False)
            msg = f"Invalid response format: {e.error_count()} validation error(s)"
            raise SchemaValidationError(
                msg, url=url, errors=[dict(error) for error in errors]
            ) from e
