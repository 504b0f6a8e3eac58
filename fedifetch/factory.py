"""Wiring of the shared fetch components into a ``RemoteDataClient``."""

import time
from collections.abc import Callable

import httpx
import structlog

from fedifetch.discovery.client import IdentityDiscoveryClient
from fedifetch.fetch.cache import ConditionalCache
from fedifetch.fetch.client import HttpInvoker
from fedifetch.fetch.dedup import InFlightDeduplicator
from fedifetch.fetch.metrics import FetchMetrics
from fedifetch.remote.client import RemoteDataClient
from fedifetch.safety.blocklist import InstanceBlocklist
from fedifetch.safety.validator import Resolver, UrlSafetyValidator
from fedifetch.settings import AppSettings, get_settings


logger = structlog.get_logger()


def create_remote_client(
    settings: AppSettings | None = None,
    *,
    transport: httpx.BaseTransport | None = None,
    resolver: Resolver | None = None,
    sleep: Callable[[float], None] | None = None,
    clock: Callable[[], float] = time.monotonic,
    blocklist: InstanceBlocklist | None = None,
) -> RemoteDataClient:
    """Create a remote client with one instance of each shared component.

    Args:
        settings: Settings; read from the environment if omitted.
        transport: httpx transport override.
        resolver: DNS resolver override for the URL safety validator.
        sleep: Backoff sleep override.
        clock: Monotonic clock for caches and deadlines.
        blocklist: Pre-built blocklist; built from settings if omitted.

    Returns:
        A ready client. Close it (or use it as a context manager) to release
        the connection pool.
    """
    settings = settings or get_settings()
    config = settings.to_fetch_config()

    if blocklist is None:
        blocklist = InstanceBlocklist(
            settings.blocked_instances, enabled=settings.blocklist_enabled
        )

    metrics = FetchMetrics()
    invoker = HttpInvoker(
        config,
        UrlSafetyValidator(resolver=resolver),
        blocklist,
        cache=ConditionalCache(max_size=config.cache_max_size, clock=clock),
        metrics=metrics,
        transport=transport,
        sleep=sleep or time.sleep,
        clock=clock,
    )
    dedup = InFlightDeduplicator(metrics=metrics)
    discovery = IdentityDiscoveryClient(
        invoker,
        dedup,
        cache_ttl_seconds=config.cache_ttl_seconds,
        cache_max_size=config.cache_max_size,
        clock=clock,
    )

    logger.bind(component="factory").info(
        "remote_client_created",
        timeout_ms=config.timeout_ms,
        max_attempts=config.retry_policy.max_attempts,
        blocklist_enabled=blocklist.enabled,
        blocked_instances=len(blocklist.get_blocked_instances()),
    )
    return RemoteDataClient(
        invoker,
        discovery,
        dedup,
        batch_concurrency=settings.batch_concurrency,
        cache_ttl_seconds=config.cache_ttl_seconds,
        cache_max_size=config.cache_max_size,
        clock=clock,
    )
