"""Identity discovery: resolve ``user@domain`` handles to ActivityPub actors."""

import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from fedifetch.cache.lru import BoundedCache, CacheStats
from fedifetch.discovery.models import ActorDescriptor, WebFingerDocument
from fedifetch.discovery.state_machine import DiscoveryStateMachine
from fedifetch.errors import FediFetchError, NoActorLinkError
from fedifetch.fetch.client import HttpInvoker
from fedifetch.fetch.constants import ACCEPT_ACTIVITYPUB, ACCEPT_JRD
from fedifetch.fetch.dedup import InFlightDeduplicator
from fedifetch.validation import normalize_handle


logger = structlog.get_logger()


def webfinger_url(user: str, domain: str) -> str:
    """Build the WebFinger lookup URL for a normalized handle."""
    return f"https://{domain}/.well-known/webfinger?resource=acct:{user}@{domain}"


@dataclass(frozen=True)
class DiscoveryCacheStats:
    """Statistics for the discovery caches."""

    webfinger: CacheStats
    actors: CacheStats

    def to_dict(self) -> dict[str, int]:
        """Entry counts keyed by cache name."""
        return {
            "webfinger_entries": self.webfinger.size,
            "actor_entries": self.actors.size,
        }


class IdentityDiscoveryClient:
    """Resolves handles through WebFinger and fetches the actor document.

    Successful resolutions are cached by normalized handle; failures are
    never cached. Each discovery runs through a ``DiscoveryStateMachine`` so
    the sequence of steps is explicit and logged.
    """

    def __init__(
        self,
        invoker: HttpInvoker,
        dedup: InFlightDeduplicator,
        *,
        cache_ttl_seconds: float = 300.0,
        cache_max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the discovery client.

        Args:
            invoker: HTTP invoker used for every request.
            dedup: Coalesces concurrent lookups of the same URL.
            cache_ttl_seconds: Lifetime of cached documents and actors.
            cache_max_size: Maximum entries per cache.
            clock: Monotonic clock for cache expiry.
        """
        self._invoker = invoker
        self._dedup = dedup
        self._webfinger_cache: BoundedCache[str, WebFingerDocument] = BoundedCache(
            max_size=cache_max_size, ttl_seconds=cache_ttl_seconds, clock=clock
        )
        self._actor_cache: BoundedCache[str, ActorDescriptor] = BoundedCache(
            max_size=cache_max_size, ttl_seconds=cache_ttl_seconds, clock=clock
        )
        self._log = logger.bind(component="discovery")

    @staticmethod
    def normalize_handle(handle: str) -> str:
        """Return the canonical ``user@domain`` form of a handle.

        Raises:
            InvalidIdentifierError: If the handle is malformed.
        """
        user, domain = normalize_handle(handle)
        return f"{user}@{domain}"

    def discover_actor(self, handle: str) -> ActorDescriptor:
        """Resolve a handle to its actor document.

        Args:
            handle: ``user@domain`` or ``@user@domain``.

        Returns:
            The actor.

        Raises:
            InvalidIdentifierError: If the handle is malformed.
            NoActorLinkError: If the WebFinger document has no actor link.
            FediFetchError: Any error raised while fetching.
        """
        machine = DiscoveryStateMachine(handle)
        try:
            normalized = self.normalize_handle(handle)

            machine.to_cache_check()
            cached = self._actor_cache.get(normalized)
            if cached is not None:
                self._log.debug("discovery_cache_hit", handle=normalized)
                machine.to_done()
                return cached

            machine.to_discovery_lookup()
            document = self._lookup(normalized)

            machine.to_extracting_actor_link()
            actor_url = self._extract_actor_link(normalized, document)

            machine.to_fetching_actor()
            actor = self._fetch_actor(actor_url)

        except FediFetchError as e:
            machine.to_failed()
            self._log.warning(
                "discovery_failed",
                handle=handle,
                state=machine.history[-2].value,
                error_class=e.error_class.value,
                error=e.message,
            )
            raise

        self._actor_cache.set(normalized, actor)
        machine.to_done()
        self._log.info("actor_discovered", handle=normalized, actor_id=actor.id)
        return actor

    def resolve_actor_url(self, handle: str) -> str:
        """Resolve a handle to its actor URL without fetching the actor.

        Raises:
            InvalidIdentifierError: If the handle is malformed.
            NoActorLinkError: If the WebFinger document has no actor link.
        """
        normalized = self.normalize_handle(handle)
        cached = self._actor_cache.get(normalized)
        if cached is not None:
            return cached.id
        return self._extract_actor_link(normalized, self._lookup(normalized))

    def lookup(self, handle: str) -> WebFingerDocument:
        """Fetch (or return the cached) WebFinger document for a handle."""
        return self._lookup(self.normalize_handle(handle))

    def clear_cache(self) -> None:
        """Drop every cached WebFinger document and actor."""
        self._webfinger_cache.clear()
        self._actor_cache.clear()
        self._log.info("discovery_cache_cleared")

    def cache_stats(self) -> DiscoveryCacheStats:
        """Return statistics for both discovery caches."""
        return DiscoveryCacheStats(
            webfinger=self._webfinger_cache.stats(),
            actors=self._actor_cache.stats(),
        )

    def _lookup(self, normalized: str) -> WebFingerDocument:
        cached = self._webfinger_cache.get(normalized)
        if cached is not None:
            return cached

        user, domain = normalized.split("@", 1)
        url = webfinger_url(user, domain)
        self._log.info("webfinger_lookup", handle=normalized, url=url)

        document: WebFingerDocument = self._dedup.dedupe(
            "GET",
            url,
            lambda: self._invoker.invoke(url, WebFingerDocument, accept=ACCEPT_JRD),
        )
        self._webfinger_cache.set(normalized, document)
        return document

    @staticmethod
    def _extract_actor_link(normalized: str, document: WebFingerDocument) -> str:
        actor_url = document.actor_link()
        if actor_url is None:
            msg = f"No ActivityPub actor URL found for {normalized}"
            raise NoActorLinkError(msg, details={"subject": document.subject})
        return actor_url

    def _fetch_actor(self, actor_url: str) -> ActorDescriptor:
        self._log.info("actor_fetch", url=actor_url)
        return self._dedup.dedupe(
            "GET",
            actor_url,
            lambda: self._invoker.invoke(
                actor_url, ActorDescriptor, accept=ACCEPT_ACTIVITYPUB
            ),
        )
