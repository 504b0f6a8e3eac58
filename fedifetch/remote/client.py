"""Client for reading public data from remote fediverse servers."""

import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed, wait
from types import TracebackType
from typing import Any, Self, TypeVar
from urllib.parse import urlsplit

import httpx
import structlog

from fedifetch.cache.lru import BoundedCache
from fedifetch.discovery.client import IdentityDiscoveryClient
from fedifetch.discovery.models import ActorDescriptor
from fedifetch.errors import (
    BlockedInstanceError,
    CursorOriginError,
    FediFetchError,
    InstanceUnavailableError,
    InvalidParameterError,
    MissingCollectionError,
    UnsafeTargetError,
)
from fedifetch.fetch.client import HttpInvoker
from fedifetch.fetch.constants import ACCEPT_ACTIVITYPUB, ACCEPT_JSON
from fedifetch.fetch.dedup import InFlightDeduplicator
from fedifetch.remote.instance import INSTANCE_ENDPOINTS, InstanceEndpoint
from fedifetch.remote.models import (
    BatchItemOutcome,
    BatchResult,
    Collection,
    CollectionPage,
    ContentObject,
    InstanceInfo,
    MastodonStatus,
    MastodonTag,
    PostThread,
    SearchResponse,
    SearchResults,
    ThreadNode,
    UrlConversion,
)
from fedifetch.remote.urls import activitypub_to_web, web_to_activitypub
from fedifetch.validation import (
    validate_domain,
    validate_limit,
    validate_query,
)


logger = structlog.get_logger()

T = TypeVar("T")

SEARCH_TYPES = frozenset({"accounts", "statuses", "hashtags"})

MAX_THREAD_DEPTH = 5
MAX_THREAD_REPLIES = 200
MAX_THREAD_ANCESTORS = 50
# Pages of one replies collection followed before giving up
MAX_REPLY_PAGES = 3


def origin_of(url: str) -> tuple[str, str, int | None]:
    """Return ``(scheme, host, port)`` with the default port made explicit.

    Raises:
        ValueError: If the port is not a number in 0-65535.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    port = parts.port
    if port is None:
        port = {"http": 80, "https": 443}.get(scheme)
    return scheme, (parts.hostname or "").lower(), port


def is_absolute_url(value: str) -> bool:
    """Check if a value is an absolute http(s) URL rather than a token."""
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme.lower() in ("http", "https") and bool(parts.netloc)


def with_params(url: str, **params: Any) -> str:
    """Set query parameters on a URL, skipping ``None`` values."""
    result = httpx.URL(url)
    for key, value in params.items():
        if value is not None:
            result = result.copy_set_param(key, str(value))
    return str(result)


class RemoteDataClient:
    """Reads actors, collections, posts and instance data from remote servers.

    Every request goes through the shared invoker (safety checks, retries,
    revalidation) and the shared deduplicator. Fan-out (instance probes and
    batch windows) runs on short-lived thread pools that are always joined.
    """

    def __init__(
        self,
        invoker: HttpInvoker,
        discovery: IdentityDiscoveryClient,
        dedup: InFlightDeduplicator,
        *,
        batch_concurrency: int = 5,
        cache_ttl_seconds: float = 300.0,
        cache_max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the client.

        Args:
            invoker: HTTP invoker shared by every component.
            discovery: Identity discovery client.
            dedup: In-flight request deduplicator.
            batch_concurrency: Items fetched in parallel per batch window.
            cache_ttl_seconds: Lifetime of cached instance info.
            cache_max_size: Maximum cached instances.
            clock: Monotonic clock for cache expiry.
        """
        if batch_concurrency < 1:
            msg = f"batch_concurrency must be positive, got {batch_concurrency}"
            raise ValueError(msg)

        self._invoker = invoker
        self._discovery = discovery
        self._dedup = dedup
        self._batch_concurrency = batch_concurrency
        self._instance_cache: BoundedCache[str, InstanceInfo] = BoundedCache(
            max_size=cache_max_size, ttl_seconds=cache_ttl_seconds, clock=clock
        )
        self._log = logger.bind(component="remote")

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def discovery(self) -> IdentityDiscoveryClient:
        """The identity discovery client."""
        return self._discovery

    @property
    def invoker(self) -> HttpInvoker:
        """The HTTP invoker."""
        return self._invoker

    def close(self) -> None:
        """Release network resources."""
        self._invoker.close()

    # Actors and collections

    def fetch_actor(self, handle: str) -> ActorDescriptor:
        """Fetch an actor by ``user@domain`` handle."""
        self._log.info("fetch_actor", handle=handle)
        return self._discovery.discover_actor(handle)

    def fetch_outbox(self, handle: str, limit: int = 20) -> Collection:
        """Fetch an actor's outbox collection.

        Args:
            handle: ``user@domain`` handle.
            limit: Page size hint, 1-100.

        Raises:
            InvalidParameterError: If ``limit`` is out of range.
        """
        validate_limit(limit)
        actor = self.fetch_actor(handle)
        self._log.info("fetch_outbox", handle=handle, outbox=actor.outbox, limit=limit)
        return self._get(with_params(actor.outbox, limit=limit), Collection)

    def fetch_outbox_page(
        self,
        handle: str,
        *,
        limit: int = 20,
        cursor: str | None = None,
        min_id: str | None = None,
        max_id: str | None = None,
        since_id: str | None = None,
    ) -> CollectionPage:
        """Fetch one page of an actor's outbox.

        A URL cursor must share scheme, host and port with the outbox; any
        other cursor is an opaque token sent as ``max_id``.

        Args:
            handle: ``user@domain`` handle.
            limit: Page size, 1-100.
            cursor: ``next_cursor``/``prev_cursor`` of an earlier page.
            min_id: Return items newer than this id.
            max_id: Return items older than this id.
            since_id: Return items newer than this id (Mastodon semantics).

        Returns:
            The page with its continuation cursors.

        Raises:
            InvalidParameterError: If ``limit`` is out of range.
            CursorOriginError: If a cursor URL is cross-origin.
        """
        validate_limit(limit)
        actor = self.fetch_actor(handle)
        outbox_url = actor.outbox

        if cursor and is_absolute_url(cursor):
            self._ensure_same_origin(cursor, outbox_url)
            page_url = cursor
        else:
            page_url = with_params(
                outbox_url,
                limit=limit,
                min_id=min_id,
                max_id=max_id or cursor or None,
                since_id=since_id,
            )

        collection = self._get(page_url, Collection)
        total_items = collection.total_items

        if not collection.entries and collection.first is not None and not cursor:
            collection = self._first_page(collection, outbox_url)
            if total_items is None:
                total_items = collection.total_items

        items = collection.entries[:limit]
        next_cursor = collection.next or collection.first_id
        prev_cursor = collection.prev or collection.last_id
        has_more = next_cursor is not None or len(items) == limit

        self._log.info(
            "outbox_page_fetched",
            handle=handle,
            items=len(items),
            has_more=has_more,
        )
        return CollectionPage(
            collection_id=collection.part_of or collection.id,
            items=items,
            total_items=total_items,
            next_cursor=next_cursor,
            prev_cursor=prev_cursor,
            has_more=has_more,
        )

    def fetch_followers(self, handle: str, limit: int = 20) -> Collection:
        """Fetch an actor's followers collection.

        Raises:
            InvalidParameterError: If ``limit`` is out of range.
            MissingCollectionError: If the actor has no followers collection.
        """
        return self._fetch_actor_collection(handle, "followers", limit)

    def fetch_following(self, handle: str, limit: int = 20) -> Collection:
        """Fetch an actor's following collection.

        Raises:
            InvalidParameterError: If ``limit`` is out of range.
            MissingCollectionError: If the actor has no following collection.
        """
        return self._fetch_actor_collection(handle, "following", limit)

    def fetch_object(self, uri: str) -> ContentObject:
        """Fetch an ActivityPub object (post, note, article...)."""
        self._log.info("fetch_object", url=uri)
        return self._get(uri, ContentObject)

    # Threads

    def fetch_post_thread(
        self,
        uri: str,
        *,
        depth: int = 2,
        max_replies: int = 50,
        max_ancestors: int = 10,
    ) -> PostThread:
        """Fetch a post with its ancestors and replies.

        Ancestors are followed through ``inReplyTo`` and returned oldest
        first. Replies are read from the advertised replies collection and
        recursed into while ``depth > 1``. A failure to fetch one ancestor or
        reply is logged and that branch is dropped; only a failure to fetch
        the post itself is raised.

        Args:
            uri: ActivityPub URI of the post.
            depth: Levels of replies to collect (1-5).
            max_replies: Maximum replies collected in total (0-200).
            max_ancestors: Maximum ancestors followed (0-50).

        Raises:
            InvalidParameterError: If a bound is out of range.
        """
        self._check_range("depth", depth, 1, MAX_THREAD_DEPTH)
        self._check_range("max_replies", max_replies, 0, MAX_THREAD_REPLIES)
        self._check_range("max_ancestors", max_ancestors, 0, MAX_THREAD_ANCESTORS)

        root = self.fetch_object(uri)
        seen = {root.id}
        ancestors = self._collect_ancestors(root, max_ancestors, seen)
        budget = [max_replies]
        replies = self._collect_replies(root, depth, budget, seen)

        self._log.info(
            "thread_fetched",
            url=uri,
            ancestors=len(ancestors),
            replies=max_replies - budget[0],
        )
        return PostThread(
            root=root,
            ancestors=ancestors,
            replies=replies,
            total_replies=max_replies - budget[0],
            depth=depth,
        )

    # Instances

    def get_instance_info(self, domain: str) -> InstanceInfo:
        """Fetch metadata for an instance.

        The Mastodon, Misskey and NodeInfo endpoints are probed in parallel;
        the first one in that order that answers with a valid document wins.

        Raises:
            InvalidDomainError: If the domain is malformed.
            UnsafeTargetError: If every probe was rejected by the URL policy.
            BlockedInstanceError: If every probe was rejected by the blocklist.
            InstanceUnavailableError: If every probe failed otherwise.
        """
        valid_domain = validate_domain(domain)

        cached = self._instance_cache.get(valid_domain)
        if cached is not None:
            self._log.debug("instance_cache_hit", domain=valid_domain)
            return cached

        self._log.info("fetch_instance_info", domain=valid_domain)
        outcomes = self._probe_instance(valid_domain)

        failures: dict[str, FediFetchError] = {}
        for endpoint in INSTANCE_ENDPOINTS:
            url = endpoint.url(valid_domain)
            outcome = outcomes[url]
            if isinstance(outcome, FediFetchError):
                failures[url] = outcome
                continue

            info = endpoint.transform(valid_domain, url, outcome)
            self._instance_cache.set(valid_domain, info)
            self._log.info(
                "instance_info_fetched",
                domain=valid_domain,
                endpoint=url,
                software=info.software,
                failed_probes=len(failures),
            )
            return info

        errors = list(failures.values())
        if all(isinstance(e, UnsafeTargetError | BlockedInstanceError) for e in errors):
            raise errors[0]
        raise InstanceUnavailableError(valid_domain, failures)

    def search_instance(
        self,
        domain: str,
        query: str,
        search_type: str = "accounts",
        limit: int = 20,
    ) -> SearchResults:
        """Search an instance through the Mastodon v2 search API.

        Args:
            domain: Instance to query.
            query: Search text.
            search_type: ``accounts``, ``statuses`` or ``hashtags``.
            limit: Maximum results, 1-100.

        Raises:
            InvalidDomainError: If the domain is malformed.
            InvalidParameterError: If the query, type or limit is invalid.
        """
        valid_domain = validate_domain(domain)
        valid_query = validate_query(query)
        if search_type not in SEARCH_TYPES:
            msg = (
                f"Invalid search type '{search_type}': "
                f"expected one of {', '.join(sorted(SEARCH_TYPES))}"
            )
            raise InvalidParameterError(msg)
        validate_limit(limit)

        url = with_params(
            f"https://{valid_domain}/api/v2/search",
            q=valid_query,
            type=search_type,
            limit=limit,
        )
        self._log.info(
            "search_instance",
            domain=valid_domain,
            search_type=search_type,
        )
        response = self._get(url, SearchResponse, accept=ACCEPT_JSON)
        return SearchResults(
            domain=valid_domain,
            query=valid_query,
            search_type=search_type,
            accounts=response.accounts,
            statuses=response.statuses,
            hashtags=response.hashtags,
        )

    def fetch_public_timeline(
        self,
        domain: str,
        *,
        local: bool = False,
        limit: int = 20,
    ) -> list[MastodonStatus]:
        """Fetch the public (or local) timeline of an instance."""
        valid_domain = validate_domain(domain)
        validate_limit(limit)
        url = with_params(
            f"https://{valid_domain}/api/v1/timelines/public",
            local="true" if local else None,
            limit=limit,
        )
        return self._get(url, list[MastodonStatus], accept=ACCEPT_JSON)

    def fetch_trending_hashtags(
        self, domain: str, limit: int = 10
    ) -> list[MastodonTag]:
        """Fetch trending hashtags of an instance."""
        valid_domain = validate_domain(domain)
        validate_limit(limit)
        url = with_params(f"https://{valid_domain}/api/v1/trends/tags", limit=limit)
        return self._get(url, list[MastodonTag], accept=ACCEPT_JSON)

    def fetch_trending_posts(
        self, domain: str, limit: int = 20
    ) -> list[MastodonStatus]:
        """Fetch trending posts of an instance."""
        valid_domain = validate_domain(domain)
        validate_limit(limit)
        url = with_params(f"https://{valid_domain}/api/v1/trends/statuses", limit=limit)
        return self._get(url, list[MastodonStatus], accept=ACCEPT_JSON)

    # Batches

    def batch_fetch_actors(
        self,
        handles: Sequence[str],
        *,
        continue_on_error: bool = True,
    ) -> BatchResult[ActorDescriptor]:
        """Fetch several actors, a window of ``batch_concurrency`` at a time.

        Args:
            handles: Handles to fetch.
            continue_on_error: If False, the first failure in a window is
                raised and later windows are not started.
        """
        return self._run_batch(
            handles, self.fetch_actor, ActorDescriptor, continue_on_error
        )

    def batch_fetch_posts(
        self,
        uris: Sequence[str],
        *,
        continue_on_error: bool = True,
    ) -> BatchResult[ContentObject]:
        """Fetch several posts, a window of ``batch_concurrency`` at a time."""
        return self._run_batch(
            uris, self.fetch_object, ContentObject, continue_on_error
        )

    # URL conversion

    def convert_web_url_to_activitypub(self, url: str) -> UrlConversion:
        """Convert a web URL to an ActivityPub URI.

        Known URL shapes are converted locally. Anything else is fetched with
        ActivityPub content negotiation and classified by its ``type``. Never
        raises for unrecognized or unreachable input; the failure is recorded
        in ``error``.
        """
        conversion = web_to_activitypub(url)
        if conversion is not None:
            return conversion

        if not is_absolute_url(url):
            return UrlConversion(
                input_url=url,
                kind="unknown",
                method="none",
                error="Not an absolute http(s) URL",
            )

        try:
            obj = self._get(url, ContentObject)
        except FediFetchError as e:
            self._log.info(
                "url_conversion_failed",
                url=url,
                error_class=e.error_class.value,
            )
            return UrlConversion(
                input_url=url,
                kind="unknown",
                method="fetch",
                error=e.message,
            )

        return UrlConversion(
            input_url=url,
            kind="actor" if obj.is_actor else "post",
            activitypub_url=obj.id,
            web_url=obj.url or url,
            method="fetch",
        )

    def convert_activitypub_to_web_url(self, uri: str) -> UrlConversion:
        """Convert an ActivityPub URI to a web URL. Never raises."""
        return activitypub_to_web(uri)

    # Internals

    def _get(self, url: str, schema: Any, accept: str = ACCEPT_ACTIVITYPUB) -> Any:
        return self._dedup.dedupe(
            "GET",
            url,
            lambda: self._invoker.invoke(url, schema, accept=accept),
        )

    @staticmethod
    def _check_range(name: str, value: int, low: int, high: int) -> None:
        if not low <= value <= high:
            msg = f"{name} must be between {low} and {high}"
            raise InvalidParameterError(msg, details={name: value})

    def _ensure_same_origin(self, url: str, outbox_url: str) -> None:
        msg = "Pagination cursor must have the same origin as the outbox"
        try:
            cursor_origin = origin_of(url)
            outbox_origin = origin_of(outbox_url)
        except ValueError as e:
            raise CursorOriginError(msg, url=url) from e

        if cursor_origin != outbox_origin:
            self._log.warning(
                "cursor_origin_rejected",
                cursor_host=cursor_origin[1],
                outbox_host=outbox_origin[1],
            )
            raise CursorOriginError(msg, url=url)

    def _first_page(self, collection: Collection, outbox_url: str) -> Collection:
        embedded = collection.embedded_first_page()
        if embedded is not None:
            return embedded

        first_url = collection.first_id
        if first_url is None:
            return collection
        self._ensure_same_origin(first_url, outbox_url)
        return self._get(first_url, Collection)

    def _fetch_actor_collection(
        self, handle: str, facet: str, limit: int
    ) -> Collection:
        validate_limit(limit)
        actor = self.fetch_actor(handle)
        collection_url = getattr(actor, facet)
        if not collection_url:
            msg = f"Actor {handle} has no {facet} collection"
            raise MissingCollectionError(msg, details={"facet": facet})

        self._log.info(f"fetch_{facet}", handle=handle, limit=limit)
        return self._get(with_params(collection_url, limit=limit), Collection)

    def _collect_ancestors(
        self,
        post: ContentObject,
        max_ancestors: int,
        seen: set[str],
    ) -> list[ContentObject]:
        ancestors: list[ContentObject] = []
        parent_uri = post.in_reply_to
        while parent_uri and len(ancestors) < max_ancestors:
            if parent_uri in seen:
                self._log.debug("thread_cycle_detected", url=parent_uri)
                break
            seen.add(parent_uri)
            try:
                parent = self.fetch_object(parent_uri)
            except FediFetchError as e:
                self._log.warning(
                    "thread_ancestor_failed",
                    url=parent_uri,
                    error_class=e.error_class.value,
                )
                break
            seen.add(parent.id)
            ancestors.append(parent)
            parent_uri = parent.in_reply_to

        ancestors.reverse()
        return ancestors

    def _collect_replies(
        self,
        post: ContentObject,
        depth: int,
        budget: list[int],
        seen: set[str],
    ) -> list[ThreadNode]:
        nodes: list[ThreadNode] = []
        for item in self._reply_items(post, budget):
            if budget[0] <= 0:
                break
            reply = self._resolve_reply(item)
            if reply is None or reply.id in seen:
                continue
            seen.add(reply.id)
            budget[0] -= 1
            children = (
                self._collect_replies(reply, depth - 1, budget, seen)
                if depth > 1
                else []
            )
            nodes.append(ThreadNode(post=reply, replies=children))
        return nodes

    def _reply_items(self, post: ContentObject, budget: list[int]) -> list[Any]:
        """Items of a post's replies collection, following a few pages."""
        if post.replies is None or budget[0] <= 0:
            return []

        items: list[Any] = []
        try:
            if isinstance(post.replies, str):
                page: Collection | None = self._get(post.replies, Collection)
            else:
                page = Collection.model_validate(
                    {"id": f"{post.id}#replies", "type": "Collection", **post.replies}
                )

            pages_read = 0
            while page is not None:
                pages_read += 1
                items.extend(page.entries)
                if len(items) >= budget[0] or pages_read >= MAX_REPLY_PAGES:
                    break
                page = self._next_reply_page(page)
        except FediFetchError as e:
            self._log.warning(
                "thread_replies_failed",
                url=post.id,
                error_class=e.error_class.value,
            )
        except ValueError as e:
            self._log.warning("thread_replies_invalid", url=post.id, error=str(e))
        return items

    def _next_reply_page(self, page: Collection) -> Collection | None:
        embedded = page.embedded_first_page()
        if embedded is not None:
            return embedded
        if isinstance(page.first, dict) and page.first.get("next"):
            return self._get(page.first["next"], Collection)
        if page.first_id and not page.entries:
            return self._get(page.first_id, Collection)
        if page.next:
            return self._get(page.next, Collection)
        return None

    def _resolve_reply(self, item: Any) -> ContentObject | None:
        try:
            if isinstance(item, str):
                return self.fetch_object(item)
            if isinstance(item, dict):
                return ContentObject.model_validate(item)
        except FediFetchError as e:
            self._log.warning(
                "thread_reply_failed",
                url=item if isinstance(item, str) else None,
                error_class=e.error_class.value,
            )
        except ValueError as e:
            self._log.warning("thread_reply_invalid", error=str(e))
        return None

    def _probe_instance(self, domain: str) -> dict[str, Any]:
        """Probe every metadata endpoint in parallel.

        Returns:
            Endpoint URL to validated document or the error it raised.
        """
        outcomes: dict[str, Any] = {}
        with ThreadPoolExecutor(max_workers=len(INSTANCE_ENDPOINTS)) as executor:
            future_to_url: dict[Future[Any], str] = {}
            for endpoint in INSTANCE_ENDPOINTS:
                future = executor.submit(self._probe_endpoint, endpoint, domain)
                future_to_url[future] = endpoint.url(domain)

            for future in as_completed(future_to_url):
                url = future_to_url[future]
                try:
                    outcomes[url] = future.result()
                except FediFetchError as e:
                    self._log.debug(
                        "instance_probe_failed",
                        endpoint=url,
                        error_class=e.error_class.value,
                    )
                    outcomes[url] = e
        return outcomes

    def _probe_endpoint(self, endpoint: InstanceEndpoint, domain: str) -> Any:
        return self._get(endpoint.url(domain), endpoint.schema, accept=ACCEPT_JSON)

    def _run_batch(
        self,
        inputs: Sequence[str],
        fetch: Callable[[str], T],
        value_type: type[T],
        continue_on_error: bool,
    ) -> BatchResult[T]:
        """Fetch inputs in windows, joining each window before the next.

        Outcomes keep input order. Without ``continue_on_error`` the first
        failing input of a window (in input order) is raised.
        """
        outcome_type = BatchItemOutcome[value_type]  # type: ignore[valid-type]
        outcomes: list[BatchItemOutcome[T]] = []
        window_size = self._batch_concurrency

        with ThreadPoolExecutor(max_workers=window_size) as executor:
            for start in range(0, len(inputs), window_size):
                window = list(inputs[start : start + window_size])
                futures = [executor.submit(fetch, item) for item in window]
                wait(futures)

                for item, future in zip(window, futures, strict=True):
                    try:
                        value = future.result()
                    except FediFetchError as e:
                        if not continue_on_error:
                            self._log.warning(
                                "batch_aborted",
                                input=item,
                                error_class=e.error_class.value,
                            )
                            raise
                        outcomes.append(
                            outcome_type(
                                input=item,
                                success=False,
                                error=e.message,
                                error_class=e.error_class.value,
                            )
                        )
                        continue
                    outcomes.append(outcome_type(input=item, success=True, value=value))

        result = BatchResult[value_type](items=outcomes)  # type: ignore[valid-type]
        self._log.info(
            "batch_complete",
            total=len(inputs),
            succeeded=result.succeeded,
            failed=result.failed,
        )
        return result
