"""Integration tests for HTTP conditional requests with ETag/Last-Modified."""

import httpx
import pytest

from fedifetch.discovery import ActorDescriptor
from fedifetch.fetch import HttpInvoker
from tests.helpers.fakes import FakeClock, Router, json_response
from tests.helpers.fediverse import actor_doc
from tests.helpers.wiring import make_client


ACTOR = "https://mastodon.example/users/alice"
ETAG = '"abc123"'
LAST_MODIFIED = "Mon, 01 Jan 2024 00:00:00 GMT"


class CachingHandler:
    """Serves the actor and honors conditional request headers."""

    def __init__(self) -> None:
        self.etag = ETAG
        self.conditional_requests = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if_none_match = request.headers.get("If-None-Match")
        if_modified_since = request.headers.get("If-Modified-Since")
        if if_none_match or if_modified_since:
            self.conditional_requests += 1

        if if_none_match == self.etag or (
            if_none_match is None and if_modified_since == LAST_MODIFIED
        ):
            return httpx.Response(304, headers={"ETag": self.etag})

        return json_response(
            actor_doc("alice", "mastodon.example", name=f"Alice {self.etag}"),
            headers={"ETag": self.etag, "Last-Modified": LAST_MODIFIED},
        )


@pytest.fixture
def handler() -> CachingHandler:
    """Conditional-aware handler."""
    return CachingHandler()


@pytest.fixture
def invoker(handler: CachingHandler) -> HttpInvoker:
    """Invoker from a fully wired client."""
    router = Router().add(ACTOR, handler)
    return make_client(router, clock=FakeClock()).invoker


@pytest.mark.integration
class TestConditionalFetch:
    """Tests for revalidation against the conditional cache."""

    def test_first_fetch_is_unconditional(
        self, invoker: HttpInvoker, handler: CachingHandler
    ) -> None:
        """Test that the first request carries no validators."""
        document = invoker.fetch(ACTOR, ActorDescriptor)

        assert document.status_code == 200
        assert document.revalidated is False
        assert handler.conditional_requests == 0
        assert invoker.cache.get(ACTOR) is not None

    def test_second_fetch_revalidates(
        self, invoker: HttpInvoker, handler: CachingHandler
    ) -> None:
        """Test that a 304 answers from the cached payload."""
        first = invoker.fetch(ACTOR, ActorDescriptor)
        second = invoker.fetch(ACTOR, ActorDescriptor)

        assert second.status_code == 304
        assert second.revalidated is True
        assert second.value == first.value
        assert handler.conditional_requests == 1
        metrics = invoker.metrics.to_dict()
        assert metrics["http_revalidated_total"] == 1
        assert metrics["http_requests_total"] == {200: 1, 304: 1}

    def test_changed_resource_replaces_record(
        self, invoker: HttpInvoker, handler: CachingHandler
    ) -> None:
        """Test that a new ETag yields fresh content and a new record."""
        invoker.fetch(ACTOR, ActorDescriptor)
        handler.etag = '"def456"'

        document = invoker.fetch(ACTOR, ActorDescriptor)

        assert document.status_code == 200
        assert document.value.name == 'Alice "def456"'
        record = invoker.cache.get(ACTOR)
        assert record is not None
        assert record.etag == '"def456"'

    def test_cached_payload_is_revalidated_against_schema(
        self, invoker: HttpInvoker
    ) -> None:
        """Test that a 304 still produces the requested type."""
        invoker.fetch(ACTOR, dict)

        document = invoker.fetch(ACTOR, ActorDescriptor)

        assert document.revalidated is True
        assert isinstance(document.value, ActorDescriptor)
        assert document.value.inbox == f"{ACTOR}/inbox"

    def test_unvalidated_response_drops_record(self) -> None:
        """Test that a 200 without validators stops later revalidation."""
        seen: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("If-None-Match"))
            if len(seen) == 1:
                return json_response(
                    actor_doc("alice", "mastodon.example"), headers={"ETag": ETAG}
                )
            return json_response(actor_doc("alice", "mastodon.example", name="New"))

        router = Router().add(ACTOR, handler)
        invoker = make_client(router, clock=FakeClock()).invoker

        invoker.fetch(ACTOR, ActorDescriptor)
        invoker.fetch(ACTOR, ActorDescriptor)
        document = invoker.fetch(ACTOR, ActorDescriptor)

        assert seen == [None, ETAG, None]
        assert document.value.name == "New"
        assert invoker.cache.get(ACTOR) is None
