"""Unit tests for outbox and social graph collections."""

import pytest

from fedifetch.errors import (
    CursorOriginError,
    FetchErrorClass,
    InvalidParameterError,
    MissingCollectionError,
)
from fedifetch.remote import RemoteDataClient
from tests.helpers.fakes import Router
from tests.helpers.fediverse import actor_doc, ordered_collection, webfinger_doc
from tests.helpers.wiring import make_client


DOMAIN = "mastodon.example"
HANDLE = f"alice@{DOMAIN}"
ACTOR = f"https://{DOMAIN}/users/alice"
OUTBOX = f"{ACTOR}/outbox"
FIRST_PAGE = f"{OUTBOX}?page=true"
SECOND_PAGE = f"{OUTBOX}?max_id=100&page=true"
WEBFINGER = f"https://{DOMAIN}/.well-known/webfinger"


def page(page_id: str, items: list[str], **extra: object) -> dict[str, object]:
    return ordered_collection(
        page_id,
        items,
        type="OrderedCollectionPage",
        partOf=OUTBOX,
        **extra,
    )


@pytest.fixture
def router() -> Router:
    """Router serving alice, her outbox and its first page."""
    return (
        Router()
        .json(WEBFINGER, webfinger_doc("alice", DOMAIN))
        .json(ACTOR, actor_doc("alice", DOMAIN))
        .json(
            OUTBOX,
            {
                "@context": "https://www.w3.org/ns/activitystreams",
                "id": OUTBOX,
                "type": "OrderedCollection",
                "totalItems": 40,
                "first": FIRST_PAGE,
                "last": f"{OUTBOX}?min_id=0&page=true",
            },
        )
        .json(
            FIRST_PAGE,
            page(
                FIRST_PAGE,
                [f"{ACTOR}/statuses/{n}/activity" for n in range(120, 100, -1)],
                next=SECOND_PAGE,
                prev=f"{OUTBOX}?min_id=120&page=true",
            ),
        )
    )


@pytest.fixture
def client(router: Router) -> RemoteDataClient:
    """Client wired to the router."""
    return make_client(router)


class TestFetchOutbox:
    """Tests for fetch_outbox."""

    def test_returns_collection(self, client: RemoteDataClient, router: Router) -> None:
        """Test that the outbox collection is fetched with the limit hint."""
        outbox = client.fetch_outbox(HANDLE, limit=5)

        assert outbox.id == OUTBOX
        assert outbox.total_items == 40
        assert router.requested(OUTBOX)[0].url.params["limit"] == "5"

    @pytest.mark.parametrize("limit", [0, 101, -3])
    def test_limit_validated_first(
        self, client: RemoteDataClient, router: Router, limit: int
    ) -> None:
        """Test that a bad limit fails before any request."""
        with pytest.raises(InvalidParameterError, match="between 1 and 100"):
            client.fetch_outbox(HANDLE, limit=limit)

        assert router.count() == 0


class TestFetchOutboxPage:
    """Tests for cursor-based outbox pagination."""

    def test_follows_first_link(self, client: RemoteDataClient) -> None:
        """Test that an empty collection resolves its first page."""
        result = client.fetch_outbox_page(HANDLE, limit=20)

        assert len(result.items) == 20
        assert result.total_items == 40
        assert result.collection_id == OUTBOX
        assert result.next_cursor == SECOND_PAGE
        assert result.prev_cursor == f"{OUTBOX}?min_id=120&page=true"
        assert result.has_more is True

    def test_items_truncated_to_limit(self, client: RemoteDataClient) -> None:
        """Test that a page larger than the limit is cut."""
        result = client.fetch_outbox_page(HANDLE, limit=5)

        assert result.items == [
            f"{ACTOR}/statuses/{n}/activity" for n in range(120, 115, -1)
        ]

    def test_cursor_url(self, client: RemoteDataClient, router: Router) -> None:
        """Test that a same-origin cursor is requested verbatim."""
        router.json(SECOND_PAGE, page(SECOND_PAGE, [f"{ACTOR}/statuses/99/activity"]))

        result = client.fetch_outbox_page(HANDLE, limit=20, cursor=SECOND_PAGE)

        assert result.items == [f"{ACTOR}/statuses/99/activity"]
        assert result.next_cursor is None
        assert result.has_more is False
        assert router.count(SECOND_PAGE) == 1
        assert router.count(FIRST_PAGE) == 0

    @pytest.mark.parametrize(
        "cursor",
        [
            "https://evil.example/users/alice/outbox?page=true",
            f"http://{DOMAIN}/users/alice/outbox?page=true",
            f"https://{DOMAIN}:8443/users/alice/outbox?page=true",
        ],
    )
    def test_cross_origin_cursor_rejected(
        self, client: RemoteDataClient, router: Router, cursor: str
    ) -> None:
        """Test that cursors with another scheme, host or port are refused."""
        with pytest.raises(CursorOriginError) as exc_info:
            client.fetch_outbox_page(HANDLE, cursor=cursor)

        assert exc_info.value.error_class == FetchErrorClass.UNSAFE_TARGET
        assert router.count(cursor) == 0

    def test_cursor_with_invalid_port_rejected(
        self, client: RemoteDataClient, router: Router
    ) -> None:
        """Test that a cursor whose port cannot be parsed is refused."""
        cursor = f"https://{DOMAIN}:99999/users/alice/outbox"

        with pytest.raises(CursorOriginError) as exc_info:
            client.fetch_outbox_page(HANDLE, cursor=cursor)

        assert exc_info.value.url == cursor
        assert router.count(OUTBOX) == 0

    def test_explicit_default_port_is_same_origin(
        self, client: RemoteDataClient, router: Router
    ) -> None:
        """Test that :443 on https matches the implicit port."""
        cursor = f"https://{DOMAIN}:443/users/alice/outbox?page=true"

        result = client.fetch_outbox_page(HANDLE, cursor=cursor)

        assert len(result.items) == 20

    def test_opaque_cursor_sent_as_max_id(
        self, client: RemoteDataClient, router: Router
    ) -> None:
        """Test that a non-URL cursor becomes the max_id parameter."""
        router.json(OUTBOX, page(OUTBOX, [f"{ACTOR}/statuses/5/activity"]))

        client.fetch_outbox_page(HANDLE, limit=10, cursor="109")

        params = router.requested(OUTBOX)[0].url.params
        assert params["max_id"] == "109"
        assert params["limit"] == "10"

    def test_id_filters_passed_through(
        self, client: RemoteDataClient, router: Router
    ) -> None:
        """Test min_id and since_id parameters."""
        router.json(OUTBOX, page(OUTBOX, []))

        client.fetch_outbox_page(HANDLE, min_id="7", since_id="3")

        params = router.requested(OUTBOX)[0].url.params
        assert params["min_id"] == "7"
        assert params["since_id"] == "3"
        assert "max_id" not in params

    def test_embedded_first_page(
        self, client: RemoteDataClient, router: Router
    ) -> None:
        """Test that an embedded first page needs no extra request."""
        router.json(
            OUTBOX,
            ordered_collection(
                OUTBOX,
                totalItems=2,
                first={
                    "type": "OrderedCollectionPage",
                    "orderedItems": ["a", "b"],
                    "next": SECOND_PAGE,
                },
            ),
        )

        result = client.fetch_outbox_page(HANDLE, limit=20)

        assert result.items == ["a", "b"]
        assert result.next_cursor == SECOND_PAGE
        assert router.count(FIRST_PAGE) == 0

    def test_cross_origin_first_link_rejected(
        self, client: RemoteDataClient, router: Router
    ) -> None:
        """Test that a first page on another origin is refused."""
        router.json(
            OUTBOX,
            ordered_collection(OUTBOX, first="https://evil.example/outbox?page=1"),
        )

        with pytest.raises(CursorOriginError):
            client.fetch_outbox_page(HANDLE)

    def test_short_page_without_next(
        self, client: RemoteDataClient, router: Router
    ) -> None:
        """Test has_more on a final short page."""
        router.json(OUTBOX, ordered_collection(OUTBOX, ["a", "b", "c"]))

        result = client.fetch_outbox_page(HANDLE, limit=10)

        assert result.items == ["a", "b", "c"]
        assert result.has_more is False
        assert result.next_cursor is None


class TestSocialGraph:
    """Tests for followers and following."""

    def test_fetch_followers(self, client: RemoteDataClient, router: Router) -> None:
        """Test that the followers collection is fetched."""
        followers = f"{ACTOR}/followers"
        router.json(followers, ordered_collection(followers, totalItems=12))

        collection = client.fetch_followers(HANDLE, limit=10)

        assert collection.total_items == 12
        assert router.requested(followers)[0].url.params["limit"] == "10"

    def test_missing_following(self, router: Router) -> None:
        """Test an actor that does not publish its following collection."""
        doc = actor_doc("alice", DOMAIN)
        del doc["following"]
        router.json(ACTOR, doc)
        client = make_client(router)

        with pytest.raises(MissingCollectionError) as exc_info:
            client.fetch_following(HANDLE)

        assert exc_info.value.error_class == FetchErrorClass.MISSING_FACET
        assert exc_info.value.message == f"Actor {HANDLE} has no following collection"

    def test_limit_validated(self, client: RemoteDataClient, router: Router) -> None:
        """Test that the limit is checked before discovery."""
        with pytest.raises(InvalidParameterError):
            client.fetch_followers(HANDLE, limit=1000)

        assert router.count() == 0
