"""Unit tests for remote collection, post and result models."""

import pytest
from pydantic import ValidationError

from fedifetch.models import as_list, link_href, link_id
from fedifetch.remote import (
    BatchItemOutcome,
    BatchResult,
    Collection,
    ContentObject,
    MastodonTag,
)
from tests.helpers.fediverse import note_doc, ordered_collection


OUTBOX = "https://mastodon.example/users/alice/outbox"


class TestLinkHelpers:
    """Tests for link reduction helpers."""

    def test_as_list(self) -> None:
        """Test wrapping of scalars and None."""
        assert as_list(None) == []
        assert as_list("a") == ["a"]
        assert as_list(["a"]) == ["a"]

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("https://a.example/x", "https://a.example/x"),
            ({"type": "Link", "href": "https://a.example/h"}, "https://a.example/h"),
            ({"id": "https://a.example/i"}, "https://a.example/i"),
            (
                [{"type": "Link", "mediaType": "text/html"}, "https://a.example/l"],
                "https://a.example/l",
            ),
            ({"type": "Image"}, None),
        ],
    )
    def test_link_href(self, value: object, expected: str | None) -> None:
        """Test reduction of Link objects and lists."""
        assert link_href(value) == expected

    def test_link_id(self) -> None:
        """Test identifiers of page links."""
        assert link_id("https://a.example/p") == "https://a.example/p"
        assert link_id({"id": "https://a.example/p", "type": "Page"}) == (
            "https://a.example/p"
        )
        assert link_id(None) is None


class TestCollection:
    """Tests for collection parsing."""

    def test_ordered_items_preferred(self) -> None:
        """Test that orderedItems are the entries of an ordered collection."""
        collection = Collection.model_validate(
            ordered_collection(OUTBOX, ["a", "b"], items=["c"])
        )

        assert collection.entries == ["a", "b"]
        assert collection.total_items == 2

    def test_link_first_page(self) -> None:
        """Test a collection that links its first page."""
        collection = Collection.model_validate(
            ordered_collection(OUTBOX, totalItems=10, first=f"{OUTBOX}?page=true")
        )

        assert collection.entries == []
        assert collection.first_id == f"{OUTBOX}?page=true"
        assert collection.embedded_first_page() is None

    def test_embedded_first_page(self) -> None:
        """Test a collection that embeds its first page."""
        collection = Collection.model_validate(
            ordered_collection(
                OUTBOX,
                first={
                    "id": f"{OUTBOX}?page=1",
                    "type": "OrderedCollectionPage",
                    "orderedItems": ["x"],
                    "next": f"{OUTBOX}?page=2",
                },
            )
        )

        page = collection.embedded_first_page()

        assert page is not None
        assert page.entries == ["x"]
        assert page.next == f"{OUTBOX}?page=2"

    def test_next_as_link_object(self) -> None:
        """Test that Link objects in next/prev are reduced to URLs."""
        collection = Collection.model_validate(
            ordered_collection(
                f"{OUTBOX}?page=1",
                [],
                type="OrderedCollectionPage",
                next={"type": "Link", "href": f"{OUTBOX}?page=2"},
                partOf=OUTBOX,
            )
        )

        assert collection.next == f"{OUTBOX}?page=2"
        assert collection.part_of == OUTBOX

    def test_unknown_type_rejected(self) -> None:
        """Test that non-collection documents fail validation."""
        with pytest.raises(ValidationError):
            Collection.model_validate({"id": OUTBOX, "type": "Note"})


class TestContentObject:
    """Tests for post parsing."""

    def test_note(self) -> None:
        """Test a typical Note."""
        post = ContentObject.model_validate(
            note_doc(
                "https://mastodon.example/users/alice/statuses/1",
                "https://mastodon.example/users/alice",
                in_reply_to="https://other.example/notes/9",
            )
        )

        assert post.type == "Note"
        assert post.in_reply_to == "https://other.example/notes/9"
        assert post.to == ["https://www.w3.org/ns/activitystreams#Public"]
        assert not post.is_actor

    def test_attributed_to_list(self) -> None:
        """Test that a list of attributions yields the first actor."""
        doc = note_doc("https://a.example/n/1", "https://a.example/u/1")
        doc["attributedTo"] = [
            {"type": "Person", "id": "https://a.example/u/2"},
            "https://a.example/u/3",
        ]

        post = ContentObject.model_validate(doc)

        assert post.attributed_to == "https://a.example/u/2"

    def test_tags_and_attachments(self) -> None:
        """Test tag and attachment parsing, including single objects."""
        doc = note_doc("https://a.example/n/1", "https://a.example/u/1")
        doc["tag"] = {"type": "Hashtag", "name": "#python", "href": "https://a/t"}
        doc["attachment"] = [
            {
                "type": "Document",
                "mediaType": "image/png",
                "url": "https://cdn.example/1.png",
            }
        ]

        post = ContentObject.model_validate(doc)

        assert post.tag[0].name == "#python"
        assert post.attachment[0].media_type == "image/png"


class TestMastodonTag:
    """Tests for hashtag history."""

    def test_recent_uses(self) -> None:
        """Test that uses are summed across the history window."""
        tag = MastodonTag.model_validate(
            {
                "name": "python",
                "history": [
                    {"day": "1", "uses": "12", "accounts": "5"},
                    {"day": "2", "uses": "3", "accounts": "2"},
                    {"day": "3", "uses": "n/a"},
                ],
            }
        )

        assert tag.recent_uses == 15


class TestBatchResult:
    """Tests for batch result aggregation."""

    def test_counts_and_values(self) -> None:
        """Test succeeded/failed counts and value extraction."""
        result = BatchResult[str](
            items=[
                BatchItemOutcome[str](input="a", success=True, value="A"),
                BatchItemOutcome[str](
                    input="b",
                    success=False,
                    error="HTTP 404",
                    error_class="HTTP_STATUS",
                ),
                BatchItemOutcome[str](input="c", success=True, value="C"),
            ]
        )

        assert result.succeeded == 2
        assert result.failed == 1
        assert result.values == ["A", "C"]
