"""Unit tests for web and ActivityPub URL conversion."""

import pytest

from fedifetch.remote import activitypub_to_web, web_to_activitypub
from tests.helpers.fakes import Router
from tests.helpers.fediverse import actor_doc, note_doc
from tests.helpers.wiring import make_client


class TestWebToActivityPub:
    """Tests for pattern-based web URL conversion."""

    def test_profile_url(self) -> None:
        """Test a Mastodon profile URL."""
        result = web_to_activitypub("https://mastodon.example/@alice")

        assert result is not None
        assert result.kind == "actor"
        assert result.activitypub_url == "https://mastodon.example/users/alice"
        assert result.handle == "alice@mastodon.example"
        assert result.method == "pattern"

    def test_post_url(self) -> None:
        """Test a Mastodon status URL."""
        result = web_to_activitypub("https://mastodon.example/@alice/110000000000")

        assert result is not None
        assert result.kind == "post"
        assert result.activitypub_url == (
            "https://mastodon.example/users/alice/statuses/110000000000"
        )
        assert result.web_url == "https://mastodon.example/@alice/110000000000"

    @pytest.mark.parametrize(
        ("url", "kind"),
        [
            ("https://mastodon.example/users/alice", "actor"),
            ("https://mastodon.example/users/alice/", "actor"),
            ("https://pleroma.example/u/bob", "actor"),
            ("https://mastodon.example/users/alice/statuses/1", "post"),
            ("https://misskey.example/notes/9abc", "post"),
            ("https://pleroma.example/objects/5f2e-11", "post"),
            ("https://gnusocial.example/notice/42", "post"),
        ],
    )
    def test_activitypub_shapes(self, url: str, kind: str) -> None:
        """Test URLs that are already ActivityPub URIs."""
        result = web_to_activitypub(url)

        assert result is not None
        assert result.kind == kind
        assert result.activitypub_url == url.rstrip("/")

    def test_host_is_lowercased(self) -> None:
        """Test that the origin is normalized."""
        result = web_to_activitypub("https://Mastodon.Example/@alice")

        assert result is not None
        assert result.activitypub_url == "https://mastodon.example/users/alice"

    @pytest.mark.parametrize(
        "url",
        [
            "https://mastodon.example/about",
            "https://mastodon.example/@alice/123/reblogs",
            "ftp://mastodon.example/@alice",
            "not a url",
        ],
    )
    def test_unrecognized(self, url: str) -> None:
        """Test that other shapes are not converted."""
        assert web_to_activitypub(url) is None


class TestActivityPubToWeb:
    """Tests for ActivityPub URI conversion."""

    def test_actor_uri(self) -> None:
        """Test that an actor URI maps to the profile page."""
        result = activitypub_to_web("https://mastodon.example/users/alice")

        assert result.kind == "actor"
        assert result.web_url == "https://mastodon.example/@alice"

    def test_status_uri(self) -> None:
        """Test that a status URI maps to the web status page."""
        result = activitypub_to_web(
            "https://mastodon.example/users/alice/statuses/110000000000"
        )

        assert result.kind == "post"
        assert result.web_url == "https://mastodon.example/@alice/110000000000"

    def test_unknown_uri_does_not_raise(self) -> None:
        """Test that unrecognized URIs are reported, not raised."""
        result = activitypub_to_web("https://mastodon.example/some/thing")

        assert result.kind == "unknown"
        assert not result.converted
        assert result.method == "none"
        assert result.error == "Unrecognized ActivityPub URI format"

    def test_relative_uri(self) -> None:
        """Test that a non-absolute input is reported."""
        result = activitypub_to_web("/users/alice")

        assert result.kind == "unknown"
        assert result.error == "Not an absolute http(s) URL"


class TestClientUrlConversion:
    """Tests for conversion with fetch fallback."""

    def test_pattern_needs_no_request(self) -> None:
        """Test that recognized shapes are converted locally."""
        router = Router()
        client = make_client(router)

        result = client.convert_web_url_to_activitypub("https://mastodon.example/@a")

        assert result.kind == "actor"
        assert router.count() == 0

    def test_fetch_fallback_for_post(self) -> None:
        """Test that unknown shapes are fetched and classified."""
        url = "https://blog.example/2024/01/hello-world"
        ap_id = "https://blog.example/ap/objects/77"
        doc = note_doc(ap_id, "https://blog.example/ap/users/me")
        doc["url"] = url
        router = Router().json(url, doc)
        client = make_client(router)

        result = client.convert_web_url_to_activitypub(url)

        assert result.kind == "post"
        assert result.method == "fetch"
        assert result.activitypub_url == ap_id
        assert result.web_url == url

    def test_fetch_fallback_for_actor(self) -> None:
        """Test that a fetched actor document is classified as an actor."""
        url = "https://social.example/profile/carol"
        doc = actor_doc("carol", "social.example")
        router = Router().json(url, doc)
        client = make_client(router)

        result = client.convert_web_url_to_activitypub(url)

        assert result.kind == "actor"
        assert result.activitypub_url == "https://social.example/users/carol"

    def test_fetch_failure_is_reported(self) -> None:
        """Test that a failed fetch yields an unknown result with the error."""
        url = "https://blog.example/missing"
        router = Router()
        client = make_client(router)

        result = client.convert_web_url_to_activitypub(url)

        assert result.kind == "unknown"
        assert result.method == "fetch"
        assert result.error == "HTTP 404"

    def test_non_url_input(self) -> None:
        """Test that garbage input is reported without a request."""
        router = Router()
        client = make_client(router)

        result = client.convert_web_url_to_activitypub("alice")

        assert result.kind == "unknown"
        assert result.method == "none"
        assert router.count() == 0

    def test_activitypub_to_web_on_client(self) -> None:
        """Test the client's reverse conversion."""
        client = make_client(Router())

        result = client.convert_activitypub_to_web_url(
            "https://mastodon.example/users/alice"
        )

        assert result.web_url == "https://mastodon.example/@alice"
