"""Conversion between web (HTML) URLs and ActivityPub URIs.

Only URL shapes used by common server software are recognized:

| Web URL                      | ActivityPub URI                     | Kind  |
|------------------------------|-------------------------------------|-------|
| ``/@user``                   | ``/users/user``                     | actor |
| ``/@user/123``               | ``/users/user/statuses/123``        | post  |
| ``/users/user``              | same                                | actor |
| ``/users/user/statuses/123`` | same                                | post  |
| ``/u/user``                  | same                                | actor |
| ``/notes/id``                | same                                | post  |
| ``/objects/id``              | same                                | post  |
| ``/notice/id``               | same                                | post  |
"""

import re
from typing import Final
from urllib.parse import urlsplit

from fedifetch.remote.models import UrlConversion


_USER = r"(?P<user>[A-Za-z0-9._-]+)"
_ID = r"(?P<id>[A-Za-z0-9._-]+)"

_WEB_ACTOR_RE: Final = re.compile(rf"^/@{_USER}/?$")
_WEB_POST_RE: Final = re.compile(rf"^/@{_USER}/{_ID}/?$")
_AP_ACTOR_RE: Final = re.compile(rf"^/users/{_USER}/?$")
_AP_POST_RE: Final = re.compile(rf"^/users/{_USER}/statuses/{_ID}/?$")
_PLEROMA_ACTOR_RE: Final = re.compile(rf"^/u/{_USER}/?$")
_OBJECT_RE: Final = re.compile(rf"^/(?:notes|objects|notice)/{_ID}/?$")


def _split(url: str) -> tuple[str, str, str] | None:
    """Return ``(origin, host, path)`` for an absolute http(s) URL."""
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https") or not hostname:
        return None
    origin = f"{parts.scheme.lower()}://{parts.netloc.lower()}"
    return origin, hostname.lower(), parts.path


def web_to_activitypub(url: str) -> UrlConversion | None:
    """Convert a web URL to an ActivityPub URI by its path shape.

    Returns:
        The conversion, or None if the URL has no recognized shape.
    """
    split = _split(url)
    if split is None:
        return None
    origin, host, path = split

    if match := _WEB_POST_RE.match(path):
        user, post_id = match.group("user"), match.group("id")
        return UrlConversion(
            input_url=url,
            kind="post",
            activitypub_url=f"{origin}/users/{user}/statuses/{post_id}",
            web_url=f"{origin}/@{user}/{post_id}",
            handle=f"{user}@{host}",
        )

    if match := _WEB_ACTOR_RE.match(path):
        user = match.group("user")
        return UrlConversion(
            input_url=url,
            kind="actor",
            activitypub_url=f"{origin}/users/{user}",
            web_url=f"{origin}/@{user}",
            handle=f"{user}@{host}",
        )

    if match := _AP_POST_RE.match(path):
        user, post_id = match.group("user"), match.group("id")
        return UrlConversion(
            input_url=url,
            kind="post",
            activitypub_url=f"{origin}/users/{user}/statuses/{post_id}",
            web_url=f"{origin}/@{user}/{post_id}",
            handle=f"{user}@{host}",
        )

    if match := _AP_ACTOR_RE.match(path) or _PLEROMA_ACTOR_RE.match(path):
        user = match.group("user")
        return UrlConversion(
            input_url=url,
            kind="actor",
            activitypub_url=f"{origin}{path.rstrip('/')}",
            web_url=f"{origin}/@{user}",
            handle=f"{user}@{host}",
        )

    if _OBJECT_RE.match(path):
        normalized = f"{origin}{path.rstrip('/')}"
        return UrlConversion(
            input_url=url,
            kind="post",
            activitypub_url=normalized,
            web_url=normalized,
        )

    return None


def activitypub_to_web(uri: str) -> UrlConversion:
    """Convert an ActivityPub URI to the web URL a browser would open.

    Never raises; unrecognized input yields ``kind="unknown"`` with the
    reason in ``error``.
    """
    split = _split(uri)
    if split is None:
        return UrlConversion(
            input_url=uri,
            kind="unknown",
            method="none",
            error="Not an absolute http(s) URL",
        )

    conversion = web_to_activitypub(uri)
    if conversion is None:
        return UrlConversion(
            input_url=uri,
            kind="unknown",
            method="none",
            error="Unrecognized ActivityPub URI format",
        )
    return conversion
