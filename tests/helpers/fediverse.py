"""Builders for WebFinger, actor, collection and post documents."""

from typing import Any


AS_CONTEXT = "https://www.w3.org/ns/activitystreams"
AP_TYPE = "application/activity+json"


def webfinger_doc(
    user: str, domain: str, actor_url: str | None = None
) -> dict[str, Any]:
    """A WebFinger document whose ``self`` link points at the actor."""
    actor_url = actor_url or f"https://{domain}/users/{user}"
    return {
        "subject": f"acct:{user}@{domain}",
        "aliases": [f"https://{domain}/@{user}", actor_url],
        "links": [
            {
                "rel": "http://webfinger.net/rel/profile-page",
                "type": "text/html",
                "href": f"https://{domain}/@{user}",
            },
            {"rel": "self", "type": AP_TYPE, "href": actor_url},
        ],
    }


def actor_doc(user: str, domain: str, **overrides: Any) -> dict[str, Any]:
    """A Person actor with the usual collections."""
    base = f"https://{domain}/users/{user}"
    doc: dict[str, Any] = {
        "@context": [AS_CONTEXT, "https://w3id.org/security/v1"],
        "id": base,
        "type": "Person",
        "preferredUsername": user,
        "name": user.title(),
        "inbox": f"{base}/inbox",
        "outbox": f"{base}/outbox",
        "followers": f"{base}/followers",
        "following": f"{base}/following",
        "url": f"https://{domain}/@{user}",
        "endpoints": {"sharedInbox": f"https://{domain}/inbox"},
    }
    doc.update(overrides)
    return doc


def note_doc(
    note_id: str,
    attributed_to: str,
    *,
    in_reply_to: str | None = None,
    replies: str | dict[str, Any] | None = None,
    content: str = "<p>hello</p>",
) -> dict[str, Any]:
    """A public Note."""
    doc: dict[str, Any] = {
        "@context": AS_CONTEXT,
        "id": note_id,
        "type": "Note",
        "attributedTo": attributed_to,
        "content": content,
        "published": "2024-01-01T00:00:00Z",
        "to": "https://www.w3.org/ns/activitystreams#Public",
        "cc": [f"{attributed_to}/followers"],
    }
    if in_reply_to is not None:
        doc["inReplyTo"] = in_reply_to
    if replies is not None:
        doc["replies"] = replies
    return doc


def ordered_collection(
    collection_id: str,
    items: list[Any] | None = None,
    /,
    **extra: Any,
) -> dict[str, Any]:
    """An OrderedCollection (or page, via ``type=``)."""
    doc: dict[str, Any] = {
        "@context": AS_CONTEXT,
        "id": collection_id,
        "type": "OrderedCollection",
    }
    if items is not None:
        doc["orderedItems"] = items
        doc.setdefault("totalItems", len(items))
    doc.update(extra)
    return doc
