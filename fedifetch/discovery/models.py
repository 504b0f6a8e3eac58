"""Models for WebFinger documents and ActivityPub actors."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fedifetch.models import RemoteModel, link_href


ACTIVITYPUB_MEDIA_TYPE = "application/activity+json"
ACTIVITYSTREAMS_PROFILE = "https://www.w3.org/ns/activitystreams"


def is_activitypub_media_type(media_type: str | None) -> bool:
    """Check if a media type denotes an ActivityPub document.

    Accepts ``application/activity+json`` and ``application/ld+json`` with
    the ActivityStreams profile parameter.
    """
    if not media_type:
        return False

    main, _, params = media_type.partition(";")
    main = main.strip().lower()
    if main == ACTIVITYPUB_MEDIA_TYPE:
        return True
    if main != "application/ld+json":
        return False

    for param in params.split(";"):
        name, _, value = param.partition("=")
        if name.strip().lower() == "profile":
            profiles = value.strip().strip('"').split()
            if ACTIVITYSTREAMS_PROFILE in profiles:
                return True
    return False


class WebFingerLink(BaseModel):
    """A link in a WebFinger (JRD) document."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    rel: str
    type: str | None = None
    href: str | None = None
    template: str | None = None
    titles: dict[str, str] = Field(default_factory=dict)
    properties: dict[str, str | None] = Field(default_factory=dict)


class WebFingerDocument(BaseModel):
    """A WebFinger (JRD) document."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    subject: str
    aliases: list[str] = Field(default_factory=list)
    properties: dict[str, str | None] = Field(default_factory=dict)
    links: list[WebFingerLink] = Field(default_factory=list)

    def actor_link(self) -> str | None:
        """Return the href of the first ActivityPub ``self`` link."""
        for link in self.links:
            if (
                link.rel == "self"
                and link.href
                and is_activitypub_media_type(link.type)
            ):
                return link.href
        return None

    def profile_page(self) -> str | None:
        """Return the human-readable profile page, if advertised."""
        for link in self.links:
            if link.rel == "http://webfinger.net/rel/profile-page" and link.href:
                return link.href
        return None


class MediaLink(RemoteModel):
    """An image reference such as an avatar or header."""

    type: str | None = None
    url: str
    media_type: str | None = None

    @field_validator("url", mode="before")
    @classmethod
    def reduce_url(cls, v: Any) -> Any:
        """Accept a URL given as a Link object."""
        return link_href(v)


class PublicKey(RemoteModel):
    """Actor signing key."""

    id: str
    owner: str
    public_key_pem: str


class ActorDescriptor(RemoteModel):
    """An ActivityPub actor (Person, Service, Group, ...)."""

    id: str
    type: str
    preferred_username: str | None = None
    name: str | None = None
    summary: str | None = None
    url: str | None = None
    icon: MediaLink | None = None
    image: MediaLink | None = None
    inbox: str
    outbox: str
    followers: str | None = None
    following: str | None = None
    liked: str | None = None
    public_key: PublicKey | None = None
    endpoints: dict[str, Any] = Field(default_factory=dict)

    @field_validator("url", mode="before")
    @classmethod
    def reduce_url(cls, v: Any) -> Any:
        """Accept a profile URL given as a Link, object or list."""
        return link_href(v)

    @field_validator("icon", "image", mode="before")
    @classmethod
    def reduce_media(cls, v: Any) -> Any:
        """Accept a bare URL or a list of images (first one wins)."""
        if isinstance(v, list):
            v = v[0] if v else None
        if isinstance(v, str):
            return {"url": v}
        return v

    @field_validator("followers", "following", "liked", mode="before")
    @classmethod
    def reduce_collection(cls, v: Any) -> Any:
        """Accept an embedded collection in place of its URI."""
        return link_href(v) if isinstance(v, dict) else v

    @property
    def shared_inbox(self) -> str | None:
        """Shared inbox URL, if the server advertises one."""
        value = self.endpoints.get("sharedInbox")
        return value if isinstance(value, str) else None
