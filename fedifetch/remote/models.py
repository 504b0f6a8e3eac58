"""Models for remote collections, posts, instances and result types."""

from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fedifetch.models import RemoteModel, as_list, link_href, link_id


T = TypeVar("T")

CollectionType = Literal[
    "Collection",
    "OrderedCollection",
    "CollectionPage",
    "OrderedCollectionPage",
]

ACTOR_TYPES = frozenset(
    {"Person", "Service", "Application", "Group", "Organization"}
)


class Collection(RemoteModel):
    """An ActivityStreams collection or collection page.

    ``first`` and ``last`` are kept as received: a link string or an
    embedded page object.
    """

    id: str
    type: CollectionType
    total_items: int | None = None
    items: list[Any] = Field(default_factory=list)
    ordered_items: list[Any] = Field(default_factory=list)
    next: str | None = None
    prev: str | None = None
    first: str | dict[str, Any] | None = None
    last: str | dict[str, Any] | None = None
    part_of: str | None = None

    @field_validator("next", "prev", "part_of", mode="before")
    @classmethod
    def reduce_link(cls, v: Any) -> Any:
        """Accept a Link object in place of a URL."""
        return link_href(v) if isinstance(v, dict | list) else v

    @field_validator("items", "ordered_items", mode="before")
    @classmethod
    def wrap_items(cls, v: Any) -> Any:
        """Accept a single item in place of a list."""
        return as_list(v)

    @property
    def entries(self) -> list[Any]:
        """Items of the collection, ordered items first."""
        return self.ordered_items or self.items

    @property
    def first_id(self) -> str | None:
        """Identifier of the first page."""
        return link_id(self.first)

    @property
    def last_id(self) -> str | None:
        """Identifier of the last page."""
        return link_id(self.last)

    def embedded_first_page(self) -> "Collection | None":
        """The first page when it is embedded with its items."""
        if isinstance(self.first, dict) and (
            self.first.get("orderedItems") or self.first.get("items")
        ):
            page = dict(self.first)
            page.setdefault("id", self.first_id or f"{self.id}#first")
            page.setdefault("type", "OrderedCollectionPage")
            return Collection.model_validate(page)
        return None


class CollectionPage(BaseModel):
    """One page of a paginated collection, as returned to callers.

    ``has_more`` is exact when the server advertises a next page; otherwise
    it is the approximation ``len(items) == limit``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    collection_id: str
    items: list[Any] = Field(default_factory=list)
    total_items: int | None = None
    next_cursor: str | None = None
    prev_cursor: str | None = None
    has_more: bool = False


class Tag(RemoteModel):
    """Hashtag, mention or emoji attached to a post."""

    type: str | None = None
    name: str | None = None
    href: str | None = None


class Attachment(RemoteModel):
    """Media attached to a post."""

    type: str | None = None
    media_type: str | None = None
    url: str | None = None
    name: str | None = None

    @field_validator("url", mode="before")
    @classmethod
    def reduce_url(cls, v: Any) -> Any:
        """Accept a Link object in place of a URL."""
        return link_href(v)


class ContentObject(RemoteModel):
    """An ActivityPub object such as a Note, Article or Question."""

    id: str
    type: str
    attributed_to: str | None = None
    name: str | None = None
    content: str | None = None
    summary: str | None = None
    sensitive: bool | None = None
    published: str | None = None
    updated: str | None = None
    url: str | None = None
    to: list[str] = Field(default_factory=list)
    cc: list[str] = Field(default_factory=list)
    in_reply_to: str | None = None
    replies: str | dict[str, Any] | None = None
    likes: str | dict[str, Any] | None = None
    shares: str | dict[str, Any] | None = None
    tag: list[Tag] = Field(default_factory=list)
    attachment: list[Attachment] = Field(default_factory=list)

    @field_validator("attributed_to", "url", "in_reply_to", mode="before")
    @classmethod
    def reduce_link(cls, v: Any) -> Any:
        """Accept a Link, object or list in place of a URL."""
        return link_href(v)

    @field_validator("to", "cc", "tag", "attachment", mode="before")
    @classmethod
    def wrap_list(cls, v: Any) -> Any:
        """Accept a single value in place of a list."""
        return as_list(v)

    @property
    def is_actor(self) -> bool:
        """Whether the object is an actor rather than content."""
        return self.type in ACTOR_TYPES


class ThreadNode(BaseModel):
    """A post and the replies collected beneath it."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    post: ContentObject
    replies: list["ThreadNode"] = Field(default_factory=list)


class PostThread(BaseModel):
    """A post with its ancestors (oldest first) and reply tree."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    root: ContentObject
    ancestors: list[ContentObject] = Field(default_factory=list)
    replies: list[ThreadNode] = Field(default_factory=list)
    total_replies: int = Field(default=0, ge=0)
    depth: int = Field(ge=1)


class ContactAccount(BaseModel):
    """Instance administrator contact."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    username: str
    display_name: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Some servers send numeric ids."""
        return str(v) if isinstance(v, int) else v


class InstanceStats(BaseModel):
    """Instance usage counters."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    user_count: int | None = None
    status_count: int | None = None
    domain_count: int | None = None


class InstanceInfo(BaseModel):
    """Instance metadata normalized across server software."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    domain: str
    software: str | None = None
    version: str | None = None
    title: str | None = None
    description: str | None = None
    languages: list[str] | None = None
    registrations: bool | None = None
    approval_required: bool | None = None
    invites_enabled: bool | None = None
    contact_account: ContactAccount | None = None
    stats: InstanceStats | None = None
    source_endpoint: str = Field(description="Metadata endpoint the data came from")


class MastodonAccount(BaseModel):
    """Account entity of the Mastodon REST API."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    username: str
    acct: str
    display_name: str | None = None
    url: str | None = None
    note: str | None = None
    avatar: str | None = None
    bot: bool | None = None
    followers_count: int | None = None
    following_count: int | None = None
    statuses_count: int | None = None


class MastodonTag(BaseModel):
    """Hashtag entity of the Mastodon REST API."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    url: str | None = None
    history: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def recent_uses(self) -> int:
        """Uses reported across the history window."""
        total = 0
        for day in self.history:
            try:
                total += int(day.get("uses", 0))
            except (TypeError, ValueError):
                continue
        return total


class MastodonStatus(BaseModel):
    """Status entity of the Mastodon REST API."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    uri: str
    url: str | None = None
    created_at: str | None = None
    content: str = ""
    spoiler_text: str | None = None
    visibility: str | None = None
    language: str | None = None
    account: MastodonAccount | None = None
    in_reply_to_id: str | None = None
    replies_count: int | None = None
    reblogs_count: int | None = None
    favourites_count: int | None = None
    tags: list[MastodonTag] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """Body of ``/api/v2/search``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    accounts: list[MastodonAccount] = Field(default_factory=list)
    statuses: list[MastodonStatus] = Field(default_factory=list)
    hashtags: list[MastodonTag] = Field(default_factory=list)


class SearchResults(BaseModel):
    """Search results from one instance."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    domain: str
    query: str
    search_type: str
    accounts: list[MastodonAccount] = Field(default_factory=list)
    statuses: list[MastodonStatus] = Field(default_factory=list)
    hashtags: list[MastodonTag] = Field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of results across all kinds."""
        return len(self.accounts) + len(self.statuses) + len(self.hashtags)


class BatchItemOutcome(BaseModel, Generic[T]):
    """Outcome of one item of a batch fetch."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    input: str
    success: bool
    value: T | None = None
    error: str | None = None
    error_class: str | None = None


class BatchResult(BaseModel, Generic[T]):
    """Per-item outcomes of a batch fetch, in input order."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    items: list[BatchItemOutcome[T]] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        """Number of items fetched successfully."""
        return sum(1 for item in self.items if item.success)

    @property
    def failed(self) -> int:
        """Number of items that failed."""
        return sum(1 for item in self.items if not item.success)

    @property
    def values(self) -> list[T]:
        """Successfully fetched values, in input order."""
        return [item.value for item in self.items if item.value is not None]


UrlKind = Literal["actor", "post", "unknown"]
ConversionMethod = Literal["pattern", "fetch", "none"]


class UrlConversion(BaseModel):
    """Result of converting between web and ActivityPub URLs."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    input_url: str
    kind: UrlKind
    activitypub_url: str | None = None
    web_url: str | None = None
    handle: str | None = None
    method: ConversionMethod = "pattern"
    error: str | None = None

    @property
    def converted(self) -> bool:
        """Whether the input was recognized."""
        return self.kind != "unknown"
