"""Remote data client for actors, collections, posts and instances."""

from fedifetch.remote.client import RemoteDataClient, origin_of
from fedifetch.remote.models import (
    BatchItemOutcome,
    BatchResult,
    Collection,
    CollectionPage,
    ContentObject,
    InstanceInfo,
    MastodonAccount,
    MastodonStatus,
    MastodonTag,
    PostThread,
    SearchResults,
    ThreadNode,
    UrlConversion,
)
from fedifetch.remote.urls import activitypub_to_web, web_to_activitypub


__all__ = [
    "BatchItemOutcome",
    "BatchResult",
    "Collection",
    "CollectionPage",
    "ContentObject",
    "InstanceInfo",
    "MastodonAccount",
    "MastodonStatus",
    "MastodonTag",
    "PostThread",
    "RemoteDataClient",
    "SearchResults",
    "ThreadNode",
    "UrlConversion",
    "activitypub_to_web",
    "origin_of",
    "web_to_activitypub",
]
