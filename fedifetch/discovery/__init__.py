"""Identity discovery (WebFinger) for fediverse handles."""

from fedifetch.discovery.client import (
    DiscoveryCacheStats,
    IdentityDiscoveryClient,
    webfinger_url,
)
from fedifetch.discovery.models import (
    ActorDescriptor,
    MediaLink,
    PublicKey,
    WebFingerDocument,
    WebFingerLink,
    is_activitypub_media_type,
)
from fedifetch.discovery.state_machine import (
    DiscoveryState,
    DiscoveryStateMachine,
    DiscoveryStateTransitionError,
)


__all__ = [
    "ActorDescriptor",
    "DiscoveryCacheStats",
    "DiscoveryState",
    "DiscoveryStateMachine",
    "DiscoveryStateTransitionError",
    "IdentityDiscoveryClient",
    "MediaLink",
    "PublicKey",
    "WebFingerDocument",
    "WebFingerLink",
    "is_activitypub_media_type",
    "webfinger_url",
]
