"""HTTP constants for the fetch layer."""

from typing import Final


HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_NOT_MODIFIED = 304
REDIRECT_STATUSES: Final[frozenset[int]] = frozenset({301, 302, 303, 307, 308})

MAX_REDIRECTS = 5

DEFAULT_TIMEOUT_MS = 10_000
DEFAULT_MAX_RESPONSE_SIZE_BYTES = 10 * 1024 * 1024  # 10 MiB
DEFAULT_CHUNK_SIZE = 8192
DEFAULT_USER_AGENT = "fedifetch/0.1 (+https://github.com/fedifetch)"

ACCEPT_ACTIVITYPUB = (
    "application/activity+json, "
    'application/ld+json; profile="https://www.w3.org/ns/activitystreams"'
)
ACCEPT_JRD = "application/jrd+json, application/json"
ACCEPT_JSON = "application/json"
