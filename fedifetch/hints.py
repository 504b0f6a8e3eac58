"""User-facing hints for fetch-layer errors.

Provides short, actionable suggestions the presentation layer can append
to an error message.
"""

import re
from typing import TYPE_CHECKING, Final

from fedifetch.errors import FetchErrorClass


if TYPE_CHECKING:
    from fedifetch.errors import FediFetchError


# Hints keyed by error class; checked before message patterns
CLASS_HINTS: Final[dict[FetchErrorClass, str]] = {
    FetchErrorClass.INVALID_INPUT: (
        "Use format 'username@domain.social' for actors and "
        "'domain.social' for instances."
    ),
    FetchErrorClass.UNSAFE_TARGET: (
        "Cannot access internal or private network addresses."
    ),
    FetchErrorClass.BLOCKED_INSTANCE: (
        "This instance is blocked by the server administrator."
    ),
    FetchErrorClass.NETWORK_TIMEOUT: (
        "The request timed out. The server may be slow or unreachable."
    ),
    FetchErrorClass.RESPONSE_SIZE_EXCEEDED: (
        "The remote document is larger than the configured limit."
    ),
    FetchErrorClass.SCHEMA_VALIDATION: (
        "Received invalid data from server. "
        "The instance may not be ActivityPub compatible."
    ),
    FetchErrorClass.INSTANCE_UNAVAILABLE: (
        "None of the instance metadata endpoints answered. "
        "Check that the domain runs fediverse software."
    ),
}

# Message patterns, evaluated in order
MESSAGE_HINTS: Final[list[tuple[re.Pattern[str], str]]] = [
    (
        re.compile(r"name or service not known|getaddrinfo|nodename|dns", re.I),
        "Check that the domain exists and is spelled correctly.",
    ),
    (
        re.compile(r"connection refused", re.I),
        "The server refused the connection. It may be down or blocking requests.",
    ),
    (
        re.compile(r"connection reset", re.I),
        "The connection was reset. Try again or check if the server is stable.",
    ),
    (
        re.compile(r"certificate|ssl|tls", re.I),
        "SSL certificate error. The server may have an invalid certificate.",
    ),
    (
        re.compile(r"\b404\b|not found", re.I),
        "The resource was not found. Verify the username or domain is correct.",
    ),
    (
        re.compile(r"\b401\b|unauthorized", re.I),
        "Authentication required. This content may be private or require login.",
    ),
    (
        re.compile(r"\b403\b|forbidden", re.I),
        "Access denied. The server may be blocking automated requests.",
    ),
    (
        re.compile(r"\b410\b|gone", re.I),
        "This resource has been deleted or is no longer available.",
    ),
    (
        re.compile(r"\b429\b|rate.?limit|too many requests", re.I),
        "Rate limited. Wait a few minutes before trying again.",
    ),
    (
        re.compile(r"\b5\d{2}\b|server error", re.I),
        "The remote server encountered an error. Try again later.",
    ),
    (
        re.compile(r"no outbox", re.I),
        "This actor doesn't have a public outbox. Their posts may be private.",
    ),
    (
        re.compile(r"no (followers|following)", re.I),
        "This actor's social graph is not publicly available.",
    ),
    (
        re.compile(r"webfinger|activitypub link", re.I),
        "WebFinger lookup failed. Verify the username exists on this instance.",
    ),
]


def get_message_hint(message: str) -> str | None:
    """Get a hint for a raw error message.

    Args:
        message: Error message to analyze.

    Returns:
        Matching hint, or None if no pattern matches.
    """
    for pattern, hint in MESSAGE_HINTS:
        if pattern.search(message):
            return hint
    return None


def get_error_hint(error: "FediFetchError") -> str | None:
    """Get a user-friendly hint for a fetch-layer error.

    Transport, HTTP-status, and missing-facet errors are specific enough
    that the message carries the useful signal, so they are matched by
    message first.

    Args:
        error: The error to describe.

    Returns:
        A hint string, or None if nothing applies.
    """
    if error.error_class in (
        FetchErrorClass.CONNECTION_ERROR,
        FetchErrorClass.HTTP_STATUS,
        FetchErrorClass.MISSING_FACET,
    ):
        return get_message_hint(error.message)

    return CLASS_HINTS.get(error.error_class) or get_message_hint(error.message)


def format_error_with_hint(error: "FediFetchError") -> str:
    """Format an error message with its hint appended.

    Args:
        error: The error to format.

    Returns:
        The message, followed by a suggestion line when one applies.
    """
    hint = get_error_hint(error)
    if hint:
        return f"{error.message}\n\nSuggestion: {hint}"
    return error.message
