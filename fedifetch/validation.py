"""Validation of caller-supplied handles, domains and parameters."""

import re
from typing import Final

from fedifetch.errors import (
    InvalidDomainError,
    InvalidIdentifierError,
    InvalidParameterError,
)


_LABEL = r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"

DOMAIN_RE: Final = re.compile(rf"{_LABEL}(?:\.{_LABEL})+")
HANDLE_RE: Final = re.compile(rf"@?([a-zA-Z0-9._-]+)@({_LABEL}(?:\.{_LABEL})+)")

HANDLE_MIN_LENGTH = 3
HANDLE_MAX_LENGTH = 320
DOMAIN_MAX_LENGTH = 253
QUERY_MAX_LENGTH = 500

MIN_LIMIT = 1
MAX_LIMIT = 100


def normalize_handle(handle: str) -> tuple[str, str]:
    """Validate a ``user@domain`` handle and split it.

    One leading ``@`` is accepted; the domain is lower-cased.

    Returns:
        ``(user, domain)``.

    Raises:
        InvalidIdentifierError: If the handle is malformed.
    """
    if not HANDLE_MIN_LENGTH <= len(handle) <= HANDLE_MAX_LENGTH:
        msg = (
            f"Invalid identifier length: expected {HANDLE_MIN_LENGTH}-"
            f"{HANDLE_MAX_LENGTH} characters, got {len(handle)}"
        )
        raise InvalidIdentifierError(msg)

    match = HANDLE_RE.fullmatch(handle)
    if match is None:
        msg = (
            f"Invalid identifier format: '{handle}'. "
            "Expected: user@domain.com or @user@domain.com"
        )
        raise InvalidIdentifierError(msg)

    return match.group(1), match.group(2).lower()


def validate_domain(domain: str) -> str:
    """Validate an instance domain and return it lower-cased.

    Raises:
        InvalidDomainError: If the domain is not a DNS name with a dot.
    """
    if not domain or len(domain) > DOMAIN_MAX_LENGTH or not DOMAIN_RE.fullmatch(domain):
        msg = f"Invalid domain format: '{domain}'"
        raise InvalidDomainError(msg)
    return domain.lower()


def validate_limit(limit: int, name: str = "limit") -> int:
    """Check that a page size lies in 1-100.

    Raises:
        InvalidParameterError: If the value is out of range.
    """
    if isinstance(limit, bool) or not isinstance(limit, int):
        msg = f"{name.capitalize()} must be an integer, got {type(limit).__name__}"
        raise InvalidParameterError(msg)
    if not MIN_LIMIT <= limit <= MAX_LIMIT:
        msg = f"{name.capitalize()} must be between {MIN_LIMIT} and {MAX_LIMIT}"
        raise InvalidParameterError(msg, details={name: limit})
    return limit


def validate_query(query: str) -> str:
    """Check that a search query is 1-500 characters after trimming.

    Raises:
        InvalidParameterError: If the query is empty or too long.
    """
    stripped = query.strip()
    if not stripped:
        raise InvalidParameterError("Query cannot be empty")
    if len(stripped) > QUERY_MAX_LENGTH:
        msg = f"Query too long: maximum {QUERY_MAX_LENGTH} characters"
        raise InvalidParameterError(msg)
    return stripped
