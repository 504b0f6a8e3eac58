"""Outbound request safety: SSRF validation and instance blocklist."""

from fedifetch.safety.blocklist import BlockedInstance, BlockReason, InstanceBlocklist
from fedifetch.safety.validator import (
    UrlSafetyValidator,
    ValidatedTarget,
    is_blocked_hostname,
    is_non_public_address,
    parse_ip,
    resolve_host,
)


__all__ = [
    "BlockReason",
    "BlockedInstance",
    "InstanceBlocklist",
    "UrlSafetyValidator",
    "ValidatedTarget",
    "is_blocked_hostname",
    "is_non_public_address",
    "parse_ip",
    "resolve_host",
]
