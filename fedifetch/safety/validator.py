"""SSRF and DNS-rebinding protection for outbound URLs."""

import ipaddress
import socket
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx
import structlog

from fedifetch.errors import UnsafeTargetError
from fedifetch.fetch.redact import redact_url_credentials
from fedifetch.safety.constants import (
    ALLOWED_SCHEMES,
    BLOCKED_HOSTNAME_SUFFIXES,
    BLOCKED_HOSTNAMES,
    EXTRA_BLOCKED_NETWORKS,
)


logger = structlog.get_logger()

Resolver = Callable[[str], Sequence[str]]
IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def resolve_host(hostname: str) -> list[str]:
    """Resolve a hostname to its unique IP addresses.

    Args:
        hostname: DNS name to resolve.

    Returns:
        Resolved addresses in resolver order, without duplicates.

    Raises:
        socket.gaierror: If resolution fails.
    """
    infos = socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
    addresses: list[str] = []
    for _family, _type, _proto, _canonname, sockaddr in infos:
        address = str(sockaddr[0])
        if address not in addresses:
            addresses.append(address)
    return addresses


def parse_ip(value: str) -> IPAddress | None:
    """Parse a literal IP address, tolerating brackets and zone ids.

    Returns:
        The parsed address, or None if the value is not an IP literal.
    """
    candidate = value.strip("[]").split("%", 1)[0]
    try:
        return ipaddress.ip_address(candidate)
    except ValueError:
        return None


def is_non_public_address(ip: IPAddress) -> bool:
    """Check if an address lies outside globally routable space.

    IPv4-mapped IPv6 addresses are judged by their embedded IPv4 address.
    """
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return is_non_public_address(ip.ipv4_mapped)

    if (
        ip.is_loopback
        or ip.is_private
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
        or not ip.is_global
    ):
        return True

    return any(
        ip in network
        for network in EXTRA_BLOCKED_NETWORKS
        if ip.version == network.version
    )


def is_blocked_hostname(hostname: str) -> bool:
    """Check if a hostname names internal infrastructure."""
    lowered = hostname.lower().rstrip(".")
    if lowered in BLOCKED_HOSTNAMES:
        return True
    return lowered.endswith(BLOCKED_HOSTNAME_SUFFIXES)


@dataclass(frozen=True)
class ValidatedTarget:
    """A URL that passed validation for one request attempt.

    Attributes:
        url: The validated URL.
        hostname: Lower-cased hostname.
        addresses: Addresses the hostname resolved to at validation time.
    """

    url: str
    hostname: str
    addresses: tuple[str, ...]


class UrlSafetyValidator:
    """Rejects URLs that reach non-public network space.

    Checks the scheme, the hostname, and every address the hostname
    resolves to. Resolution happens on every call, so callers validate
    immediately before each request attempt; a validation result is never
    reused for a later attempt.
    """

    def __init__(self, resolver: Resolver | None = None) -> None:
        """Initialize the validator.

        Args:
            resolver: Hostname resolver; defaults to the system resolver.
        """
        self._resolver = resolver or resolve_host
        self._log = logger.bind(component="safety")

    def validate(self, url: str) -> ValidatedTarget:
        """Validate a URL for one outbound request.

        Args:
            url: Absolute URL to validate.

        Returns:
            The validated target.

        Raises:
            UnsafeTargetError: If the URL is not safe to request.
        """
        try:
            parts = urlsplit(url)
            hostname = parts.hostname
            # Control characters pass urlsplit but not the transport
            httpx.URL(url)
        except (ValueError, httpx.InvalidURL) as e:
            raise self._reject(url, f"Malformed URL: {e}") from e

        if parts.scheme.lower() not in ALLOWED_SCHEMES:
            raise self._reject(url, f'Scheme "{parts.scheme}" is not allowed')

        if not hostname:
            raise self._reject(url, "URL has no hostname")

        hostname = hostname.lower().rstrip(".")

        if is_blocked_hostname(hostname):
            raise self._reject(
                url, f'Access to internal hostname "{hostname}" is not allowed'
            )

        literal = parse_ip(hostname)
        if literal is not None:
            if is_non_public_address(literal):
                raise self._reject(
                    url, f'Access to private IP address "{hostname}" is not allowed'
                )
            return ValidatedTarget(
                url=url, hostname=hostname, addresses=(str(literal),)
            )

        addresses = self._resolve(url, hostname)

        for address in addresses:
            ip = parse_ip(address)
            if ip is None or is_non_public_address(ip):
                raise self._reject(
                    url,
                    f'DNS resolution for "{hostname}" returned private IP '
                    f'"{address}" - possible DNS rebinding attack',
                )

        return ValidatedTarget(url=url, hostname=hostname, addresses=tuple(addresses))

    def _resolve(self, url: str, hostname: str) -> list[str]:
        """Resolve a hostname, converting failures to rejections."""
        try:
            addresses = list(self._resolver(hostname))
        except (OSError, UnicodeError) as e:
            raise self._reject(
                url, f'DNS resolution for "{hostname}" failed: {e}'
            ) from e

        if not addresses:
            raise self._reject(
                url, f'DNS resolution for "{hostname}" returned no addresses'
            )

        return addresses

    def _reject(self, url: str, message: str) -> UnsafeTargetError:
        self._log.warning(
            "unsafe_target_rejected",
            url=redact_url_credentials(url),
            reason=message,
        )
        return UnsafeTargetError(message, url=url)
