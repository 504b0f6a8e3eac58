"""Instance blocklist consulted before every outbound request."""

import threading
from collections.abc import Iterable
from datetime import UTC, datetime
from enum import Enum

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from fedifetch.errors import BlockedInstanceError


logger = structlog.get_logger()


class BlockReason(str, Enum):
    """Why an instance is blocked."""

    POLICY = "policy"
    USER = "user"
    SAFETY = "safety"
    SPAM = "spam"
    FEDERATION = "federation"
    CUSTOM = "custom"


class BlockedInstance(BaseModel):
    """A blocklist entry."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    domain: str = Field(min_length=1, max_length=253)
    reason: BlockReason = BlockReason.POLICY
    description: str | None = None
    added_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime | None = None

    @field_validator("domain")
    @classmethod
    def normalize_domain(cls, v: str) -> str:
        """Lower-case the domain and drop surrounding whitespace/dots."""
        normalized = v.strip().lower().rstrip(".")
        if not normalized or "*" in normalized:
            msg = f"Blocklist entries must be exact hostnames, got '{v}'"
            raise ValueError(msg)
        return normalized

    def is_expired(self, now: datetime) -> bool:
        """Check if the entry no longer applies."""
        return self.expires_at is not None and self.expires_at <= now


def normalize_hostname(hostname: str) -> str:
    """Normalize a hostname for blocklist comparison."""
    return hostname.strip().lower().rstrip(".")


class InstanceBlocklist:
    """Denylist of instance hostnames.

    Matching is case-insensitive and exact; ``sub.example.social`` is not
    blocked by an entry for ``example.social``.
    """

    def __init__(
        self,
        domains: Iterable[str] = (),
        enabled: bool = True,
    ) -> None:
        """Initialize the blocklist.

        Args:
            domains: Hostnames blocked by configuration.
            enabled: If False, nothing is ever reported as blocked.
        """
        self._enabled = enabled
        self._entries: dict[str, BlockedInstance] = {}
        self._lock = threading.Lock()
        self._log = logger.bind(component="blocklist")

        configured = [d for d in domains if d.strip()]
        for domain in configured:
            self.add_block(
                domain,
                reason=BlockReason.POLICY,
                description="Configured in environment",
            )
        if configured:
            self._log.info("blocklist_initialized", count=len(configured))

    @property
    def enabled(self) -> bool:
        """Whether the blocklist is enforced."""
        return self._enabled

    def add_block(
        self,
        domain: str,
        reason: BlockReason = BlockReason.CUSTOM,
        description: str | None = None,
        expires_at: datetime | None = None,
    ) -> BlockedInstance:
        """Add or replace a block.

        Args:
            domain: Exact hostname to block.
            reason: Reason category.
            description: Human-readable explanation.
            expires_at: Optional time after which the block lapses.

        Returns:
            The stored entry.
        """
        entry = BlockedInstance(
            domain=domain,
            reason=reason,
            description=description,
            expires_at=expires_at,
        )
        with self._lock:
            self._entries[entry.domain] = entry
        self._log.info("instance_block_added", domain=entry.domain, reason=reason.value)
        return entry

    def remove_block(self, domain: str) -> bool:
        """Remove a block. Returns True if one existed."""
        with self._lock:
            removed = self._entries.pop(normalize_hostname(domain), None)
        if removed is not None:
            self._log.info("instance_block_removed", domain=removed.domain)
        return removed is not None

    def get_entry(self, hostname: str) -> BlockedInstance | None:
        """Return the active entry for a hostname, if any."""
        if not self._enabled:
            return None

        key = normalize_hostname(hostname)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(datetime.now(UTC)):
                del self._entries[key]
                return None
            return entry

    def is_blocked(self, hostname: str) -> bool:
        """Check if a hostname is blocked."""
        return self.get_entry(hostname) is not None

    def assert_not_blocked(self, hostname: str, url: str | None = None) -> None:
        """Raise if a hostname is blocked.

        Args:
            hostname: Hostname about to be contacted.
            url: Full URL, for error context.

        Raises:
            BlockedInstanceError: If the hostname is blocked.
        """
        entry = self.get_entry(hostname)
        if entry is None:
            return

        reason = entry.description or entry.reason.value
        self._log.warning(
            "instance_blocked",
            domain=entry.domain,
            reason=entry.reason.value,
        )
        raise BlockedInstanceError(entry.domain, reason, url=url)

    def get_blocked_instances(self) -> list[BlockedInstance]:
        """List active entries, sorted by domain."""
        now = datetime.now(UTC)
        with self._lock:
            entries = [e for e in self._entries.values() if not e.is_expired(now)]
        return sorted(entries, key=lambda e: e.domain)

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()
        self._log.info("blocklist_cleared")
